"""
Dashboard endpoint.
Returns the yearly collection summary, financials and alerts.
"""
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query

from syndicpro.api.deps import get_store
from syndicpro.core.auth import User, get_current_profile
from syndicpro.core.config import settings
from syndicpro.schemas.dashboard import DashboardSummary
from syndicpro.services.aggregator import aggregate
from syndicpro.services.store import DataStore

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("", response_model=DashboardSummary)
def get_dashboard(
    store: DataStore = Depends(get_store),
    current_user: User = Depends(get_current_profile),
    year: Optional[int] = Query(None, ge=2000, le=2100),
):
    year = year or datetime.now(timezone.utc).year
    return aggregate(
        store.list_apartments(),
        store.list_payments(year=year),
        store.list_expenses(year=year),
        year,
        recent_limit=settings.RECENT_ACTIVITY_LIMIT,
    )
