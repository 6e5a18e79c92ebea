from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from syndicpro.api.deps import get_db, get_reconciler, get_store
from syndicpro.core.audit import log_audit
from syndicpro.core.auth import User, get_current_profile, require_modify
from syndicpro.core.exceptions import EntityNotFoundError
from syndicpro.schemas.payment import ApartmentYearRow, PaymentOut, ReconcileOut
from syndicpro.services.aggregator import payment_matrix
from syndicpro.services.reconciler import PaymentReconciler
from syndicpro.services.store import DataStore

router = APIRouter(prefix="/payments", tags=["payments"])


def _current_year() -> int:
    return datetime.now(timezone.utc).year


@router.get("", response_model=List[PaymentOut])
def list_payments(
    store: DataStore = Depends(get_store),
    current_user: User = Depends(get_current_profile),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    apartment_id: Optional[int] = Query(None, description="Filter by apartment ID"),
):
    return store.list_payments(year=year, apartment_id=apartment_id)


@router.get("/matrix", response_model=List[ApartmentYearRow])
def get_payment_matrix(
    store: DataStore = Depends(get_store),
    current_user: User = Depends(get_current_profile),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    search: Optional[str] = Query(None, description="search by number or resident name"),
):
    """
    Yearly payment grid: one row per apartment, twelve month slots each.
    Payments whose apartment no longer exists are left out.
    """
    year = year or _current_year()
    apartments = store.list_apartments(search=search)
    return payment_matrix(apartments, store.list_payments(year=year), year)


@router.post("/reconcile", response_model=ReconcileOut)
def reconcile_payments(
    db: Session = Depends(get_db),
    store: DataStore = Depends(get_store),
    reconciler: PaymentReconciler = Depends(get_reconciler),
    current_user: User = Depends(require_modify),
    year: Optional[int] = Query(None, ge=2000, le=2100),
):
    """
    Seed the missing UNPAID payments of a fiscal year. Safe to call repeatedly:
    existing rows are skipped, and a call made while another pass is running
    returns skipped=true.
    """
    year = year or _current_year()
    result = reconciler.run(store, year)
    if result.seeded:
        log_audit(
            db,
            actor=current_user,
            action="seeded",
            entity_type="payment",
            entity_id=str(year),
            description=f"Seeded {result.seeded} unpaid payments for {year}",
        )
    return ReconcileOut(year=result.year, seeded=result.seeded, skipped=result.skipped)


@router.post("/{payment_id}/toggle", response_model=PaymentOut)
def toggle_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    store: DataStore = Depends(get_store),
    current_user: User = Depends(require_modify),
):
    """
    Flip a payment between PAID and UNPAID. paid_at is stamped when it becomes
    PAID and cleared when it goes back to UNPAID.
    """
    try:
        payment = store.toggle_payment(payment_id)
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Payment not found")

    log_audit(
        db,
        actor=current_user,
        action="toggled",
        entity_type="payment",
        entity_id=str(payment.id),
        status=payment.status,
        description=f"Payment {payment.year}-{payment.month:02d} of apartment {payment.apartment_id} marked {payment.status}",
    )
    return payment
