from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from syndicpro.api.deps import get_db, get_store
from syndicpro.core.audit import log_audit
from syndicpro.core.auth import User, get_current_profile, require_admin
from syndicpro.schemas.app_setting import AppSettingsOut, AppSettingsSaveOut, AppSettingsUpdate
from syndicpro.services.store import DataStore

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("", response_model=AppSettingsOut)
def get_app_settings(
    store: DataStore = Depends(get_store),
    current_user: User = Depends(get_current_profile),
):
    """Building settings, or the configured defaults until an admin saves them."""
    return store.get_app_settings()


@router.put("", response_model=AppSettingsSaveOut)
def save_app_settings(
    payload: AppSettingsUpdate,
    db: Session = Depends(get_db),
    store: DataStore = Depends(get_store),
    current_user: User = Depends(require_admin),
):
    """
    Save building settings.

    Changing default_monthly_fee rewrites apartment fees and payment amounts
    as configured by FEE_CASCADE_SCOPE. With the default scope ("all") this
    includes payments of past years.
    """
    result = store.save_app_settings(payload, updated_by=current_user.email or current_user.id)
    log_audit(
        db,
        actor=current_user,
        action="updated",
        entity_type="settings",
        entity_id=result.settings.id,
        description=f"Building settings saved: {result.settings.building_name}",
    )
    if result.cascade is not None:
        log_audit(
            db,
            actor=current_user,
            action="fee_cascaded",
            entity_type="settings",
            entity_id=result.settings.id,
            status="partial" if result.cascade.errors else "ok",
            description=(
                f"Default fee {payload.default_monthly_fee} applied ({result.cascade.scope}): "
                f"{result.cascade.apartments_updated} apartments, {result.cascade.payments_updated} payments"
            ),
        )
    return result
