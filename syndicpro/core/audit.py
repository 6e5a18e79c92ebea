import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from syndicpro.core.auth import User
from syndicpro.models.audit_log import AuditLog

logger = logging.getLogger(__name__)

# Actions whose effect is destructive or reaches beyond one row
HIGH_RISK_ACTIONS = {"deleted", "role_changed", "fee_cascaded"}


def _compute_risk_level(action: str, explicit: Optional[str] = None) -> str:
    if explicit:
        return explicit
    return "high" if action in HIGH_RISK_ACTIONS else "low"


def log_audit(
    db: Session,
    *,
    actor: User,
    action: str,
    entity_type: str,
    entity_id: str,
    source: str = "api",
    status: Optional[str] = None,
    description: Optional[str] = None,
    risk_level: Optional[str] = None,
) -> Optional[AuditLog]:
    log = AuditLog(
        actor_id=actor.id,
        actor_email=actor.email,
        actor_role=actor.role,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        source=source,
        status=status,
        description=description,
        risk_level=_compute_risk_level(action, risk_level),
    )
    try:
        db.add(log)
        db.commit()
        db.refresh(log)
    except SQLAlchemyError:
        # The audited write is already committed; losing the trail entry must not undo it
        db.rollback()
        logger.exception("Failed to write audit log for %s %s %s", action, entity_type, entity_id)
        return None
    return log
