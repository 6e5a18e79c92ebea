"""
Optimistic update helper and the payment toggle state machine.

    UNPAID --toggle--> PAID     (paid_at stamped)
    PAID   --toggle--> UNPAID   (paid_at cleared)
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

PAID = "PAID"
UNPAID = "UNPAID"

T = TypeVar("T")
R = TypeVar("R")


def toggled_status(status: str) -> str:
    return UNPAID if status == PAID else PAID


def toggle_fields(status: str, now: Optional[datetime] = None) -> dict:
    """Field values a payment takes after one toggle from `status`."""
    new_status = toggled_status(status)
    if new_status == PAID:
        return {"status": PAID, "paid_at": now or datetime.now(timezone.utc)}
    return {"status": UNPAID, "paid_at": None}


def optimistic_update(
    apply_local: Callable[[], T],
    commit_remote: Callable[[], R],
    revert_local: Callable[[T], None],
) -> R:
    """
    Apply a change locally, then confirm it remotely.

    `apply_local` returns whatever `revert_local` needs to restore the previous
    state. If the remote commit raises, the local change is reverted and the
    error propagates to the caller.
    """
    previous = apply_local()
    try:
        return commit_remote()
    except Exception:
        logger.warning("Remote commit failed, reverting optimistic change")
        revert_local(previous)
        raise
