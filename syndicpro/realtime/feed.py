"""
In-process change feed.

Every committed write to apartments, payments or expenses is published as a
change event. One subscription receives all three tables; the event payload is
parsed into a per-table variant so consumers dispatch on type rather than on
the table-name string.
"""
import itertools
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, Optional, Union

logger = logging.getLogger(__name__)


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class ApartmentChange:
    table: ClassVar[str] = "apartments"
    event_type: ChangeType
    new: Optional[Dict[str, Any]] = None
    old: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class PaymentChange:
    table: ClassVar[str] = "payments"
    event_type: ChangeType
    new: Optional[Dict[str, Any]] = None
    old: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class ExpenseChange:
    table: ClassVar[str] = "expenses"
    event_type: ChangeType
    new: Optional[Dict[str, Any]] = None
    old: Optional[Dict[str, Any]] = None


TableChange = Union[ApartmentChange, PaymentChange, ExpenseChange]

_VARIANTS = {cls.table: cls for cls in (ApartmentChange, PaymentChange, ExpenseChange)}


def parse_change(payload: Dict[str, Any]) -> TableChange:
    """Build the table variant from a raw {eventType, table, new, old} payload."""
    table = payload.get("table")
    variant = _VARIANTS.get(table)
    if variant is None:
        raise ValueError(f"Unknown change table: {table!r}")
    try:
        event_type = ChangeType(payload.get("eventType"))
    except ValueError:
        raise ValueError(f"Unknown change event type: {payload.get('eventType')!r}")
    return variant(event_type=event_type, new=payload.get("new"), old=payload.get("old"))


def change_to_payload(change: TableChange) -> Dict[str, Any]:
    return {
        "eventType": change.event_type.value,
        "table": change.table,
        "new": change.new,
        "old": change.old,
    }


class Subscription:
    def __init__(self, feed: "ChangeFeed", subscription_id: int):
        self._feed = feed
        self.id = subscription_id
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._feed._remove(self.id)
            self.active = False


class ChangeFeed:
    """Fan-out of committed changes to every live subscriber."""

    def __init__(self):
        self._subscribers: Dict[int, Callable[[TableChange], None]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def subscribe(self, callback: Callable[[TableChange], None]) -> Subscription:
        with self._lock:
            subscription_id = next(self._ids)
            self._subscribers[subscription_id] = callback
        logger.debug("Change feed subscription %s opened", subscription_id)
        return Subscription(self, subscription_id)

    def _remove(self, subscription_id: int) -> None:
        with self._lock:
            self._subscribers.pop(subscription_id, None)
        logger.debug("Change feed subscription %s closed", subscription_id)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, change: TableChange) -> None:
        with self._lock:
            callbacks = list(self._subscribers.values())
        for callback in callbacks:
            try:
                callback(change)
            except Exception:
                # The write is already committed; one broken listener must not fail it
                logger.exception("Change feed subscriber failed on %s %s", change.table, change.event_type.value)
