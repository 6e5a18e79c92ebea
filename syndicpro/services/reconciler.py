"""
Yearly payment matrix reconciliation.

Every apartment owes one payment per month. For a fiscal year the reconciler
finds the (apartment, month) slots that have no payment row yet and seeds them
as UNPAID at the apartment's monthly fee (or the building default when the
apartment has none). Existing rows are never touched.

Seeds are inserted with conflict-ignore semantics on the
(apartment_id, month, year) unique constraint, so running it again, or from
two sessions at once, never creates duplicates or raises.
"""
import logging
import threading
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from syndicpro.services.optimistic import UNPAID

logger = logging.getLogger(__name__)

MONTHS = range(1, 13)


@dataclass(frozen=True)
class PaymentSeed:
    apartment_id: int
    year: int
    month: int
    amount: Decimal
    status: str = UNPAID

    def as_row(self) -> dict:
        return {
            "apartment_id": self.apartment_id,
            "year": self.year,
            "month": self.month,
            "amount": self.amount,
            "status": self.status,
        }


def reconcile(apartments: Iterable, existing_payments: Iterable, year: int, default_fee) -> List[PaymentSeed]:
    """Return the seeds missing for `year`; never duplicates an existing slot."""
    year = int(year)
    taken = {
        (p.apartment_id, int(p.month))
        for p in existing_payments
        if int(p.year) == year
    }

    seeds: List[PaymentSeed] = []
    for apartment in apartments:
        fee = apartment.monthly_total if apartment.monthly_total is not None else default_fee
        for month in MONTHS:
            if (apartment.id, month) in taken:
                continue
            seeds.append(PaymentSeed(apartment_id=apartment.id, year=year, month=month, amount=Decimal(str(fee))))
            taken.add((apartment.id, month))
    return seeds


@dataclass(frozen=True)
class ReconcileResult:
    year: int
    seeded: int = 0
    skipped: bool = False


class PaymentReconciler:
    """
    Single-flight wrapper around `reconcile` + the conflict-ignoring insert.

    A pass that starts while another one for the same year is running returns
    immediately with `skipped=True` instead of racing it. Different years run
    independently.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[int, threading.Lock] = {}

    def _lock_for(self, year: int) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(int(year), threading.Lock())

    def in_flight(self, year: int) -> bool:
        return self._lock_for(year).locked()

    def run(
        self,
        store,
        year: int,
        default_fee=None,
        apartments: Optional[list] = None,
        payments: Optional[list] = None,
    ) -> ReconcileResult:
        lock = self._lock_for(year)
        if not lock.acquire(blocking=False):
            logger.debug("Reconciliation for %s already in flight, skipping", year)
            return ReconcileResult(year=year, skipped=True)
        try:
            if apartments is None:
                apartments = store.list_apartments()
            if not apartments:
                return ReconcileResult(year=year)

            if payments is None:
                payments = store.list_payments(year=year)
            if default_fee is None:
                default_fee = store.get_app_settings().default_monthly_fee

            seeds = reconcile(apartments, payments, year, default_fee)
            if not seeds:
                return ReconcileResult(year=year)

            inserted = store.insert_payment_seeds(seeds)
            logger.info("Seeded %s of %s missing payments for %s", inserted, len(seeds), year)
            return ReconcileResult(year=year, seeded=inserted)
        finally:
            lock.release()
