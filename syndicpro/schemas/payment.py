from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional
from decimal import Decimal

from syndicpro.schemas.apartment import ApartmentOut


class PaymentOut(BaseModel):
    id: int
    apartment_id: int
    year: int
    month: int
    amount: Decimal
    status: str  # PAID / UNPAID
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ReconcileOut(BaseModel):
    year: int
    seeded: int = 0
    skipped: bool = False  # another pass for the same year was already running


class ApartmentYearRow(BaseModel):
    """One line of the yearly payment matrix."""
    apartment: ApartmentOut
    # Index 0 is January; None when the slot has not been seeded yet
    months: List[Optional[PaymentOut]]
    paid_count: int = 0
    paid_amount: Decimal = Decimal("0")
