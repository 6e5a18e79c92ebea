from pydantic import BaseModel
from typing import List, Optional
from decimal import Decimal

from syndicpro.schemas.apartment import ApartmentOut
from syndicpro.schemas.expense import ExpenseOut
from syndicpro.schemas.payment import ApartmentYearRow, PaymentOut


class CollectionSummary(BaseModel):
    """Top cards: apartments, paid months, collection rate, balance."""
    total_apartments: int = 0
    total_paid_records: int = 0
    total_potential_records: int = 0
    collection_rate: int = 0  # percent, rounded half up
    balance: Decimal = Decimal("0")


class Financials(BaseModel):
    total_income: Decimal = Decimal("0")
    total_expenses: Decimal = Decimal("0")


class ExpenseCategoryItem(BaseModel):
    category: str
    amount: Decimal = Decimal("0")
    percentage: float = 0.0


class DashboardAlert(BaseModel):
    code: str  # low_collection / negative_balance
    type: str  # danger / warning
    message: str


class RecentPayment(BaseModel):
    payment: PaymentOut
    apartment: Optional[ApartmentOut] = None


class RecentActivity(BaseModel):
    recent_payments: List[RecentPayment] = []
    recent_expenses: List[ExpenseOut] = []


class DashboardSummary(BaseModel):
    """Full yearly dashboard response."""
    year: int
    summary: CollectionSummary = CollectionSummary()
    financials: Financials = Financials()
    expense_categories: List[ExpenseCategoryItem] = []
    alerts: List[DashboardAlert] = []
    apartments: List[ApartmentYearRow] = []
    recent_activity: RecentActivity = RecentActivity()
