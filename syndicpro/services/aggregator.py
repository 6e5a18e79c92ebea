"""
Yearly collection and financial aggregation.

Shared by the /dashboard and /payments/matrix endpoints and by the per-session
dashboard state. Works on plain lists (ORM rows or schema objects), no queries.
"""
from collections import defaultdict
from datetime import timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional

from syndicpro.schemas.apartment import ApartmentOut
from syndicpro.schemas.dashboard import (
    CollectionSummary,
    DashboardAlert,
    DashboardSummary,
    ExpenseCategoryItem,
    Financials,
    RecentActivity,
    RecentPayment,
)
from syndicpro.schemas.expense import ExpenseOut
from syndicpro.schemas.payment import ApartmentYearRow, PaymentOut
from syndicpro.services.optimistic import PAID
from syndicpro.services.ordering import apartment_sort_key

LOW_COLLECTION_MESSAGE = "Low collection rate for this fiscal year."
NEGATIVE_BALANCE_MESSAGE = "Expenses exceed income for this year."


def _amount(value) -> Decimal:
    if value is None:
        return Decimal("0")
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _expense_year(expense) -> int:
    return expense.date.year


def collection_rate(paid: int, potential: int) -> int:
    """Percentage of potential monthly payments marked PAID, 0 when nothing is due."""
    if potential <= 0:
        return 0
    rate = Decimal(paid) * 100 / Decimal(potential)
    return int(rate.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def active_payments(apartments: Iterable, payments: Iterable, year: int) -> List:
    """Payments of `year` whose apartment still exists."""
    known_ids = {a.id for a in apartments}
    return [p for p in payments if p.apartment_id in known_ids and int(p.year) == int(year)]


def payment_matrix(apartments: Iterable, payments: Iterable, year: int) -> List[ApartmentYearRow]:
    """Per-apartment 12-slot view with paid count and paid total, floor then number order."""
    apartments = sorted(apartments, key=apartment_sort_key)
    by_slot: Dict[tuple, object] = {}
    for p in active_payments(apartments, payments, year):
        by_slot[(p.apartment_id, int(p.month))] = p

    rows: List[ApartmentYearRow] = []
    for apartment in apartments:
        months: List[Optional[PaymentOut]] = []
        paid_count = 0
        paid_amount = Decimal("0")
        for month in range(1, 13):
            payment = by_slot.get((apartment.id, month))
            if payment is None:
                months.append(None)
                continue
            if payment.status == PAID:
                paid_count += 1
                paid_amount += _amount(payment.amount)
            months.append(PaymentOut.model_validate(payment))
        rows.append(
            ApartmentYearRow(
                apartment=ApartmentOut.model_validate(apartment),
                months=months,
                paid_count=paid_count,
                paid_amount=paid_amount,
            )
        )
    return rows


def build_alerts(paid: int, potential: int, balance: Decimal) -> List[DashboardAlert]:
    alerts: List[DashboardAlert] = []
    if paid < potential / 2:
        alerts.append(DashboardAlert(code="low_collection", type="danger", message=LOW_COLLECTION_MESSAGE))
    if balance < 0:
        alerts.append(DashboardAlert(code="negative_balance", type="warning", message=NEGATIVE_BALANCE_MESSAGE))
    return alerts


def aggregate(
    apartments: Iterable,
    payments: Iterable,
    expenses: Iterable,
    year: int,
    recent_limit: int = 5,
) -> DashboardSummary:
    apartments = list(apartments)
    valid_payments = active_payments(apartments, payments, year)
    yearly_expenses = [e for e in expenses if _expense_year(e) == int(year)]

    paid_payments = [p for p in valid_payments if p.status == PAID]
    total_paid = len(paid_payments)
    total_potential = len(apartments) * 12

    total_income = sum((_amount(p.amount) for p in paid_payments), Decimal("0"))
    total_expenses = sum((_amount(e.amount) for e in yearly_expenses), Decimal("0"))
    balance = total_income - total_expenses

    category_totals: Dict[str, Decimal] = defaultdict(Decimal)
    for e in yearly_expenses:
        category_totals[e.category or "OTHER"] += _amount(e.amount)
    expense_categories = [
        ExpenseCategoryItem(
            category=category,
            amount=amount,
            percentage=round(float(amount / total_expenses * 100), 1) if total_expenses > 0 else 0.0,
        )
        for category, amount in category_totals.items()
    ]

    apartments_by_id = {a.id: a for a in apartments}
    recent_paid = sorted(
        (p for p in paid_payments if p.paid_at is not None),
        key=lambda p: p.paid_at if p.paid_at.tzinfo else p.paid_at.replace(tzinfo=timezone.utc),
        reverse=True,
    )[:recent_limit]
    recent_payments = [
        RecentPayment(
            payment=PaymentOut.model_validate(p),
            apartment=ApartmentOut.model_validate(apartments_by_id[p.apartment_id]),
        )
        for p in recent_paid
    ]
    recent_expenses = [
        ExpenseOut.model_validate(e)
        for e in sorted(yearly_expenses, key=lambda e: e.date, reverse=True)[:recent_limit]
    ]

    return DashboardSummary(
        year=int(year),
        summary=CollectionSummary(
            total_apartments=len(apartments),
            total_paid_records=total_paid,
            total_potential_records=total_potential,
            collection_rate=collection_rate(total_paid, total_potential),
            balance=balance,
        ),
        financials=Financials(total_income=total_income, total_expenses=total_expenses),
        expense_categories=expense_categories,
        alerts=build_alerts(total_paid, total_potential, balance),
        apartments=payment_matrix(apartments, valid_payments, year),
        recent_activity=RecentActivity(recent_payments=recent_payments, recent_expenses=recent_expenses),
    )
