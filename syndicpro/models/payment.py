from sqlalchemy import Column, Integer, Numeric, String, DateTime, UniqueConstraint, CheckConstraint, func

from syndicpro.core.database import Base


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (
        # One payment row per apartment per month per year; seeding relies on it
        UniqueConstraint("apartment_id", "month", "year", name="uq_payments_apartment_month_year"),
        CheckConstraint("month >= 1 AND month <= 12", name="ck_payments_month_range"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Weak reference: the apartment may have been deleted since
    apartment_id = Column(Integer, nullable=False, index=True)

    year = Column(Integer, nullable=False, index=True)
    month = Column(Integer, nullable=False)

    amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String, nullable=False, default="UNPAID")  # PAID / UNPAID

    # Only set while status == PAID
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
