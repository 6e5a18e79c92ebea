from sqlalchemy import Column, Integer, String, Date, DateTime, Numeric
from sqlalchemy.sql import func
from syndicpro.core.database import Base


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)

    # ELECTRICITY / WATER / CLEANING / MAINTENANCE / SECURITY / OTHER
    category = Column(String, nullable=False, default="OTHER", index=True)
    amount = Column(Numeric(10, 2), nullable=False)

    title = Column(String, nullable=True)
    description = Column(String, nullable=False, default="")

    # Scopes the expense to a fiscal year
    date = Column(Date, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
