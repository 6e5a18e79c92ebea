from pydantic import BaseModel, field_validator
from datetime import date, datetime
from typing import Literal, Optional
from decimal import Decimal

ExpenseCategory = Literal["ELECTRICITY", "WATER", "CLEANING", "MAINTENANCE", "SECURITY", "OTHER"]


class ExpenseCreate(BaseModel):
    category: ExpenseCategory = "MAINTENANCE"
    amount: Decimal
    description: str
    title: Optional[str] = None
    date: date

    @field_validator("category", mode="before")
    @classmethod
    def upper_category(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("amount")
    @classmethod
    def amount_must_be_positive(cls, v):
        if v <= 0:
            raise ValueError("amount must be positive")
        return v


class ExpenseOut(BaseModel):
    id: int
    category: str
    amount: Decimal
    title: Optional[str] = None
    description: str
    date: date
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
