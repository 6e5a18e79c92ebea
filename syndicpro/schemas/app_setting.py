from pydantic import BaseModel, field_validator
from datetime import datetime
from typing import List, Optional
from decimal import Decimal


class AppSettingsUpdate(BaseModel):
    building_name: str
    building_address: str = ""
    default_monthly_fee: Decimal
    currency: str

    @field_validator("building_name", "currency", mode="before")
    @classmethod
    def strip_strings(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("default_monthly_fee")
    @classmethod
    def fee_must_be_non_negative(cls, v):
        if v < 0:
            raise ValueError("default_monthly_fee cannot be negative")
        return v


class AppSettingsOut(BaseModel):
    id: str = "app"
    building_name: str
    building_address: str = ""
    default_monthly_fee: Decimal
    currency: str
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None

    class Config:
        from_attributes = True


class FeeCascadeOut(BaseModel):
    """What the default fee change rewrote."""
    scope: str
    apartments_updated: int = 0
    payments_updated: int = 0
    errors: List[str] = []


class AppSettingsSaveOut(BaseModel):
    settings: AppSettingsOut
    cascade: Optional[FeeCascadeOut] = None  # None when the fee did not change
