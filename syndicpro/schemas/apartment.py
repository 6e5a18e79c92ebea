from pydantic import BaseModel, field_validator, model_validator
from datetime import datetime
from typing import List, Literal, Optional
from decimal import Decimal

OccupancyType = Literal["owner", "tenant", "shared"]
ApartmentStatus = Literal["occupied", "vacant"]


class Roommate(BaseModel):
    name: str = ""
    cin: str = ""


def _clean_number(v):
    if isinstance(v, int):
        v = str(v)
    if isinstance(v, str):
        v = v.strip()
        if not v:
            raise ValueError("number cannot be empty")
    return v


class ApartmentCreate(BaseModel):
    number: str
    floor: int = 0
    resident_name: Optional[str] = None
    resident_cin: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    occupancy_type: OccupancyType = "owner"
    roommate_count: int = 1
    roommates: List[Roommate] = []
    status: ApartmentStatus = "occupied"
    monthly_total: Optional[Decimal] = None
    balance: Decimal = Decimal("0")

    @field_validator("number", mode="before")
    @classmethod
    def strip_number(cls, v):
        return _clean_number(v)

    @model_validator(mode="after")
    def drop_roommates_unless_shared(self) -> "ApartmentCreate":
        # Roommates only mean something for shared apartments
        if self.occupancy_type != "shared":
            self.roommates = []
            self.roommate_count = 1
        return self


class ApartmentUpdate(BaseModel):
    number: Optional[str] = None
    floor: Optional[int] = None
    resident_name: Optional[str] = None
    resident_cin: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    occupancy_type: Optional[OccupancyType] = None
    roommate_count: Optional[int] = None
    roommates: Optional[List[Roommate]] = None
    status: Optional[ApartmentStatus] = None
    monthly_total: Optional[Decimal] = None
    balance: Optional[Decimal] = None

    @field_validator("number", mode="before")
    @classmethod
    def strip_number(cls, v):
        if v is None:
            raise ValueError("number cannot be null")
        return _clean_number(v)

    @field_validator("floor", "occupancy_type", "roommate_count", "roommates", "status", "balance", mode="before")
    @classmethod
    def reject_null(cls, v, info):
        # Omit a field to leave it unchanged; these columns are NOT NULL
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    @model_validator(mode="after")
    def drop_roommates_unless_shared(self) -> "ApartmentUpdate":
        # PATCH-safe: only clear roommates when this payload explicitly leaves "shared"
        if self.occupancy_type is not None and self.occupancy_type != "shared":
            self.roommates = []
            self.roommate_count = 1
        return self


class ApartmentOut(BaseModel):
    id: int
    number: str
    floor: int
    resident_name: Optional[str] = None
    resident_cin: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    occupancy_type: str
    roommate_count: int = 1
    roommates: List[Roommate] = []
    status: str
    monthly_total: Optional[Decimal] = None
    balance: Decimal = Decimal("0")
    balance_state: str = "healthy"  # Computed: healthy when balance <= 0, owed otherwise
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def set_balance_state(self) -> "ApartmentOut":
        self.balance_state = "owed" if self.balance > 0 else "healthy"
        return self

    class Config:
        from_attributes = True
