from sqlalchemy import Column, String, Integer, DateTime, Numeric, JSON
from sqlalchemy.sql import func
from syndicpro.core.database import Base


class Apartment(Base):
    __tablename__ = "apartments"

    id = Column(Integer, primary_key=True, index=True)

    # "A1", "12", "3B" - sorted naturally, not lexically
    number = Column(String, nullable=False, index=True)
    floor = Column(Integer, nullable=False, default=0, index=True)

    resident_name = Column(String, nullable=True)
    resident_cin = Column(String, nullable=True)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)

    occupancy_type = Column(String, nullable=False, default="owner")  # owner / tenant / shared
    roommate_count = Column(Integer, nullable=False, default=1)
    # [{"name": ..., "cin": ...}], only meaningful when occupancy_type == "shared"
    roommates = Column(JSON, nullable=False, default=list)

    status = Column(String, nullable=False, default="occupied")  # occupied / vacant

    monthly_total = Column(Numeric(10, 2), nullable=True)  # fee owed per month; NULL -> building default
    balance = Column(Numeric(10, 2), nullable=False, default=0)  # <= 0 healthy, > 0 owed

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now(), nullable=False)
