from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from syndicpro.core.database import Base


class Profile(Base):
    __tablename__ = "profiles"

    # Same id as the Supabase auth user ("sub" claim)
    id = Column(String, primary_key=True, index=True)

    email = Column(String, nullable=True, index=True)
    display_name = Column(String, nullable=True)

    # admin / editor / viewer; capabilities are derived from it, never stored
    role = Column(String, nullable=False, default="viewer")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now(), nullable=False)
