from sqlalchemy import Column, String, DateTime, Numeric
from sqlalchemy.sql import func
from syndicpro.core.database import Base

APP_SETTINGS_ID = "app"


class AppSetting(Base):
    __tablename__ = "settings"

    # Singleton table: the only row is keyed "app"
    id = Column(String, primary_key=True, default=APP_SETTINGS_ID)

    building_name = Column(String, nullable=False)
    building_address = Column(String, nullable=False, default="")
    default_monthly_fee = Column(Numeric(10, 2), nullable=False)
    currency = Column(String, nullable=False)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    updated_by = Column(String, nullable=True)
