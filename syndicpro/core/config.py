from decimal import Decimal
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    # Supabase Auth
    SUPABASE_URL: str
    SUPABASE_JWT_SECRET: Optional[str] = None

    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Building defaults used until the "app" settings row exists
    DEFAULT_BUILDING_NAME: str = "SyndicPro"
    DEFAULT_MONTHLY_FEE: Decimal = Decimal("200")
    DEFAULT_CURRENCY: str = "DH"

    # What a default fee change rewrites: all | unpaid | none
    FEE_CASCADE_SCOPE: Literal["all", "unpaid", "none"] = "all"

    RECENT_ACTIVITY_LIMIT: int = 5

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
