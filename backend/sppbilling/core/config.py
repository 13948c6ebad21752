# ============================================================
# sppbilling/core/config.py
#
# All configuration is read from environment variables
# (or a .env file at the repository root when running locally).
#
# Usage anywhere in the app:
#   from sppbilling.core.config import settings
#   print(settings.TIMEZONE)
# ============================================================

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
from pathlib import Path


class Settings(BaseSettings):
    """
    Settings come from environment variables.
    Pydantic reads the .env file automatically when running locally.
    """

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[3] / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",          # Ignore extra vars in .env
    )

    # ── App Identity ─────────────────────────────────────────
    APP_NAME: str = "SPP Billing Console"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"        # development | production
    DEBUG: bool = False

    # Brute-force protection knobs for the login endpoint.
    LOGIN_RATE_LIMIT_WINDOW_SECONDS: int = 300
    LOGIN_RATE_LIMIT_MAX_PER_IP: int = 20
    LOGIN_RATE_LIMIT_MAX_PER_USERNAME: int = 10

    # ── API Settings ─────────────────────────────────────────
    API_PREFIX: str = "/api/v1"
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",            # React dev server
        "http://localhost:5173",            # Vite dev server
    ]

    # ── JWT Authentication ────────────────────────────────────
    # Tokens carry the operator id, role and display name.
    # The name is what gets stamped on payments as processed_by.
    JWT_SECRET_KEY: str                     # Generate: openssl rand -hex 32
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 8    # one cashier shift
    JWT_REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # ── Locale ───────────────────────────────────────────────
    # All dates are shown in WIB (UTC+7).
    TIMEZONE: str = "Asia/Jakarta"

    # ── Billing ──────────────────────────────────────────────
    RECEIPT_PREFIX: str = "RCP"
    # Day of month on which generated installments fall due.
    PAYMENT_DUE_DAY: int = Field(default=10, ge=1, le=28)
    # An installment is "due" (not just "upcoming") this many days before its date.
    SCHEDULE_DUE_WINDOW_DAYS: int = Field(default=30, ge=0)
    # Optional fee items count toward a structure's total unless disabled here.
    FEE_TOTAL_INCLUDES_OPTIONAL: bool = True

    # ── Demo data ────────────────────────────────────────────
    SEED_DEMO_DATA: bool = True
    DEMO_ADMIN_PASSWORD: str = "admin123"
    DEMO_CASHIER_PASSWORD: str = "kasir123"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


# Single instance: import this everywhere
settings = Settings()
