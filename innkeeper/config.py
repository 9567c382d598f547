"""
Application settings
Read from environment variables / .env, with front-desk defaults
"""
import os
from decimal import Decimal
from typing import Optional
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "Innkeeper"
    DEBUG: bool = False
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    # Database
    DATABASE_URL: str = "sqlite:///./innkeeper.db"

    # JWT
    SECRET_KEY: str = "innkeeper-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 12

    # Ledger rules
    BALANCE_EPSILON: Decimal = Decimal("0.01")   # rounding slack for balance checks
    FREQUENT_GUEST_STAYS: int = 3
    BOOKING_CODE_PREFIX: str = "BK"
    CURRENCY_LABEL: str = "Bs."

    # Resource locks
    LOCK_TIMEOUT_SECONDS: float = 10.0

    # WhatsApp gateway
    WHATSAPP_ENABLED: bool = os.environ.get("WHATSAPP_ENABLED", "false").lower() == "true"
    WHATSAPP_GATEWAY_URL: str = os.environ.get("WHATSAPP_GATEWAY_URL", "")
    WHATSAPP_API_TOKEN: Optional[str] = os.environ.get("WHATSAPP_API_TOKEN")
    WHATSAPP_TIMEOUT: float = 10.0
    ADMIN_NOTIFY_PHONE: Optional[str] = os.environ.get("ADMIN_NOTIFY_PHONE")

    model_config = ConfigDict(env_file=".env", case_sensitive=True)


# Global settings instance
settings = Settings()
