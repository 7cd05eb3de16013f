"""
Application configuration.

All configuration is loaded from environment variables.
Never hardcode secrets, connection strings, or money policy in code.
"""

import os
from decimal import Decimal
from functools import lru_cache

from dotenv import load_dotenv

# Load .env file into environment variables
load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Ledger Core"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    # Database
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "sqlite:///./ledger_core.db"
    )

    # Transaction policy
    DAILY_LIMIT: Decimal = Decimal(os.getenv("DAILY_LIMIT", "10000"))
    LARGE_DEPOSIT_THRESHOLD: Decimal = Decimal(
        os.getenv("LARGE_DEPOSIT_THRESHOLD", "10000")
    )
    WITHDRAWAL_FEE_THRESHOLD: Decimal = Decimal(
        os.getenv("WITHDRAWAL_FEE_THRESHOLD", "500")
    )
    WITHDRAWAL_FEE: Decimal = Decimal(os.getenv("WITHDRAWAL_FEE", "2.50"))
    PAYMENT_FEE_THRESHOLD: Decimal = Decimal(
        os.getenv("PAYMENT_FEE_THRESHOLD", "1000")
    )
    PAYMENT_FEE: Decimal = Decimal(os.getenv("PAYMENT_FEE", "5.00"))

    # Audit and security monitoring
    LARGE_TRANSACTION_ALERT: Decimal = Decimal(
        os.getenv("LARGE_TRANSACTION_ALERT", "10000")
    )
    AUDIT_RETRY_ATTEMPTS: int = int(os.getenv("AUDIT_RETRY_ATTEMPTS", "3"))

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")


@lru_cache()
def get_settings() -> Settings:
    """
    Return cached settings instance.

    Using lru_cache means the Settings object is created once
    and reused for all subsequent calls.
    """
    return Settings()
