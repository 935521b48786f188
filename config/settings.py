"""App settings: loaded from environment."""
from __future__ import annotations

import os
from dotenv import load_dotenv

load_dotenv()


class Settings:
    # API
    API_HOST = os.getenv("API_HOST", "0.0.0.0")
    API_PORT = int(os.getenv("API_PORT", "8000"))

    # Database
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///marketplace.db")
    DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "10"))
    DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "20"))
    DB_SSL = os.getenv("DB_SSL", "false").lower() in ("1", "true", "yes")

    # Auth
    JWT_SECRET = os.getenv("JWT_SECRET", "marketplace-dev-secret-change-in-prod")

    # CORS origins (comma-separated, or * for dev)
    CORS_ORIGINS = [
        o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",")
    ]

    # Reviews
    REVIEW_AUTO_FLAG_THRESHOLD = int(os.getenv("REVIEW_AUTO_FLAG_THRESHOLD", "3"))

    # Report SLAs (hours an open report may wait before it counts as overdue)
    REPORT_SLA_URGENT_HOURS = int(os.getenv("REPORT_SLA_URGENT_HOURS", "4"))
    REPORT_SLA_HIGH_HOURS = int(os.getenv("REPORT_SLA_HIGH_HOURS", "24"))
    REPORT_SLA_MEDIUM_HOURS = int(os.getenv("REPORT_SLA_MEDIUM_HOURS", "72"))

    # Pagination
    MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "100"))

    # Observability
    SENTRY_DSN = os.getenv("SENTRY_DSN", "")
    SENTRY_ENVIRONMENT = os.getenv("SENTRY_ENVIRONMENT", "development")
    SENTRY_TRACES_SAMPLE_RATE = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1"))

    # Logging
    LOG_FORMAT = os.getenv("LOG_FORMAT", "text")  # "text" or "json"
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
