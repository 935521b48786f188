"""Startup validation: catch misconfigurations before the app serves traffic."""
from __future__ import annotations

import logging
import sys

from config.settings import settings

logger = logging.getLogger(__name__)

DEFAULT_JWT_SECRET = "marketplace-dev-secret-change-in-prod"


def validate_settings() -> list[str]:
    """Validate configuration. Returns list of warnings (empty = all good).

    Raises SystemExit for critical misconfigurations in production.
    """
    warnings: list[str] = []
    is_prod = bool(settings.DATABASE_URL) and "sqlite" not in settings.DATABASE_URL

    if is_prod and settings.JWT_SECRET == DEFAULT_JWT_SECRET:
        logger.critical("JWT_SECRET is still the default! Set a real secret for production.")
        sys.exit(1)

    if is_prod and "*" in settings.CORS_ORIGINS:
        warnings.append("CORS_ORIGINS is set to *; restrict in production")

    if settings.REVIEW_AUTO_FLAG_THRESHOLD < 1:
        warnings.append("REVIEW_AUTO_FLAG_THRESHOLD < 1; every reported review will be flagged")

    slas = (
        settings.REPORT_SLA_URGENT_HOURS,
        settings.REPORT_SLA_HIGH_HOURS,
        settings.REPORT_SLA_MEDIUM_HOURS,
    )
    if list(slas) != sorted(slas):
        warnings.append("Report SLA hours are not ordered urgent <= high <= medium")

    if is_prod and not settings.SENTRY_DSN:
        warnings.append("SENTRY_DSN not set; errors will only be logged")

    for w in warnings:
        logger.warning("%s", w)

    if not warnings:
        logger.info("All startup checks passed")

    return warnings
