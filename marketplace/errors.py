"""Domain errors raised by the review and moderation services.

Each error carries the HTTP status and a short machine-readable code; the
handlers in ``marketplace.api.main`` turn them into the JSON error envelope.
"""
from __future__ import annotations

from typing import Optional


class MarketplaceError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    error = "internal_error"

    def __init__(self, message: str, fields: Optional[list[str]] = None):
        super().__init__(message)
        self.message = message
        self.fields = fields or []


class ValidationError(MarketplaceError):
    """Missing or malformed input, enum or length violation."""

    status_code = 400
    error = "validation_error"


class AuthorizationError(MarketplaceError):
    status_code = 403
    error = "forbidden"


class NotFoundError(MarketplaceError):
    status_code = 404
    error = "not_found"


class ConflictError(MarketplaceError):
    status_code = 409
    error = "conflict"
