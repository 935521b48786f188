"""Shared enums and value objects used by reviews and reports."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB


class UserRole(str, Enum):
    CUSTOMER = "customer"
    PROVIDER = "service_provider"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class ModerationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    HIDDEN = "hidden"
    FLAGGED = "flagged"


class FileReference(BaseModel):
    """Opaque pointer to an uploaded file: the bytes live elsewhere."""
    url: str = Field(..., min_length=1, max_length=2000)
    file_name: str = Field(..., min_length=1, max_length=255)
    file_size: Optional[int] = Field(None, ge=0, le=MAX_FILE_SIZE)
    mime_type: Optional[str] = Field(None, max_length=100)
    uploaded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def is_valid_id(value: Optional[str]) -> bool:
    """Record ids are UUID strings."""
    if not value or not isinstance(value, str):
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def bad_mime_types(files: list[FileReference], allowed: tuple[str, ...]) -> list[str]:
    """Return the file names whose MIME type is set but not in ``allowed``.

    Entries ending in ``/`` match a whole family (``"image/"``).
    """
    bad = []
    for f in files:
        if not f.mime_type:
            continue
        mime = f.mime_type.lower()
        if not any(mime.startswith(a) if a.endswith("/") else mime == a for a in allowed):
            bad.append(f.file_name)
    return bad
