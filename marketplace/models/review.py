"""Review request schemas."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from marketplace.models.common import FileReference, ModerationStatus, UserRole

IMAGE_MIME_TYPES = ("image/",)


class ReviewContext(str, Enum):
    PROJECT_COMPLETION = "project_completion"
    GENERAL_EXPERIENCE = "general_experience"
    DISPUTE_RESOLUTION = "dispute_resolution"


class ReviewCreate(BaseModel):
    reviewee_id: str
    reviewee_type: UserRole = UserRole.PROVIDER
    service_id: Optional[str] = None
    project_id: Optional[str] = None
    context: ReviewContext = ReviewContext.GENERAL_EXPERIENCE
    rating: int = Field(..., ge=1, le=5)
    title: Optional[str] = Field(None, max_length=100)
    comment: Optional[str] = Field(None, max_length=2000)
    images: list[FileReference] = Field(default_factory=list)
    would_recommend: Optional[bool] = None
    service_start_date: Optional[datetime] = None
    service_end_date: Optional[datetime] = None


class ReviewUpdate(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    title: Optional[str] = Field(None, max_length=100)
    comment: Optional[str] = Field(None, max_length=2000)
    images: Optional[list[FileReference]] = None
    would_recommend: Optional[bool] = None


class ResponseCreate(BaseModel):
    comment: str = Field(..., max_length=1000)


class ModerationRequest(BaseModel):
    status: ModerationStatus
    reason: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = Field(None, max_length=1000)
