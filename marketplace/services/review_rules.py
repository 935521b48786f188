"""Review lifecycle rules: creation, edits, responses, moderation, deletion.

Pure functions over a ``ReviewRow``; the API layer loads rows, applies one
of these and commits. Engagement counters are not touched here, see
``ReviewRepository`` for those.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from marketplace.auth import is_admin
from marketplace.db.review_tables import ReviewResponseRow, ReviewRow
from marketplace.db.tables import as_utc, utcnow
from marketplace.errors import AuthorizationError, ValidationError
from marketplace.models.common import ModerationStatus, bad_mime_types, is_valid_id
from marketplace.models.review import (
    IMAGE_MIME_TYPES,
    ResponseCreate,
    ReviewContext,
    ReviewCreate,
    ReviewUpdate,
)
from marketplace.services.review_quality import apply_quality

logger = logging.getLogger(__name__)

MAX_IMAGES = 5
MAX_RESPONSE = 1000

# Changing any of these sends the review back to the moderation queue
_CONTENT_FIELDS = ("comment", "images")
# Fields an edit may set back to null
_CLEARABLE_FIELDS = ("title", "comment", "would_recommend")


def derive_verified(context, project_id: Optional[str]) -> bool:
    """A review is verified when it closes out a completed project."""
    ctx = context.value if hasattr(context, "value") else context
    return ctx == ReviewContext.PROJECT_COMPLETION.value and bool(project_id)


def _check_images(images) -> None:
    if len(images) > MAX_IMAGES:
        raise ValidationError(f"Maximum {MAX_IMAGES} images allowed per review", fields=["images"])
    bad = bad_mime_types(images, IMAGE_MIME_TYPES)
    if bad:
        raise ValidationError(f"Images must be image files: {', '.join(bad)}", fields=["images"])


def validate_new_review(payload: ReviewCreate, reviewer_id: str) -> None:
    if not is_valid_id(payload.reviewee_id):
        raise ValidationError("Invalid reviewee ID", fields=["reviewee_id"])
    for name in ("service_id", "project_id"):
        value = getattr(payload, name)
        if value is not None and not is_valid_id(value):
            label = name.split("_")[0]
            raise ValidationError(f"Invalid {label} ID", fields=[name])
    if payload.reviewee_id == reviewer_id:
        raise ValidationError("Cannot review yourself", fields=["reviewee_id"])
    _check_images(payload.images)
    start, end = as_utc(payload.service_start_date), as_utc(payload.service_end_date)
    if start and end and end < start:
        raise ValidationError(
            "Service end date must be after or equal to start date",
            fields=["service_start_date", "service_end_date"],
        )


def build_review(payload: ReviewCreate, reviewer, now: Optional[datetime] = None) -> ReviewRow:
    """Validate and build a pending review with its quality score computed."""
    validate_new_review(payload, reviewer.id)
    now = now or utcnow()
    review = ReviewRow(
        reviewer_id=reviewer.id,
        reviewer_type=reviewer.role,
        reviewee_id=payload.reviewee_id,
        reviewee_type=payload.reviewee_type.value,
        service_id=payload.service_id,
        project_id=payload.project_id,
        context=payload.context.value,
        rating=payload.rating,
        title=(payload.title or "").strip() or None,
        comment=(payload.comment or "").strip() or None,
        images=[f.model_dump(mode="json") for f in payload.images],
        would_recommend=payload.would_recommend,
        service_start_date=as_utc(payload.service_start_date),
        service_end_date=as_utc(payload.service_end_date),
        is_verified=derive_verified(payload.context, payload.project_id),
        helpful_votes=0,
        view_count=0,
        report_count=0,
        moderation_status=ModerationStatus.PENDING.value,
        moderation_history=[],
        is_deleted=False,
        created_at=now,
        updated_at=now,
    )
    apply_quality(review)
    return review


def apply_update(review: ReviewRow, update: ReviewUpdate, now: Optional[datetime] = None) -> ReviewRow:
    """Apply the author's edits; content edits reset moderation to pending."""
    updates = {
        key: val for key, val in update.model_dump(exclude_unset=True).items()
        if val is not None or key in _CLEARABLE_FIELDS
    }
    if not updates:
        raise ValidationError("No valid updates provided")
    if update.images is not None:
        _check_images(update.images)
        updates["images"] = [f.model_dump(mode="json") for f in update.images]
    for key in ("title", "comment"):
        if key in updates:
            updates[key] = (updates[key] or "").strip() or None

    for key, val in updates.items():
        setattr(review, key, val)
    if any(key in updates for key in _CONTENT_FIELDS):
        review.moderation_status = ModerationStatus.PENDING.value
    apply_quality(review)
    review.updated_at = now or utcnow()
    return review


def build_response(review: ReviewRow, responder, payload: ResponseCreate, now: Optional[datetime] = None) -> ReviewResponseRow:
    """Only the reviewee or an admin may respond; the reviewee's reply is official."""
    comment = payload.comment.strip()
    if not comment:
        raise ValidationError("Comment is required", fields=["comment"])
    if len(comment) > MAX_RESPONSE:
        raise ValidationError(f"Comment cannot exceed {MAX_RESPONSE} characters", fields=["comment"])
    is_reviewee = responder.id == review.reviewee_id
    if not is_reviewee and not is_admin(responder):
        raise AuthorizationError("Only the reviewed party or admin can respond")
    return ReviewResponseRow(
        review_id=review.id,
        responder_id=responder.id,
        responder_type=responder.role,
        comment=comment,
        is_official_response=is_reviewee,
        responded_at=now or utcnow(),
    )


def moderate(
    review: ReviewRow,
    status: ModerationStatus,
    moderator_id: str,
    reason: Optional[str] = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ReviewRow:
    """Set the moderation status and append an entry to the history."""
    now = now or utcnow()
    previous = review.moderation_status
    review.moderation_status = status.value
    review.moderated_by = moderator_id
    review.moderated_at = now
    review.moderation_reason = reason
    # reassign so the JSON column is marked dirty
    review.moderation_history = [*(review.moderation_history or []), {
        "status": status.value,
        "previous_status": previous,
        "moderated_by": moderator_id,
        "moderated_at": now.isoformat(),
        "reason": reason,
        "notes": notes,
    }]
    review.updated_at = now
    logger.info(
        "review %s moderated %s -> %s by %s", review.id, previous, status.value, moderator_id,
        extra={"review_id": review.id, "moderator_id": moderator_id},
    )
    return review


def soft_delete(review: ReviewRow, deleted_by: str, now: Optional[datetime] = None) -> ReviewRow:
    now = now or utcnow()
    review.is_deleted = True
    review.deleted_at = now
    review.deleted_by = deleted_by
    review.updated_at = now
    return review
