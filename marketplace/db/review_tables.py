"""Review, vote, reporter and response tables."""
from __future__ import annotations

from sqlalchemy import (
    Column, String, Integer, Text, DateTime, JSON, Boolean,
    ForeignKey, Index, UniqueConstraint, CheckConstraint, func,
)

from marketplace.db.tables import Base, new_id, utcnow
from marketplace.models.common import ModerationStatus


class ReviewRow(Base):
    """A rating + optional write-up left by one user about another (or their service)."""
    __tablename__ = "reviews"

    id = Column(String(36), primary_key=True, default=new_id)
    reviewer_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    reviewer_type = Column(String(20), nullable=False)
    reviewee_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    reviewee_type = Column(String(20), nullable=False)
    service_id = Column(String(36), nullable=True, index=True)
    project_id = Column(String(36), nullable=True, index=True)
    context = Column(String(30), nullable=False, default="general_experience")

    rating = Column(Integer, nullable=False)  # 1-5 stars
    title = Column(String(100), nullable=True)
    comment = Column(Text, nullable=True)
    images = Column(JSON, default=list)  # [FileReference dict]
    would_recommend = Column(Boolean, nullable=True)
    service_start_date = Column(DateTime(timezone=True), nullable=True)
    service_end_date = Column(DateTime(timezone=True), nullable=True)

    is_verified = Column(Boolean, nullable=False, default=False)
    quality_score = Column(Integer, nullable=False, default=0)
    is_high_quality = Column(Boolean, nullable=False, default=False)

    # Engagement: counters are only ever changed with in-SQL expressions
    helpful_votes = Column(Integer, nullable=False, default=0)
    view_count = Column(Integer, nullable=False, default=0)
    report_count = Column(Integer, nullable=False, default=0)

    moderation_status = Column(String(20), nullable=False, default=ModerationStatus.PENDING.value, index=True)
    moderated_by = Column(String(36), nullable=True)
    moderated_at = Column(DateTime(timezone=True), nullable=True)
    moderation_reason = Column(String(500), nullable=True)
    moderation_history = Column(JSON, default=list)

    is_deleted = Column(Boolean, nullable=False, default=False, index=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    deleted_by = Column(String(36), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_review_rating_range"),
        CheckConstraint("helpful_votes >= 0", name="ck_review_helpful_nonneg"),
        Index("ix_review_reviewee_status", "reviewee_id", "moderation_status", "is_deleted"),
        Index("ix_review_service_status", "service_id", "moderation_status", "is_deleted"),
        # One live review per (reviewer, reviewee, service); a NULL service counts as a value
        Index(
            "ix_review_tuple",
            reviewer_id, reviewee_id, func.coalesce(service_id, ""),
            unique=True,
            sqlite_where=is_deleted.is_(False),
            postgresql_where=is_deleted.is_(False),
        ),
    )


class ReviewHelpfulVoteRow(Base):
    """Who found a review helpful: one row per (review, user)."""
    __tablename__ = "review_helpful_votes"

    id = Column(String(36), primary_key=True, default=new_id)
    review_id = Column(String(36), ForeignKey("reviews.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("review_id", "user_id", name="uq_review_helpful_voter"),
    )


class ReviewReporterRow(Base):
    """Who reported a review: one row per (review, user)."""
    __tablename__ = "review_reporters"

    id = Column(String(36), primary_key=True, default=new_id)
    review_id = Column(String(36), ForeignKey("reviews.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("review_id", "user_id", name="uq_review_reporter"),
    )


class ReviewResponseRow(Base):
    """Reply from the reviewee or an admin. Append-only."""
    __tablename__ = "review_responses"

    id = Column(String(36), primary_key=True, default=new_id)
    review_id = Column(String(36), ForeignKey("reviews.id", ondelete="CASCADE"), nullable=False, index=True)
    responder_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    responder_type = Column(String(20), nullable=False)
    comment = Column(Text, nullable=False)
    is_official_response = Column(Boolean, nullable=False, default=False)
    responded_at = Column(DateTime(timezone=True), default=utcnow)
