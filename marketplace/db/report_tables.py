"""Moderation report tables.

One flat ``reports`` table holds all three report kinds; ``report_type`` says
which subtype columns are populated.
"""
from __future__ import annotations

from sqlalchemy import (
    Column, String, Text, DateTime, Integer, Float, Boolean, JSON,
    ForeignKey, Index,
)

from marketplace.db.tables import Base, new_id, utcnow


class ReportRow(Base):
    """User-submitted report about another user, a review or a service."""
    __tablename__ = "reports"

    id = Column(String(36), primary_key=True, default=new_id)
    reporter_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    reporter_type = Column(String(20), nullable=False)
    report_type = Column(String(20), nullable=False, index=True)  # user_report, review_report, service_report
    reason = Column(String(40), nullable=False, index=True)
    custom_reason = Column(String(200), nullable=True)
    description = Column(Text, nullable=False)
    evidence = Column(JSON, default=list)  # [FileReference dict]

    # Classification
    priority = Column(String(10), nullable=False, default="medium", index=True)
    severity = Column(String(10), nullable=False, default="moderate", index=True)
    category = Column(String(40), nullable=True, index=True)

    # Investigation
    status = Column(String(30), nullable=False, default="pending", index=True)
    investigator_id = Column(String(36), nullable=True, index=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)

    # Resolution
    resolution_summary = Column(String(1000), nullable=True)
    resolution_actions = Column(JSON, default=list)
    resolved_at = Column(DateTime(timezone=True), nullable=True, index=True)
    resolution_type = Column(String(30), nullable=True)

    # Follow-up
    follow_up_required = Column(Boolean, nullable=False, default=False, index=True)
    follow_up_date = Column(DateTime(timezone=True), nullable=True)
    follow_up_notes = Column(String(1000), nullable=True)

    related_reports = Column(JSON, default=list)  # [report id]
    is_escalated = Column(Boolean, nullable=False, default=False, index=True)
    escalated_to = Column(String(36), nullable=True)
    escalated_at = Column(DateTime(timezone=True), nullable=True)
    escalation_reason = Column(String(500), nullable=True)

    # user_report
    reported_user_id = Column(String(36), nullable=True, index=True)
    reported_user_type = Column(String(20), nullable=True)
    related_service_id = Column(String(36), nullable=True)
    related_project_id = Column(String(36), nullable=True)
    interaction_context = Column(String(30), nullable=True)
    behavior_type = Column(String(30), nullable=True)
    incident_date = Column(DateTime(timezone=True), nullable=True)
    witness_ids = Column(JSON, default=list)

    # review_report
    reported_review_id = Column(String(36), nullable=True, index=True)
    review_issue = Column(String(30), nullable=True)
    is_competitor_report = Column(Boolean, nullable=True)
    has_conflict_of_interest = Column(Boolean, nullable=True)

    # service_report
    reported_service_id = Column(String(36), nullable=True, index=True)
    service_issue = Column(String(30), nullable=True)
    customers_affected = Column(Integer, nullable=True)
    financial_impact = Column(Float, nullable=True)

    # Soft delete
    is_deleted = Column(Boolean, nullable=False, default=False, index=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    deleted_by = Column(String(36), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_report_status_priority_created", "status", "priority", "created_at"),
        Index("ix_report_investigator_status", "investigator_id", "status"),
        Index("ix_report_type_reason", "report_type", "reason"),
        Index("ix_report_followup", "follow_up_required", "follow_up_date"),
    )


class ReportNoteRow(Base):
    """Internal moderator note on a report. Never edited or removed."""
    __tablename__ = "report_notes"

    id = Column(String(36), primary_key=True, default=new_id)
    report_id = Column(String(36), ForeignKey("reports.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content = Column(String(1000), nullable=False)
    category = Column(String(20), nullable=False, default="investigation")
    is_private = Column(Boolean, nullable=False, default=False)
    added_at = Column(DateTime(timezone=True), default=utcnow)
