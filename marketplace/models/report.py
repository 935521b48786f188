"""Report enums and request schemas.

All three report kinds share one flat payload; ``report_type`` decides which
of the optional subtype fields must be present (see
``marketplace.services.report_workflow.validate_new_report``).
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from marketplace.models.common import FileReference, UserRole

EVIDENCE_MIME_TYPES = ("image/", "application/pdf", "text/plain", "video/mp4")


class ReportType(str, Enum):
    USER = "user_report"
    REVIEW = "review_report"
    SERVICE = "service_report"


class ReportReason(str, Enum):
    INAPPROPRIATE_BEHAVIOR = "inappropriate_behavior"
    POOR_SERVICE_QUALITY = "poor_service_quality"
    COMMUNICATION_ISSUES = "communication_issues"
    PAYMENT_DISPUTES = "payment_disputes"
    SAFETY_CONCERNS = "safety_concerns"
    FAKE_PROFILE = "fake_profile"
    SPAM_CONTENT = "spam_content"
    HARASSMENT = "harassment"
    DISCRIMINATION = "discrimination"
    OTHER = "other"


class Severity(str, Enum):
    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"
    CRITICAL = "critical"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ReportStatus(str, Enum):
    PENDING = "pending"
    UNDER_INVESTIGATION = "under_investigation"
    REQUIRES_MORE_INFO = "requires_more_info"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"
    ESCALATED = "escalated"


class ResolutionType(str, Enum):
    NO_ACTION = "no_action"
    WARNING_ISSUED = "warning_issued"
    ACCOUNT_SUSPENDED = "account_suspended"
    ACCOUNT_RESTRICTED = "account_restricted"
    ACCOUNT_BANNED = "account_banned"
    CONTENT_REMOVED = "content_removed"


class ActionType(str, Enum):
    WARNING = "warning"
    SUSPENSION = "suspension"
    CONTENT_REMOVAL = "content_removal"
    ACCOUNT_RESTRICTION = "account_restriction"
    NO_ACTION = "no_action"


class NoteCategory(str, Enum):
    INVESTIGATION = "investigation"
    RESOLUTION = "resolution"
    FOLLOW_UP = "follow_up"
    ESCALATION = "escalation"


class InteractionContext(str, Enum):
    SERVICE_BOOKING = "service_booking"
    COMMUNICATION = "communication"
    PAYMENT = "payment"
    SERVICE_DELIVERY = "service_delivery"
    OTHER = "other"


class BehaviorType(str, Enum):
    COMMUNICATION = "communication"
    RELIABILITY = "reliability"
    SAFETY = "safety"
    PROFESSIONALISM = "professionalism"
    OTHER = "other"


class ReviewIssue(str, Enum):
    FAKE_REVIEW = "fake_review"
    INAPPROPRIATE_CONTENT = "inappropriate_content"
    SPAM = "spam"
    HARASSMENT = "harassment"
    OFF_TOPIC = "off_topic"
    OTHER = "other"


class ServiceIssue(str, Enum):
    MISLEADING_DESCRIPTION = "misleading_description"
    PRICING_ISSUES = "pricing_issues"
    QUALITY_CONCERNS = "quality_concerns"
    SAFETY_VIOLATIONS = "safety_violations"
    OTHER = "other"


class ReportCreate(BaseModel):
    report_type: ReportType
    reason: Optional[ReportReason] = None
    custom_reason: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    evidence: list[FileReference] = Field(default_factory=list)
    severity: Severity = Severity.MODERATE

    # user_report
    reported_user_id: Optional[str] = None
    reported_user_type: UserRole = UserRole.CUSTOMER
    related_service_id: Optional[str] = None
    related_project_id: Optional[str] = None
    interaction_context: Optional[InteractionContext] = None
    behavior_type: Optional[BehaviorType] = None
    incident_date: Optional[datetime] = None
    witness_ids: list[str] = Field(default_factory=list)

    # review_report
    reported_review_id: Optional[str] = None
    review_issue: Optional[ReviewIssue] = None
    is_competitor_report: bool = False
    has_conflict_of_interest: bool = False

    # service_report
    reported_service_id: Optional[str] = None
    service_issue: Optional[ServiceIssue] = None
    customers_affected: Optional[int] = Field(None, ge=0)
    financial_impact: Optional[float] = Field(None, ge=0)


class ReportActionIn(BaseModel):
    action_type: ActionType
    description: str = Field(..., min_length=1, max_length=500)
    duration: Optional[int] = Field(None, ge=0, description="Days, for suspensions")
    conditions: list[str] = Field(default_factory=list)


class AssignRequest(BaseModel):
    investigator_id: str


class NoteRequest(BaseModel):
    content: str = Field("", max_length=1000)
    category: NoteCategory = NoteCategory.INVESTIGATION
    is_private: bool = False


class EscalateRequest(BaseModel):
    escalated_to: str
    reason: str = Field("", max_length=500)


class ResolveRequest(BaseModel):
    resolution_type: ResolutionType
    resolution_summary: str = Field("", max_length=1000)
    actions: list[ReportActionIn] = Field(default_factory=list)


class ClassificationRequest(BaseModel):
    reason: Optional[ReportReason] = None
    custom_reason: Optional[str] = Field(None, max_length=200)
    severity: Optional[Severity] = None


class StatusChangeRequest(BaseModel):
    status: ReportStatus
    follow_up_notes: Optional[str] = Field(None, max_length=1000)


class RelatedReportsRequest(BaseModel):
    report_ids: list[str] = Field(..., min_length=1, max_length=50)
