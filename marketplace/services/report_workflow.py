"""Report lifecycle: validation of new reports and the moderation state machine.

Everything here works on a single ``ReportRow`` in memory. The caller loads
the row, calls one of these functions and commits; validation always happens
before the row is touched, so a failed call leaves it unchanged.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional

from marketplace.db.report_tables import ReportNoteRow, ReportRow
from marketplace.db.tables import as_utc, utcnow
from marketplace.errors import ValidationError
from marketplace.models.common import bad_mime_types, is_valid_id
from marketplace.models.report import (
    EVIDENCE_MIME_TYPES,
    NoteCategory,
    ReportActionIn,
    ReportCreate,
    ReportReason,
    ReportStatus,
    ReportType,
    ResolutionType,
    Severity,
)
from marketplace.services.report_classifier import classify, follow_up_for, raise_priority_floor

logger = logging.getLogger(__name__)

MIN_DESCRIPTION = 10
MAX_DESCRIPTION = 2000
MAX_EVIDENCE = 10
MAX_NOTE = 1000
MAX_ESCALATION_REASON = 500
MAX_RESOLUTION_SUMMARY = 1000
MAX_CONDITION = 200

# Status changes allowed through change_status; the others have dedicated operations
MANUAL_STATUSES = {ReportStatus.REQUIRES_MORE_INFO, ReportStatus.DISMISSED}

_SUBTYPE_FIELDS = {
    ReportType.USER: ("reported_user_id",),
    ReportType.REVIEW: ("reported_review_id", "review_issue"),
    ReportType.SERVICE: ("reported_service_id", "service_issue"),
}

_SUBTYPE_COLUMNS = {
    ReportType.USER: (
        "reported_user_id", "reported_user_type", "related_service_id",
        "related_project_id", "interaction_context", "behavior_type",
        "incident_date", "witness_ids",
    ),
    ReportType.REVIEW: (
        "reported_review_id", "review_issue", "is_competitor_report",
        "has_conflict_of_interest",
    ),
    ReportType.SERVICE: (
        "reported_service_id", "service_issue", "customers_affected",
        "financial_impact",
    ),
}


def _value(v):
    if isinstance(v, datetime):
        return as_utc(v)
    return v.value if hasattr(v, "value") else v


def _require_custom_reason(reason, custom_reason: Optional[str]) -> None:
    if reason == ReportReason.OTHER and not (custom_reason or "").strip():
        raise ValidationError(
            "Custom reason is required when reason is 'other'", fields=["custom_reason"]
        )


# ── Create ──────────────────────────────────────────────────────────────────

def validate_new_report(payload: ReportCreate) -> None:
    """Check a submission before anything is persisted.

    Raises ``ValidationError`` whose ``fields`` lists every missing or
    malformed field for the first failing group.
    """
    missing = []
    if payload.reason is None:
        missing.append("reason")
    if not (payload.description or "").strip():
        missing.append("description")
    if missing:
        raise ValidationError("Reason and description are required", fields=missing)

    description = payload.description.strip()
    if not MIN_DESCRIPTION <= len(description) <= MAX_DESCRIPTION:
        raise ValidationError(
            f"Description must be between {MIN_DESCRIPTION} and {MAX_DESCRIPTION} characters",
            fields=["description"],
        )

    _require_custom_reason(payload.reason, payload.custom_reason)

    required = _SUBTYPE_FIELDS[payload.report_type]
    missing = [name for name in required if getattr(payload, name) in (None, "")]
    if missing:
        raise ValidationError(
            f"Missing required fields for {payload.report_type.value}: {', '.join(missing)}",
            fields=missing,
        )

    id_fields = [name for name in _SUBTYPE_COLUMNS[payload.report_type] if name.endswith("_id")]
    invalid = [name for name in id_fields
               if getattr(payload, name) is not None and not is_valid_id(getattr(payload, name))]
    if payload.report_type == ReportType.USER and not all(is_valid_id(w) for w in payload.witness_ids):
        invalid.append("witness_ids")
    if invalid:
        raise ValidationError(f"Invalid ID format for: {', '.join(invalid)}", fields=invalid)

    if len(payload.evidence) > MAX_EVIDENCE:
        raise ValidationError(f"At most {MAX_EVIDENCE} evidence files allowed", fields=["evidence"])
    bad = bad_mime_types(payload.evidence, EVIDENCE_MIME_TYPES)
    if bad:
        raise ValidationError(f"Unsupported evidence file type: {', '.join(bad)}", fields=["evidence"])


def build_report(payload: ReportCreate, reporter, now: Optional[datetime] = None) -> ReportRow:
    """Validate a submission and turn it into a classified, pending ``ReportRow``."""
    validate_new_report(payload)
    now = now or utcnow()
    reason = payload.reason.value
    severity = payload.severity.value
    c = classify(reason, severity)

    report = ReportRow(
        reporter_id=reporter.id,
        reporter_type=reporter.role,
        report_type=payload.report_type.value,
        reason=reason,
        custom_reason=(payload.custom_reason or "").strip() or None,
        description=payload.description.strip(),
        evidence=[f.model_dump(mode="json") for f in payload.evidence],
        severity=severity,
        priority=c.priority,
        category=c.category,
        status=ReportStatus.PENDING.value,
        follow_up_required=False,
        is_escalated=False,
        is_deleted=False,
        related_reports=[],
        resolution_actions=[],
        witness_ids=[],
        created_at=now,
        updated_at=now,
    )
    for name in _SUBTYPE_COLUMNS[payload.report_type]:
        setattr(report, name, _value(getattr(payload, name)))
    return report


# ── State machine ───────────────────────────────────────────────────────────

def assign_investigator(report: ReportRow, investigator_id: str, now: Optional[datetime] = None) -> ReportRow:
    if not is_valid_id(investigator_id):
        raise ValidationError("Invalid investigator ID format", fields=["investigator_id"])
    now = now or utcnow()
    report.investigator_id = investigator_id
    report.status = ReportStatus.UNDER_INVESTIGATION.value
    report.assigned_at = now
    report.updated_at = now
    logger.info("report %s assigned to %s", report.id, investigator_id)
    return report


def build_note(
    report: ReportRow,
    author_id: str,
    content: Optional[str],
    category: NoteCategory = NoteCategory.INVESTIGATION,
    is_private: bool = False,
    now: Optional[datetime] = None,
) -> ReportNoteRow:
    """Validate and build an internal note for ``report``. Notes are append-only."""
    text = (content or "").strip()
    if not text:
        raise ValidationError("Note content is required", fields=["content"])
    if len(text) > MAX_NOTE:
        raise ValidationError(f"Note content cannot exceed {MAX_NOTE} characters", fields=["content"])
    now = now or utcnow()
    report.updated_at = now
    return ReportNoteRow(
        report_id=report.id,
        author_id=author_id,
        content=text,
        category=_value(category),
        is_private=is_private,
        added_at=now,
    )


def escalate(report: ReportRow, escalated_to: str, reason: Optional[str], now: Optional[datetime] = None) -> ReportRow:
    """Escalate to another moderator; priority is raised to at least high."""
    if not is_valid_id(escalated_to):
        raise ValidationError("Invalid escalated to ID format", fields=["escalated_to"])
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("Escalation reason is required", fields=["reason"])
    if len(reason) > MAX_ESCALATION_REASON:
        raise ValidationError(
            f"Escalation reason cannot exceed {MAX_ESCALATION_REASON} characters", fields=["reason"]
        )
    now = now or utcnow()
    report.status = ReportStatus.ESCALATED.value
    report.is_escalated = True
    report.escalated_to = escalated_to
    report.escalated_at = now
    report.escalation_reason = reason
    report.priority = raise_priority_floor(report.priority)
    report.updated_at = now
    logger.info(
        "report %s escalated to %s (priority %s)", report.id, escalated_to, report.priority,
        extra={"report_id": report.id},
    )
    return report


def resolve(
    report: ReportRow,
    resolution_type: Optional[ResolutionType],
    summary: Optional[str],
    actions: Iterable[ReportActionIn],
    executed_by: str,
    now: Optional[datetime] = None,
) -> ReportRow:
    """Close the report, stamping each action with who executed it and when."""
    summary = (summary or "").strip()
    if resolution_type is None or not summary:
        raise ValidationError(
            "Resolution type and summary are required",
            fields=[n for n, v in (("resolution_type", resolution_type), ("resolution_summary", summary)) if not v],
        )
    if len(summary) > MAX_RESOLUTION_SUMMARY:
        raise ValidationError(
            f"Resolution summary cannot exceed {MAX_RESOLUTION_SUMMARY} characters",
            fields=["resolution_summary"],
        )
    actions = list(actions or [])
    if any(len(c) > MAX_CONDITION for a in actions for c in a.conditions):
        raise ValidationError(
            f"Action conditions cannot exceed {MAX_CONDITION} characters", fields=["actions"]
        )

    now = now or utcnow()
    stamped = []
    for action in actions:
        entry = action.model_dump(mode="json")
        entry["executed_by"] = executed_by
        entry["executed_at"] = now.isoformat()
        stamped.append(entry)

    rtype = _value(resolution_type)
    report.status = ReportStatus.RESOLVED.value
    report.resolved_at = now
    report.resolution_type = rtype
    report.resolution_summary = summary
    report.resolution_actions = stamped
    report.follow_up_required, report.follow_up_date = follow_up_for(rtype, stamped, now)
    report.updated_at = now
    logger.info(
        "report %s resolved as %s by %s", report.id, rtype, executed_by,
        extra={"report_id": report.id, "moderator_id": executed_by},
    )
    return report


def update_classification(
    report: ReportRow,
    reason: Optional[ReportReason] = None,
    custom_reason: Optional[str] = None,
    severity: Optional[Severity] = None,
    now: Optional[datetime] = None,
) -> ReportRow:
    """Change reason and/or severity and recompute priority and category."""
    if reason is None and severity is None:
        raise ValidationError("Reason or severity is required", fields=["reason", "severity"])
    new_reason = _value(reason) if reason is not None else report.reason
    new_custom = custom_reason if custom_reason is not None else report.custom_reason
    _require_custom_reason(ReportReason(new_reason), new_custom)

    now = now or utcnow()
    report.reason = new_reason
    report.custom_reason = (new_custom or "").strip() or None
    if severity is not None:
        report.severity = _value(severity)
    c = classify(report.reason, report.severity)
    report.priority = c.priority
    report.category = c.category
    report.updated_at = now
    logger.info("report %s reclassified: priority=%s category=%s", report.id, c.priority, c.category)
    return report


def change_status(
    report: ReportRow,
    status: ReportStatus,
    follow_up_notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ReportRow:
    """Move a report to ``requires_more_info`` or ``dismissed``."""
    if status not in MANUAL_STATUSES:
        allowed = ", ".join(sorted(s.value for s in MANUAL_STATUSES))
        raise ValidationError(f"Status can only be changed to: {allowed}", fields=["status"])
    now = now or utcnow()
    report.status = status.value
    if status == ReportStatus.DISMISSED:
        report.resolved_at = now
    if follow_up_notes is not None:
        report.follow_up_notes = follow_up_notes.strip() or None
    report.updated_at = now
    logger.info("report %s status -> %s", report.id, status.value)
    return report


def validate_related_ids(report_ids: Iterable[str]) -> None:
    if not all(is_valid_id(rid) for rid in report_ids):
        raise ValidationError("Invalid related report ID format", fields=["report_ids"])


def link_related_reports(report: ReportRow, report_ids: Iterable[str], now: Optional[datetime] = None) -> ReportRow:
    """Union ``report_ids`` into the report's related set, keeping first-seen order."""
    ids = list(report_ids)
    validate_related_ids(ids)
    merged = list(report.related_reports or [])
    for rid in ids:
        if rid != report.id and rid not in merged:
            merged.append(rid)
    # reassign so the JSON column is marked dirty
    report.related_reports = merged
    report.updated_at = now or utcnow()
    return report


def soft_delete(report: ReportRow, deleted_by: str, now: Optional[datetime] = None) -> ReportRow:
    now = now or utcnow()
    report.is_deleted = True
    report.deleted_at = now
    report.deleted_by = deleted_by
    report.updated_at = now
    logger.info("report %s deleted by %s", report.id, deleted_by)
    return report
