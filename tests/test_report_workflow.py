"""Tests for report validation and the moderation state machine (no DB)."""
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from marketplace.errors import ValidationError
from marketplace.models.report import ReportActionIn, ReportCreate, ReportStatus
from marketplace.services import report_workflow as wf

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
REPORTER = SimpleNamespace(id="0b8d4a8e-1a2b-4c3d-9e8f-0a1b2c3d4e5f", role="customer")
TARGET = "6f1c2d3e-4a5b-4c6d-8e7f-901234567890"
MODERATOR = "9a8b7c6d-5e4f-4a3b-8c2d-1e0f9a8b7c6d"


def _payload(**overrides) -> ReportCreate:
    data = {
        "report_type": "user_report",
        "reason": "inappropriate_behavior",
        "description": "Was rude during the booking call",
        "reported_user_id": TARGET,
    }
    data.update(overrides)
    return ReportCreate(**data)


def _report(**overrides):
    report = wf.build_report(_payload(**overrides), REPORTER, now=NOW)
    report.id = "11111111-2222-4333-8444-555555555555"
    return report


# ── Create ───────────────────────────────────────────────────────────────────

def test_build_report_classifies_and_starts_pending():
    report = _report(reason="harassment", severity="minor")
    assert report.status == "pending"
    assert report.priority == "urgent"
    assert report.category == "Trust & Safety"
    assert report.reported_user_id == TARGET
    assert report.reported_user_type == "customer"
    assert report.created_at == NOW


def test_missing_reason_and_description_listed():
    with pytest.raises(ValidationError) as exc:
        wf.validate_new_report(_payload(reason=None, description="   "))
    assert exc.value.fields == ["reason", "description"]


def test_description_too_short():
    with pytest.raises(ValidationError) as exc:
        wf.validate_new_report(_payload(description="too short"))
    assert exc.value.fields == ["description"]


def test_other_reason_requires_custom_reason():
    with pytest.raises(ValidationError) as exc:
        wf.validate_new_report(_payload(reason="other"))
    assert exc.value.message == "Custom reason is required when reason is 'other'"


def test_other_reason_with_custom_reason_is_general():
    report = _report(reason="other", custom_reason="X")
    assert report.category == "General"
    assert report.custom_reason == "X"


@pytest.mark.parametrize("report_type,missing", [
    ("user_report", ["reported_user_id"]),
    ("review_report", ["reported_review_id", "review_issue"]),
    ("service_report", ["reported_service_id", "service_issue"]),
])
def test_subtype_required_fields(report_type, missing):
    with pytest.raises(ValidationError) as exc:
        wf.validate_new_report(_payload(report_type=report_type, reported_user_id=None))
    assert exc.value.fields == missing


def test_malformed_reference_rejected():
    with pytest.raises(ValidationError) as exc:
        wf.validate_new_report(_payload(reported_user_id="abc123"))
    assert exc.value.fields == ["reported_user_id"]


def test_malformed_witness_rejected():
    with pytest.raises(ValidationError) as exc:
        wf.validate_new_report(_payload(witness_ids=[TARGET, "nope"]))
    assert exc.value.fields == ["witness_ids"]


def test_evidence_limits():
    doc = {"url": "https://files.example.com/a", "file_name": "a.pdf", "mime_type": "application/pdf"}
    wf.validate_new_report(_payload(evidence=[doc] * 10))
    with pytest.raises(ValidationError):
        wf.validate_new_report(_payload(evidence=[doc] * 11))
    exe = {"url": "https://files.example.com/b", "file_name": "b.exe", "mime_type": "application/x-msdownload"}
    with pytest.raises(ValidationError) as exc:
        wf.validate_new_report(_payload(evidence=[exe]))
    assert "b.exe" in exc.value.message


def test_review_report_keeps_only_its_own_fields():
    report = _report(
        report_type="review_report", reported_review_id=TARGET, review_issue="spam",
        reported_user_id=None, is_competitor_report=True,
    )
    assert report.reported_review_id == TARGET
    assert report.review_issue == "spam"
    assert report.is_competitor_report is True
    assert report.reported_user_id is None


# ── Transitions ──────────────────────────────────────────────────────────────

def test_assign_investigator():
    report = _report()
    wf.assign_investigator(report, MODERATOR, now=NOW)
    assert report.status == "under_investigation"
    assert report.investigator_id == MODERATOR
    assert report.assigned_at == NOW


def test_assign_rejects_bad_id_without_mutating():
    report = _report()
    with pytest.raises(ValidationError):
        wf.assign_investigator(report, "bob")
    assert report.status == "pending"
    assert report.investigator_id is None


def test_note_content_required():
    report = _report()
    with pytest.raises(ValidationError):
        wf.build_note(report, MODERATOR, "   ")
    note = wf.build_note(report, MODERATOR, "  Called the provider  ", now=NOW)
    assert note.content == "Called the provider"
    assert note.category == "investigation"
    assert note.is_private is False


def test_escalate_raises_medium_to_high():
    report = _report(reason="poor_service_quality", severity="moderate")
    assert report.priority == "medium"
    wf.escalate(report, MODERATOR, "Needs senior review", now=NOW)
    assert report.priority == "high"
    assert report.status == "escalated"
    assert report.is_escalated is True
    assert report.escalated_at == NOW


def test_escalate_keeps_urgent():
    report = _report(reason="harassment")
    wf.escalate(report, MODERATOR, "Repeat offender")
    assert report.priority == "urgent"


def test_escalate_requires_reason():
    report = _report()
    with pytest.raises(ValidationError):
        wf.escalate(report, MODERATOR, "")
    assert report.status == "pending"


def test_resolve_stamps_actions_and_schedules_follow_up():
    report = _report()
    actions = [ReportActionIn(action_type="suspension", description="7 day suspension", duration=7)]
    wf.resolve(report, "account_suspended", "Suspended for a week", actions, MODERATOR, now=NOW)
    assert report.status == "resolved"
    assert report.resolved_at == NOW
    assert report.resolution_actions[0]["executed_by"] == MODERATOR
    assert report.resolution_actions[0]["executed_at"] == NOW.isoformat()
    assert report.follow_up_required is True
    assert report.follow_up_date == NOW + timedelta(days=7)


def test_resolve_requires_summary():
    report = _report()
    with pytest.raises(ValidationError) as exc:
        wf.resolve(report, "no_action", "  ", [], MODERATOR)
    assert exc.value.fields == ["resolution_summary"]
    assert report.status == "pending"


def test_resolve_no_action_needs_no_follow_up():
    report = _report()
    wf.resolve(report, "no_action", "Nothing to do", [], MODERATOR, now=NOW)
    assert report.follow_up_required is False
    assert report.follow_up_date is None


def test_update_classification_recomputes():
    report = _report(reason="communication_issues", severity="minor")
    assert report.priority == "low"
    wf.update_classification(report, severity="critical")
    assert report.priority == "urgent"
    assert report.category == "Communication"
    with pytest.raises(ValidationError):
        wf.update_classification(report, reason="other")


def test_change_status_only_manual_targets():
    report = _report()
    with pytest.raises(ValidationError):
        wf.change_status(report, ReportStatus.RESOLVED)
    wf.change_status(report, ReportStatus.DISMISSED, "Duplicate of earlier report", now=NOW)
    assert report.status == "dismissed"
    assert report.resolved_at == NOW
    assert report.follow_up_notes == "Duplicate of earlier report"


def test_link_related_is_a_set_union():
    report = _report()
    a, b = TARGET, MODERATOR
    wf.link_related_reports(report, [a])
    wf.link_related_reports(report, [a, b, report.id])
    assert report.related_reports == [a, b]


def test_soft_delete():
    report = _report()
    wf.soft_delete(report, MODERATOR, now=NOW)
    assert report.is_deleted is True
    assert report.deleted_by == MODERATOR
    assert report.deleted_at == NOW
