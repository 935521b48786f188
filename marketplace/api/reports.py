"""Moderation reports API: submission plus the admin investigation workflow.

Users can report:
- Other users (harassment, fake profiles, safety concerns)
- Reviews (fake reviews, spam, off-topic)
- Services (misleading descriptions, pricing, safety violations)

Every admin endpoint lives under ``/admin/reports``.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.auth import require_admin, require_verified_user
from marketplace.db.engine import get_session
from marketplace.db.report_tables import ReportNoteRow, ReportRow
from marketplace.db.repository import ReportRepository, UserRepository
from marketplace.db.tables import as_utc, isoformat, utcnow
from marketplace.db.user_tables import UserRow, user_summary
from marketplace.errors import NotFoundError, ValidationError
from marketplace.models.common import is_valid_id
from marketplace.models.report import (
    AssignRequest,
    ClassificationRequest,
    EscalateRequest,
    NoteRequest,
    Priority,
    RelatedReportsRequest,
    ReportCreate,
    ReportReason,
    ReportStatus,
    ReportType,
    ResolveRequest,
    Severity,
    StatusChangeRequest,
)
from marketplace.services import moderation_filters as mf
from marketplace.services import report_workflow as wf

router = APIRouter(prefix="/api/v1", tags=["reports"])


# ── Submission ───────────────────────────────────────────────────────────────

@router.post("/reports", status_code=201)
async def submit_report(
    body: ReportCreate,
    user: UserRow = Depends(require_verified_user),
    session: AsyncSession = Depends(get_session),
):
    """Submit a report about a user, a review or a service."""
    report = wf.build_report(body, user)
    await ReportRepository(session).add(report)
    await session.commit()
    return {
        "success": True,
        "message": "Report created successfully",
        "report": _report_response(report, user),
    }


@router.get("/reports/my")
async def my_reports(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    user: UserRow = Depends(require_verified_user),
    session: AsyncSession = Depends(get_session),
):
    """Reports submitted by the current user, newest first."""
    p = mf.Page.from_query(page, limit)
    repo = ReportRepository(session)
    reports = await repo.by_reporter(user.id, p.offset, p.limit)
    total = await repo.count([ReportRow.reporter_id == user.id, ReportRow.is_deleted.is_(False)])
    return {
        "success": True,
        "reports": [_reporter_view(r) for r in reports],
        "pagination": p.meta(total),
    }


# ── Admin queue ──────────────────────────────────────────────────────────────

@router.get("/admin/reports")
async def list_reports(
    report_type: Optional[ReportType] = None,
    status: Optional[list[ReportStatus]] = Query(None),
    priority: Optional[list[Priority]] = Query(None),
    severity: Optional[list[Severity]] = Query(None),
    reason: Optional[list[ReportReason]] = Query(None),
    investigator_id: Optional[str] = None,
    reported_user_id: Optional[str] = None,
    reported_review_id: Optional[str] = None,
    reported_service_id: Optional[str] = None,
    reporter_id: Optional[str] = None,
    is_escalated: Optional[bool] = None,
    follow_up_required: Optional[bool] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    include_deleted: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    admin: UserRow = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Filterable, paginated moderation queue."""
    filters = mf.ReportFilters(
        report_type=report_type.value if report_type else None,
        status=[s.value for s in status or []],
        priority=[p.value for p in priority or []],
        severity=[s.value for s in severity or []],
        reason=[r.value for r in reason or []],
        investigator_id=investigator_id,
        reported_user_id=reported_user_id,
        reported_review_id=reported_review_id,
        reported_service_id=reported_service_id,
        reporter_id=reporter_id,
        is_escalated=is_escalated,
        follow_up_required=follow_up_required,
        date_from=date_from,
        date_to=date_to,
        include_deleted=include_deleted,
    )
    filters.validate()
    p = mf.Page.from_query(page, limit)
    rows, total = await ReportRepository(session).list(filters, p, sort_by, sort_order)
    return {
        "success": True,
        "reports": [_report_response(report, reporter) for report, reporter in rows],
        "pagination": p.meta(total),
        "filters": filters.applied(),
    }


@router.get("/admin/reports/analytics")
async def report_analytics(
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    admin: UserRow = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Queue health: volumes by status/priority/type, resolution time, backlog."""
    date_from, date_to = as_utc(date_from), as_utc(date_to)
    if date_from and date_to and date_from > date_to:
        raise ValidationError("date_from must be before date_to", fields=["date_from", "date_to"])
    repo = ReportRepository(session)
    conds = [ReportRow.is_deleted.is_(False)]
    if date_from:
        conds.append(ReportRow.created_at >= date_from)
    if date_to:
        conds.append(ReportRow.created_at <= date_to)

    by_status = await repo.counts_by(ReportRow.status, conds)
    durations = [
        (as_utc(resolved) - as_utc(created)).total_seconds() / 3600
        for created, resolved in await repo.resolution_times(conds)
        if created and resolved
    ]
    now = utcnow()
    return {
        "success": True,
        "data": {
            "total_reports": sum(by_status.values()),
            "avg_resolution_hours": round(sum(durations) / len(durations), 1) if durations else None,
            "by_status": by_status,
            "by_priority": await repo.counts_by(ReportRow.priority, conds),
            "by_type": await repo.counts_by(ReportRow.report_type, conds),
            "unassigned_count": await repo.count(mf.unassigned_conditions() + conds[1:]),
            "overdue_count": await repo.count(mf.overdue_conditions(now) + conds[1:]),
            "date_range": {"from": isoformat(date_from), "to": isoformat(date_to)},
        },
    }


@router.get("/admin/reports/unassigned")
async def unassigned_reports(
    priority: Optional[Priority] = None,
    admin: UserRow = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Pending reports nobody has picked up yet, most pressing and oldest first."""
    rows = await ReportRepository(session).unassigned(priority.value if priority else None)
    return {
        "success": True,
        "reports": [_report_response(report, reporter) for report, reporter in rows],
        "count": len(rows),
    }


@router.get("/admin/reports/overdue")
async def overdue_reports(
    admin: UserRow = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Open reports past their priority's SLA."""
    rows = await ReportRepository(session).overdue(utcnow())
    return {
        "success": True,
        "reports": [_report_response(report, reporter) for report, reporter in rows],
        "count": len(rows),
        "sla_hours": mf.sla_hours(),
    }


@router.get("/admin/reports/{report_id}")
async def get_report(
    report_id: str,
    admin: UserRow = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    report = await _load(session, report_id)
    return {"success": True, "report": await _report_detail(session, report)}


# ── Workflow ─────────────────────────────────────────────────────────────────

@router.patch("/admin/reports/{report_id}/assign")
async def assign_report(
    report_id: str,
    body: AssignRequest,
    admin: UserRow = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    report = await _load(session, report_id)
    wf.assign_investigator(report, body.investigator_id)
    await session.commit()
    return {
        "success": True,
        "message": "Investigator assigned successfully",
        "report": await _report_detail(session, report),
    }


@router.post("/admin/reports/{report_id}/notes", status_code=201)
async def add_note(
    report_id: str,
    body: NoteRequest,
    admin: UserRow = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    report = await _load(session, report_id)
    note = wf.build_note(report, admin.id, body.content, body.category, body.is_private)
    await ReportRepository(session).add_note(note)
    await session.commit()
    return {
        "success": True,
        "message": "Internal note added successfully",
        "note": _note_response(note, admin),
    }


@router.patch("/admin/reports/{report_id}/escalate")
async def escalate_report(
    report_id: str,
    body: EscalateRequest,
    admin: UserRow = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    report = await _load(session, report_id)
    wf.escalate(report, body.escalated_to, body.reason)
    await session.commit()
    return {
        "success": True,
        "message": "Report escalated successfully",
        "report": await _report_detail(session, report),
    }


@router.patch("/admin/reports/{report_id}/resolve")
async def resolve_report(
    report_id: str,
    body: ResolveRequest,
    admin: UserRow = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    report = await _load(session, report_id)
    wf.resolve(report, body.resolution_type, body.resolution_summary, body.actions, admin.id)
    await session.commit()
    return {
        "success": True,
        "message": "Report resolved successfully",
        "report": await _report_detail(session, report),
    }


@router.patch("/admin/reports/{report_id}/classification")
async def reclassify_report(
    report_id: str,
    body: ClassificationRequest,
    admin: UserRow = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    report = await _load(session, report_id)
    wf.update_classification(report, body.reason, body.custom_reason, body.severity)
    await session.commit()
    return {
        "success": True,
        "message": "Report classification updated",
        "report": await _report_detail(session, report),
    }


@router.patch("/admin/reports/{report_id}/status")
async def change_report_status(
    report_id: str,
    body: StatusChangeRequest,
    admin: UserRow = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    report = await _load(session, report_id)
    wf.change_status(report, body.status, body.follow_up_notes)
    await session.commit()
    return {
        "success": True,
        "message": "Report status updated",
        "report": await _report_detail(session, report),
    }


@router.post("/admin/reports/{report_id}/related")
async def link_related(
    report_id: str,
    body: RelatedReportsRequest,
    admin: UserRow = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Link other reports about the same incident. Existing links are kept."""
    report = await _load(session, report_id)
    wf.validate_related_ids(body.report_ids)
    missing = set(body.report_ids) - await ReportRepository(session).existing_ids(body.report_ids)
    if missing:
        raise NotFoundError(f"Related report not found: {', '.join(sorted(missing))}")
    wf.link_related_reports(report, body.report_ids)
    await session.commit()
    return {
        "success": True,
        "message": "Related reports linked",
        "report": await _report_detail(session, report),
    }


@router.delete("/admin/reports/{report_id}")
async def delete_report(
    report_id: str,
    admin: UserRow = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    report = await _load(session, report_id)
    wf.soft_delete(report, admin.id)
    await session.commit()
    return {"success": True, "message": "Report deleted successfully"}


# ── Helpers ──────────────────────────────────────────────────────────────────

async def _load(session: AsyncSession, report_id: str) -> ReportRow:
    if not is_valid_id(report_id):
        raise ValidationError("Invalid report ID format", fields=["report_id"])
    report = await ReportRepository(session).get(report_id)
    if not report:
        raise NotFoundError("Report not found")
    return report


def _subtype(report: ReportRow) -> dict:
    if report.report_type == ReportType.USER.value:
        return {
            "reported_user_id": report.reported_user_id,
            "reported_user_type": report.reported_user_type,
            "related_service_id": report.related_service_id,
            "related_project_id": report.related_project_id,
            "interaction_context": report.interaction_context,
            "behavior_type": report.behavior_type,
            "incident_date": isoformat(report.incident_date),
            "witness_ids": report.witness_ids or [],
        }
    if report.report_type == ReportType.REVIEW.value:
        return {
            "reported_review_id": report.reported_review_id,
            "review_issue": report.review_issue,
            "is_competitor_report": report.is_competitor_report,
            "has_conflict_of_interest": report.has_conflict_of_interest,
        }
    return {
        "reported_service_id": report.reported_service_id,
        "service_issue": report.service_issue,
        "customers_affected": report.customers_affected,
        "financial_impact": report.financial_impact,
    }


def _reporter_view(r: ReportRow) -> dict:
    """What the reporter may see of their own report."""
    return {
        "id": r.id,
        "report_type": r.report_type,
        "reason": r.reason,
        "status": r.status,
        "created_at": isoformat(r.created_at),
        "resolved_at": isoformat(r.resolved_at),
    }


def _report_response(r: ReportRow, reporter: Optional[UserRow]) -> dict:
    return {
        "id": r.id,
        "reporter": user_summary(reporter),
        "reporter_type": r.reporter_type,
        "report_type": r.report_type,
        "reason": r.reason,
        "custom_reason": r.custom_reason,
        "description": r.description,
        "evidence": r.evidence or [],
        "priority": r.priority,
        "severity": r.severity,
        "category": r.category,
        "status": r.status,
        "investigator_id": r.investigator_id,
        "assigned_at": isoformat(r.assigned_at),
        "resolution_type": r.resolution_type,
        "resolution_summary": r.resolution_summary,
        "resolution_actions": r.resolution_actions or [],
        "resolved_at": isoformat(r.resolved_at),
        "follow_up_required": r.follow_up_required,
        "follow_up_date": isoformat(r.follow_up_date),
        "follow_up_notes": r.follow_up_notes,
        "related_reports": r.related_reports or [],
        "is_escalated": r.is_escalated,
        "escalated_to": r.escalated_to,
        "escalated_at": isoformat(r.escalated_at),
        "escalation_reason": r.escalation_reason,
        "is_overdue": mf.is_overdue(r.priority, r.status, r.created_at, utcnow()),
        "is_deleted": r.is_deleted,
        "created_at": isoformat(r.created_at),
        "updated_at": isoformat(r.updated_at),
        **_subtype(r),
    }


def _note_response(note: ReportNoteRow, author: Optional[UserRow]) -> dict:
    return {
        "id": note.id,
        "author": user_summary(author),
        "content": note.content,
        "category": note.category,
        "is_private": note.is_private,
        "added_at": isoformat(note.added_at),
    }


async def _report_detail(session: AsyncSession, report: ReportRow) -> dict:
    """Full report with reporter, investigator, escalation target and notes populated."""
    users = await UserRepository(session).get_many(
        [report.reporter_id, report.investigator_id, report.escalated_to]
    )
    data = _report_response(report, users.get(report.reporter_id))
    data["investigator"] = user_summary(users.get(report.investigator_id))
    data["escalated_to_user"] = user_summary(users.get(report.escalated_to))
    data["internal_notes"] = [
        _note_response(note, author) for note, author in await ReportRepository(session).notes(report.id)
    ]
    related = await ReportRepository(session).summaries(report.related_reports or [])
    data["related"] = [
        {"id": r.id, "report_type": r.report_type, "reason": r.reason, "status": r.status}
        for r in related
    ]
    return data
