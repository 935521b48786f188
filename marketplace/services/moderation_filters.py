"""Moderation queue query building.

Turns the flat optional filter parameters of the admin report listing into
SQLAlchemy predicates, and owns the sort, pagination and SLA rules shared by
the listing, unassigned and overdue queries.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import and_, case, or_

from config.settings import settings
from marketplace.db.report_tables import ReportRow
from marketplace.db.tables import as_utc
from marketplace.errors import ValidationError
from marketplace.models.common import is_valid_id
from marketplace.services.report_classifier import PRIORITY_RANK, SEVERITY_RANK

OPEN_STATUSES = ("pending", "under_investigation")
SORTABLE_FIELDS = ("created_at", "updated_at", "priority", "severity", "status")

_ID_FILTERS = (
    "investigator_id",
    "reported_user_id",
    "reported_review_id",
    "reported_service_id",
    "reporter_id",
)


@dataclass
class ReportFilters:
    report_type: Optional[str] = None
    status: list[str] = field(default_factory=list)
    priority: list[str] = field(default_factory=list)
    severity: list[str] = field(default_factory=list)
    reason: list[str] = field(default_factory=list)
    investigator_id: Optional[str] = None
    reported_user_id: Optional[str] = None
    reported_review_id: Optional[str] = None
    reported_service_id: Optional[str] = None
    reporter_id: Optional[str] = None
    is_escalated: Optional[bool] = None
    follow_up_required: Optional[bool] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    include_deleted: bool = False

    def __post_init__(self) -> None:
        self.date_from = as_utc(self.date_from)
        self.date_to = as_utc(self.date_to)

    def validate(self) -> None:
        bad = [name for name in _ID_FILTERS
               if getattr(self, name) is not None and not is_valid_id(getattr(self, name))]
        if bad:
            raise ValidationError(f"Invalid ID format for: {', '.join(bad)}", fields=bad)
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValidationError("date_from must be before date_to", fields=["date_from", "date_to"])

    def applied(self) -> dict:
        """The filters that were actually set, for echoing back to the caller."""
        out = {}
        for name, value in self.__dict__.items():
            if value is None or value == [] or (name == "include_deleted" and not value):
                continue
            out[name] = value.isoformat() if isinstance(value, datetime) else value
        return out


def build_report_conditions(filters: ReportFilters) -> list:
    """Compose the WHERE clauses for a report listing."""
    conds = []
    if not filters.include_deleted:
        conds.append(ReportRow.is_deleted.is_(False))
    if filters.report_type:
        conds.append(ReportRow.report_type == filters.report_type)
    for column, values in (
        (ReportRow.status, filters.status),
        (ReportRow.priority, filters.priority),
        (ReportRow.severity, filters.severity),
        (ReportRow.reason, filters.reason),
    ):
        if len(values) == 1:
            conds.append(column == values[0])
        elif values:
            conds.append(column.in_(values))
    for name in _ID_FILTERS:
        value = getattr(filters, name)
        if value is not None:
            conds.append(getattr(ReportRow, name) == value)
    if filters.is_escalated is not None:
        conds.append(ReportRow.is_escalated.is_(filters.is_escalated))
    if filters.follow_up_required is not None:
        conds.append(ReportRow.follow_up_required.is_(filters.follow_up_required))
    if filters.date_from:
        conds.append(ReportRow.created_at >= filters.date_from)
    if filters.date_to:
        conds.append(ReportRow.created_at <= filters.date_to)
    return conds


def priority_rank():
    """SQL expression ranking priorities urgent=0 .. low=3 (string order would be wrong)."""
    return case(PRIORITY_RANK, value=ReportRow.priority, else_=len(PRIORITY_RANK))


def severity_rank():
    return case(SEVERITY_RANK, value=ReportRow.severity, else_=len(SEVERITY_RANK))


def report_order_by(sort_by: str = "created_at", sort_order: str = "desc") -> list:
    """ORDER BY for the listing. Unknown sort fields fall back to created_at.

    "desc" on priority/severity means most pressing first.
    """
    if sort_by not in SORTABLE_FIELDS:
        sort_by = "created_at"
    descending = sort_order != "asc"
    if sort_by == "priority":
        expr = priority_rank()
        # rank 0 is the most pressing, so invert the direction
        primary = expr.asc() if descending else expr.desc()
    elif sort_by == "severity":
        expr = severity_rank()
        primary = expr.asc() if descending else expr.desc()
    else:
        column = getattr(ReportRow, sort_by)
        primary = column.desc() if descending else column.asc()
    return [primary, ReportRow.id.asc()]


@dataclass
class Page:
    page: int
    limit: int

    @classmethod
    def from_query(cls, page: int = 1, limit: int = 20) -> "Page":
        page = max(1, page)
        limit = min(settings.MAX_PAGE_SIZE, max(1, limit))
        return cls(page=page, limit=limit)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def meta(self, total: int) -> dict:
        pages = math.ceil(total / self.limit) if total else 0
        return {
            "total": total,
            "page": self.page,
            "pages": pages,
            "limit": self.limit,
            "has_next": self.page < pages,
            "has_prev": self.page > 1,
        }


# ── SLA / overdue ───────────────────────────────────────────────────────────

def sla_hours() -> dict[str, int]:
    """Hours an open report of each priority may wait. Low has no SLA."""
    return {
        "urgent": settings.REPORT_SLA_URGENT_HOURS,
        "high": settings.REPORT_SLA_HIGH_HOURS,
        "medium": settings.REPORT_SLA_MEDIUM_HOURS,
    }


def is_overdue(priority: str, status: str, created_at: Optional[datetime], now: datetime) -> bool:
    """Pure mirror of ``overdue_conditions`` for a single report."""
    hours = sla_hours().get(priority)
    if hours is None or status not in OPEN_STATUSES or created_at is None:
        return False
    return as_utc(created_at) < now - timedelta(hours=hours)


def overdue_conditions(now: datetime) -> list:
    sla = or_(*[
        and_(ReportRow.priority == priority, ReportRow.created_at < now - timedelta(hours=hours))
        for priority, hours in sla_hours().items()
    ])
    return [
        ReportRow.status.in_(OPEN_STATUSES),
        ReportRow.is_deleted.is_(False),
        sla,
    ]


def unassigned_conditions(priority: Optional[str] = None) -> list:
    conds = [
        ReportRow.status == "pending",
        ReportRow.investigator_id.is_(None),
        ReportRow.is_deleted.is_(False),
    ]
    if priority:
        conds.append(ReportRow.priority == priority)
    return conds
