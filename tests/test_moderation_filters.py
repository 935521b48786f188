"""Tests for moderation queue filters, pagination and the SLA predicate."""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.dialects import sqlite

from marketplace.errors import ValidationError
from marketplace.services.moderation_filters import (
    Page,
    ReportFilters,
    build_report_conditions,
    is_overdue,
    report_order_by,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
VALID_ID = "6f1c2d3e-4a5b-4c6d-8e7f-901234567890"


# ── Overdue ──────────────────────────────────────────────────────────────────

def test_high_report_just_past_sla_is_overdue():
    assert is_overdue("high", "pending", NOW - timedelta(hours=24, seconds=1), NOW)


def test_high_report_just_inside_sla_is_not_overdue():
    assert not is_overdue("high", "pending", NOW - timedelta(hours=23, minutes=59), NOW)


def test_exactly_at_sla_is_not_overdue():
    assert not is_overdue("urgent", "pending", NOW - timedelta(hours=4), NOW)


@pytest.mark.parametrize("priority,hours", [("urgent", 4), ("high", 24), ("medium", 72)])
def test_each_priority_sla(priority, hours):
    created = NOW - timedelta(hours=hours, minutes=1)
    assert is_overdue(priority, "under_investigation", created, NOW)


def test_low_priority_never_overdue():
    assert not is_overdue("low", "pending", NOW - timedelta(days=365), NOW)


@pytest.mark.parametrize("status", ["resolved", "dismissed", "escalated", "requires_more_info"])
def test_closed_or_parked_reports_never_overdue(status):
    assert not is_overdue("urgent", status, NOW - timedelta(days=2), NOW)


def test_naive_created_at_treated_as_utc():
    naive = (NOW - timedelta(hours=5)).replace(tzinfo=None)
    assert is_overdue("urgent", "pending", naive, NOW)


# ── Pagination ───────────────────────────────────────────────────────────────

def test_page_clamps_limit():
    assert Page.from_query(1, 500).limit == 100
    assert Page.from_query(0, 0) == Page(page=1, limit=1)


def test_page_meta():
    page = Page.from_query(2, 10)
    assert page.offset == 10
    assert page.meta(25) == {
        "total": 25, "page": 2, "pages": 3, "limit": 10,
        "has_next": True, "has_prev": True,
    }


def test_page_meta_empty():
    meta = Page.from_query(1, 20).meta(0)
    assert meta["pages"] == 0
    assert meta["has_next"] is False
    assert meta["has_prev"] is False


# ── Filters ──────────────────────────────────────────────────────────────────

def test_invalid_id_filter_rejected():
    with pytest.raises(ValidationError) as exc:
        ReportFilters(reporter_id="not-an-id", investigator_id=VALID_ID).validate()
    assert exc.value.fields == ["reporter_id"]


def test_inverted_date_range_rejected():
    with pytest.raises(ValidationError):
        ReportFilters(date_from=NOW, date_to=NOW - timedelta(days=1)).validate()


def test_applied_echoes_only_set_filters():
    f = ReportFilters(status=["pending"], priority=[], reporter_id=VALID_ID, date_from=NOW)
    assert f.applied() == {
        "status": ["pending"],
        "reporter_id": VALID_ID,
        "date_from": NOW.isoformat(),
    }


def test_default_conditions_exclude_deleted():
    conds = build_report_conditions(ReportFilters())
    assert len(conds) == 1
    assert "is_deleted" in str(conds[0])


def test_include_deleted_drops_soft_delete_filter():
    assert build_report_conditions(ReportFilters(include_deleted=True)) == []


def test_multi_value_filter_uses_in():
    conds = build_report_conditions(ReportFilters(include_deleted=True, status=["pending", "escalated"]))
    assert "IN" in str(conds[0])


def _compile(clauses) -> str:
    return ", ".join(
        str(c.compile(dialect=sqlite.dialect(), compile_kwargs={"literal_binds": True}))
        for c in clauses
    )


def test_priority_sort_uses_rank_not_string_order():
    sql = _compile(report_order_by("priority", "desc"))
    assert "CASE" in sql
    # most pressing (rank 0) first
    assert sql.split(",")[0].strip().endswith("ASC")


def test_unknown_sort_falls_back_to_created_at():
    sql = _compile(report_order_by("password", "asc"))
    assert sql.startswith("reports.created_at ASC")
