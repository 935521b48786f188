"""Tests for report classification and follow-up scheduling."""
from datetime import datetime, timedelta, timezone

import pytest

from marketplace.services.report_classifier import (
    category_for,
    classify,
    follow_up_for,
    priority_for,
    raise_priority_floor,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("reason,severity,expected", [
    ("harassment", "minor", "urgent"),
    ("safety_concerns", "moderate", "urgent"),
    ("discrimination", "minor", "urgent"),
    ("poor_service_quality", "critical", "urgent"),
    ("fake_profile", "minor", "high"),
    ("payment_disputes", "moderate", "high"),
    ("spam_content", "major", "high"),
    ("poor_service_quality", "moderate", "medium"),
    ("communication_issues", "minor", "low"),
    ("other", "minor", "low"),
])
def test_priority_rules(reason, severity, expected):
    assert priority_for(reason, severity) == expected


def test_urgent_reason_wins_over_minor_severity():
    assert classify("harassment", "minor").priority == "urgent"


@pytest.mark.parametrize("reason,category", [
    ("inappropriate_behavior", "Behavioral"),
    ("poor_service_quality", "Service Quality"),
    ("communication_issues", "Communication"),
    ("payment_disputes", "Financial"),
    ("safety_concerns", "Safety"),
    ("fake_profile", "Trust & Safety"),
    ("spam_content", "Content Moderation"),
    ("harassment", "Trust & Safety"),
    ("discrimination", "Trust & Safety"),
    ("other", "General"),
])
def test_category_table(reason, category):
    assert category_for(reason) == category


def test_unknown_reason_falls_back_to_general():
    c = classify("something_new", "minor")
    assert c.category == "General"
    assert c.priority == "low"


@pytest.mark.parametrize("current,expected", [
    ("low", "high"),
    ("medium", "high"),
    ("high", "high"),
    ("urgent", "urgent"),
])
def test_raise_priority_floor_never_downgrades(current, expected):
    assert raise_priority_floor(current) == expected


@pytest.mark.parametrize("resolution", ["no_action", "account_banned", "content_removed", None])
def test_no_follow_up_for_terminal_resolutions(resolution):
    assert follow_up_for(resolution, [], NOW) == (False, None)


@pytest.mark.parametrize("resolution", ["warning_issued", "account_restricted"])
def test_follow_up_without_date(resolution):
    assert follow_up_for(resolution, [], NOW) == (True, None)


def test_suspension_schedules_follow_up_at_end_of_suspension():
    actions = [
        {"action_type": "warning", "duration": 3},
        {"action_type": "suspension", "duration": None},
        {"action_type": "suspension", "duration": 7},
        {"action_type": "suspension", "duration": 30},
    ]
    required, when = follow_up_for("account_suspended", actions, NOW)
    assert required is True
    assert when == NOW + timedelta(days=7)


def test_suspension_without_duration_has_no_date():
    assert follow_up_for("account_suspended", [{"action_type": "suspension"}], NOW) == (True, None)
