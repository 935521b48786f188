"""Rule-based report classification.

Runs explicitly on the write path before a report is persisted: whenever the
reason or severity changes, priority and category are recomputed; whenever
the resolution type changes, follow-up requirements are recomputed.
Nothing here raises: unknown values fall back to the safe defaults.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

URGENT_REASONS = {"safety_concerns", "harassment", "discrimination"}
HIGH_REASONS = {"fake_profile", "payment_disputes"}

CATEGORY_BY_REASON = {
    "inappropriate_behavior": "Behavioral",
    "poor_service_quality": "Service Quality",
    "communication_issues": "Communication",
    "payment_disputes": "Financial",
    "safety_concerns": "Safety",
    "fake_profile": "Trust & Safety",
    "spam_content": "Content Moderation",
    "harassment": "Trust & Safety",
    "discrimination": "Trust & Safety",
    "other": "General",
}
DEFAULT_CATEGORY = "General"

FOLLOW_UP_RESOLUTIONS = {"warning_issued", "account_suspended", "account_restricted"}

# Lower rank sorts first
PRIORITY_RANK = {"urgent": 0, "high": 1, "medium": 2, "low": 3}
SEVERITY_RANK = {"critical": 0, "major": 1, "moderate": 2, "minor": 3}


@dataclass(frozen=True)
class Classification:
    priority: str
    category: str


def priority_for(reason: str, severity: str) -> str:
    """Ordered rule: the first matching branch wins."""
    if reason in URGENT_REASONS or severity == "critical":
        return "urgent"
    if reason in HIGH_REASONS or severity == "major":
        return "high"
    if severity == "moderate":
        return "medium"
    return "low"


def category_for(reason: str) -> str:
    return CATEGORY_BY_REASON.get(reason, DEFAULT_CATEGORY)


def classify(reason: str, severity: str) -> Classification:
    return Classification(priority=priority_for(reason, severity), category=category_for(reason))


def raise_priority_floor(priority: str, floor: str = "high") -> str:
    """Return ``priority`` bumped up to at least ``floor``; never downgrades."""
    if PRIORITY_RANK.get(priority, PRIORITY_RANK["low"]) <= PRIORITY_RANK[floor]:
        return priority
    return floor


def follow_up_for(
    resolution_type: Optional[str],
    actions: Iterable[dict],
    now: datetime,
) -> tuple[bool, Optional[datetime]]:
    """Work out (follow_up_required, follow_up_date) for a resolution.

    Suspensions schedule the follow-up for when the first suspension action
    with a duration runs out.
    """
    required = resolution_type in FOLLOW_UP_RESOLUTIONS
    if not required or resolution_type != "account_suspended":
        return required, None
    for action in actions or []:
        if action.get("action_type") == "suspension" and action.get("duration"):
            return True, now + timedelta(days=action["duration"])
    return True, None
