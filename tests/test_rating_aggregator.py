"""Tests for on-demand rating summaries."""
import pytest

from marketplace.db.review_tables import ReviewRow
from marketplace.services.rating_aggregator import get_rating_summary
from tests.conftest import TestSession, make_user

SERVICE_ID = "6f1c2d3e-4a5b-4c6d-8e7f-901234567890"


async def _seed(provider_id: str, rows: list[tuple]):
    """rows: (rating, would_recommend, status, is_deleted)"""
    reviewers = [await make_user() for _ in rows]
    async with TestSession() as s:
        for reviewer, (rating, recommend, status, deleted) in zip(reviewers, rows):
            s.add(ReviewRow(
                reviewer_id=reviewer["id"], reviewer_type="customer",
                reviewee_id=provider_id, reviewee_type="service_provider",
                service_id=SERVICE_ID, rating=rating, would_recommend=recommend,
                moderation_status=status, is_deleted=deleted,
            ))
        await s.commit()


async def test_summary_counts_only_approved_live_reviews():
    provider = await make_user("service_provider")
    await _seed(provider["id"], [
        (5, True, "approved", False),
        (4, True, "approved", False),
        (2, False, "approved", False),
        (3, None, "approved", False),
        (1, False, "pending", False),
        (1, False, "approved", True),
    ])
    async with TestSession() as s:
        summary = await get_rating_summary(s, reviewee_id=provider["id"])

    assert summary.total_reviews == 4
    assert summary.average_rating == pytest.approx(3.5)
    assert summary.rating_distribution == {"1": 0, "2": 1, "3": 1, "4": 1, "5": 1}
    # 2 of the 3 reviews that answered recommend
    assert summary.to_dict()["recommendation_rate"] == 66.7


async def test_summary_by_service():
    provider = await make_user("service_provider")
    await _seed(provider["id"], [(5, True, "approved", False)])
    async with TestSession() as s:
        summary = await get_rating_summary(s, service_id=SERVICE_ID)
    assert summary.total_reviews == 1
    assert summary.recommendation_rate == 100.0


async def test_no_reviews():
    provider = await make_user("service_provider")
    async with TestSession() as s:
        summary = await get_rating_summary(s, reviewee_id=provider["id"])
    assert summary.to_dict() == {
        "total_reviews": 0,
        "average_rating": 0.0,
        "rating_distribution": {"1": 0, "2": 0, "3": 0, "4": 0, "5": 0},
        "recommendation_rate": None,
    }


async def test_recommendation_rate_null_when_nobody_answered():
    provider = await make_user("service_provider")
    await _seed(provider["id"], [(4, None, "approved", False), (5, None, "approved", False)])
    async with TestSession() as s:
        summary = await get_rating_summary(s, reviewee_id=provider["id"])
    assert summary.total_reviews == 2
    assert summary.recommendation_rate is None
