"""Rating summaries for providers and services.

Computed on demand with SQL aggregates over approved, non-deleted reviews.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Optional

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.db.review_tables import ReviewRow
from marketplace.models.common import ModerationStatus


@dataclass
class RatingSummary:
    total_reviews: int = 0
    average_rating: float = 0.0
    rating_distribution: dict[str, int] = field(
        default_factory=lambda: {str(i): 0 for i in range(1, 6)}
    )
    # None when no review answered "would you recommend"
    recommendation_rate: Optional[float] = None

    def to_dict(self) -> dict:
        out = asdict(self)
        out["average_rating"] = round(self.average_rating, 1)
        if self.recommendation_rate is not None:
            out["recommendation_rate"] = round(self.recommendation_rate, 1)
        return out


def _conditions(reviewee_id: Optional[str], service_id: Optional[str]) -> list:
    conds = [
        ReviewRow.moderation_status == ModerationStatus.APPROVED.value,
        ReviewRow.is_deleted.is_(False),
    ]
    if reviewee_id:
        conds.append(ReviewRow.reviewee_id == reviewee_id)
    if service_id:
        conds.append(ReviewRow.service_id == service_id)
    return conds


async def get_rating_summary(
    session: AsyncSession,
    reviewee_id: Optional[str] = None,
    service_id: Optional[str] = None,
) -> RatingSummary:
    """Aggregate the approved reviews of a provider and/or a service.

    The recommendation rate averages 100/0 per answered review, so reviews
    that left ``would_recommend`` empty stay out of the denominator.
    """
    if not reviewee_id and not service_id:
        raise ValueError("reviewee_id or service_id is required")
    conds = _conditions(reviewee_id, service_id)

    recommend_points = case(
        (ReviewRow.would_recommend.is_(True), 100.0),
        (ReviewRow.would_recommend.is_(False), 0.0),
        else_=None,
    )
    row = (await session.execute(
        select(
            func.count(ReviewRow.id).label("total"),
            func.avg(ReviewRow.rating).label("avg_rating"),
            func.avg(recommend_points).label("recommendation_rate"),
        ).where(*conds)
    )).one()

    summary = RatingSummary()
    summary.total_reviews = row.total or 0
    if not summary.total_reviews:
        return summary
    summary.average_rating = float(row.avg_rating or 0)
    if row.recommendation_rate is not None:
        summary.recommendation_rate = float(row.recommendation_rate)

    dist_rows = (await session.execute(
        select(ReviewRow.rating, func.count().label("count"))
        .where(*conds)
        .group_by(ReviewRow.rating)
    )).all()
    for rating_val, cnt in dist_rows:
        summary.rating_distribution[str(rating_val)] = cnt
    return summary
