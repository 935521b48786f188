"""Quality scoring for reviews.

Scores each review 0-100 from how much useful content it carries. Used to
rank reviews and to badge the high-quality ones.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

BASE_SCORE = 20  # every review has a rating
MAX_IMAGE_BONUS = 30
HIGH_QUALITY_THRESHOLD = 70


@dataclass
class QualityResult:
    score: int
    is_high_quality: bool


def _comment_bonus(comment: Optional[str]) -> int:
    if not comment:
        return 0
    if len(comment) > 100:
        return 30
    if len(comment) > 50:
        return 20
    return 10


def compute_quality_score(
    comment: Optional[str],
    images: Optional[Sequence] = None,
    is_verified: bool = False,
    would_recommend: Optional[bool] = None,
) -> int:
    """Score a review from its current content.

    Scoring:
      - Base (rating present): 20
      - Comment: >100 chars 30, >50 chars 20, otherwise 10
      - Images: 10 each, at most 30
      - Verified (completed project): 20
      - Would recommend: 10
    Capped at 100. Always recomputed from scratch, never adjusted by deltas.
    """
    score = BASE_SCORE
    score += _comment_bonus(comment)
    if images:
        score += min(len(images) * 10, MAX_IMAGE_BONUS)
    if is_verified:
        score += 20
    if would_recommend is True:
        score += 10
    return min(score, 100)


def score_review(review) -> QualityResult:
    """Score anything with review-shaped attributes (a ``ReviewRow`` usually)."""
    score = compute_quality_score(
        review.comment,
        review.images,
        bool(review.is_verified),
        review.would_recommend,
    )
    return QualityResult(score=score, is_high_quality=score >= HIGH_QUALITY_THRESHOLD)


def apply_quality(review) -> None:
    """Recompute and store ``quality_score``/``is_high_quality`` on a review row."""
    result = score_review(review)
    review.quality_score = result.score
    review.is_high_quality = result.is_high_quality
