"""Tests for review quality scoring."""
from types import SimpleNamespace

import pytest

from marketplace.services.review_quality import (
    apply_quality,
    compute_quality_score,
    score_review,
)


def test_rating_only_gets_base_score():
    assert compute_quality_score(None) == 20


@pytest.mark.parametrize("length,expected", [
    (1, 30),
    (50, 30),
    (51, 40),
    (100, 40),
    (101, 50),
])
def test_comment_length_bands(length, expected):
    assert compute_quality_score("x" * length) == expected


def test_empty_comment_adds_nothing():
    assert compute_quality_score("") == 20


def test_image_bonus_capped_at_three():
    assert compute_quality_score(None, images=[{}]) == 30
    assert compute_quality_score(None, images=[{}] * 3) == 50
    assert compute_quality_score(None, images=[{}] * 5) == 50


def test_verified_and_recommend_bonuses():
    assert compute_quality_score(None, is_verified=True) == 40
    assert compute_quality_score(None, would_recommend=True) == 30
    # not recommending is still an answer, but earns nothing
    assert compute_quality_score(None, would_recommend=False) == 20


def test_full_marks():
    assert compute_quality_score("x" * 101, [{}] * 3, True, True) == 100
    # the cap absorbs the longest-comment bonus
    assert compute_quality_score("x" * 60, [{}] * 3, True, True) == 100
    assert compute_quality_score("x" * 101, [{}] * 2, True, True) == 100
    assert compute_quality_score("x" * 101, [{}] * 3, False, True) == 90
    assert compute_quality_score("x" * 101, [{}] * 3, True, None) == 100
    assert compute_quality_score("short", [{}] * 3, True, True) == 90


def test_score_always_in_range():
    for comment in (None, "", "short", "x" * 2000):
        for images in ([], [{}] * 10):
            for verified in (False, True):
                for recommend in (None, False, True):
                    score = compute_quality_score(comment, images, verified, recommend)
                    assert 20 <= score <= 100


def test_high_quality_threshold():
    review = SimpleNamespace(comment="x" * 101, images=[{}], is_verified=True, would_recommend=None)
    result = score_review(review)
    assert result.score == 80
    assert result.is_high_quality is True

    review.is_verified = False
    assert score_review(review).is_high_quality is False


def test_apply_quality_sets_fields():
    review = SimpleNamespace(
        comment="Great work", images=[], is_verified=False, would_recommend=True,
        quality_score=0, is_high_quality=True,
    )
    apply_quality(review)
    assert review.quality_score == 40
    assert review.is_high_quality is False
