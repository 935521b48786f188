"""Reviews API: writing, browsing, engagement, responses and admin moderation."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.auth import require_admin, require_user, require_verified_user
from marketplace.db.engine import get_session
from marketplace.db.repository import ReviewRepository, UserRepository
from marketplace.db.review_tables import ReviewResponseRow, ReviewRow
from marketplace.db.tables import as_utc, isoformat
from marketplace.db.user_tables import UserRow, user_summary
from marketplace.errors import ConflictError, NotFoundError, ValidationError
from marketplace.models.common import ModerationStatus, is_valid_id
from marketplace.models.review import (
    ModerationRequest,
    ResponseCreate,
    ReviewContext,
    ReviewCreate,
    ReviewUpdate,
)
from marketplace.services import review_rules
from marketplace.services.moderation_filters import Page
from marketplace.services.rating_aggregator import get_rating_summary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["reviews"])

_SORT_COLUMNS = {
    "created_at": ReviewRow.created_at,
    "rating": ReviewRow.rating,
    "helpful_votes": ReviewRow.helpful_votes,
    "quality_score": ReviewRow.quality_score,
}


# ── Query helpers ────────────────────────────────────────────────────────────

def _check_id(value: Optional[str], label: str) -> None:
    if value is not None and not is_valid_id(value):
        raise ValidationError(f"Invalid {label} ID")


def _review_conditions(
    reviewee_id: Optional[str] = None,
    service_id: Optional[str] = None,
    rating: Optional[int] = None,
    context: Optional[ReviewContext] = None,
    is_verified: Optional[bool] = None,
    would_recommend: Optional[bool] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    status: Optional[list[str]] = None,
) -> list:
    date_from, date_to = as_utc(date_from), as_utc(date_to)
    conds = []
    if status:
        conds.append(ReviewRow.moderation_status.in_(status))
    if reviewee_id:
        conds.append(ReviewRow.reviewee_id == reviewee_id)
    if service_id:
        conds.append(ReviewRow.service_id == service_id)
    if rating:
        conds.append(ReviewRow.rating == rating)
    if context:
        conds.append(ReviewRow.context == context.value)
    if is_verified is not None:
        conds.append(ReviewRow.is_verified.is_(is_verified))
    if would_recommend is not None:
        conds.append(ReviewRow.would_recommend.is_(would_recommend))
    if date_from:
        conds.append(ReviewRow.created_at >= date_from)
    if date_to:
        conds.append(ReviewRow.created_at <= date_to)
    return conds


def _order(sort: str, sort_order: str) -> list:
    column = _SORT_COLUMNS.get(sort, ReviewRow.created_at)
    primary = column.asc() if sort_order == "asc" else column.desc()
    return [primary, ReviewRow.id.asc()]


async def _list_page(
    session: AsyncSession,
    conditions: list,
    page: Page,
    sort: str = "created_at",
    sort_order: str = "desc",
    include_deleted: bool = False,
) -> dict:
    repo = ReviewRepository(session)
    rows, total = await repo.list(
        conditions, _order(sort, sort_order), page.offset, page.limit,
        include_deleted=include_deleted,
    )
    responses = await repo.responses_for([review.id for review, _ in rows])
    return {
        "success": True,
        "data": [_review_response(review, user, responses.get(review.id)) for review, user in rows],
        "pagination": page.meta(total),
    }


async def _owned_review(session: AsyncSession, review_id: str, user: UserRow) -> ReviewRow:
    _check_id(review_id, "review")
    review = await ReviewRepository(session).get(review_id)
    if not review or review.reviewer_id != user.id:
        raise NotFoundError("Review not found or unauthorized")
    return review


async def _approved_review(session: AsyncSession, review_id: str) -> ReviewRow:
    _check_id(review_id, "review")
    review = await ReviewRepository(session).get(review_id, status=ModerationStatus.APPROVED)
    if not review:
        raise NotFoundError("Review not found")
    return review


async def _full_review(session: AsyncSession, review: ReviewRow) -> dict:
    reviewer = await UserRepository(session).get(review.reviewer_id)
    responses = await ReviewRepository(session).responses_for([review.id])
    return _review_response(review, reviewer, responses[review.id])


# ── Create / browse ──────────────────────────────────────────────────────────

@router.post("/reviews", status_code=201)
async def create_review(
    req: ReviewCreate,
    user: UserRow = Depends(require_verified_user),
    session: AsyncSession = Depends(get_session),
):
    """Submit a review. One live review per (reviewer, reviewee, service)."""
    review = review_rules.build_review(req, user)

    if not await UserRepository(session).get(req.reviewee_id):
        raise NotFoundError("Reviewee not found")

    repo = ReviewRepository(session)
    if await repo.find_duplicate(user.id, req.reviewee_id, req.service_id):
        raise ConflictError("You have already reviewed this item")

    try:
        await repo.add(review)
    except IntegrityError:
        # A concurrent submission for the same tuple won the unique index
        await session.rollback()
        raise ConflictError("You have already reviewed this item")
    await session.commit()
    return {
        "success": True,
        "message": "Review created successfully",
        "review": _review_response(review, user, []),
    }


@router.get("/reviews")
async def list_reviews(
    reviewee_id: Optional[str] = None,
    service_id: Optional[str] = None,
    rating: Optional[int] = Query(None, ge=1, le=5),
    context: Optional[ReviewContext] = None,
    is_verified: Optional[bool] = None,
    would_recommend: Optional[bool] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    sort: str = Query("created_at", pattern="^(created_at|rating|helpful_votes|quality_score)$"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    session: AsyncSession = Depends(get_session),
):
    """Public listing of approved reviews."""
    _check_id(reviewee_id, "reviewee")
    _check_id(service_id, "service")
    conds = _review_conditions(
        reviewee_id, service_id, rating, context, is_verified, would_recommend,
        date_from, date_to, status=[ModerationStatus.APPROVED.value],
    )
    return await _list_page(session, conds, Page.from_query(page, limit), sort, sort_order)


@router.get("/reviews/provider-stats/{provider_id}")
async def provider_stats(provider_id: str, session: AsyncSession = Depends(get_session)):
    _check_id(provider_id, "provider")
    summary = await get_rating_summary(session, reviewee_id=provider_id)
    return {"success": True, "data": {"provider_id": provider_id, **summary.to_dict()}}


@router.get("/reviews/service-stats/{service_id}")
async def service_stats(service_id: str, session: AsyncSession = Depends(get_session)):
    _check_id(service_id, "service")
    summary = await get_rating_summary(session, service_id=service_id)
    return {"success": True, "data": {"service_id": service_id, **summary.to_dict()}}


@router.get("/reviews/me")
async def my_reviews(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    user: UserRow = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """Reviews the current user wrote, in every moderation state."""
    conds = [ReviewRow.reviewer_id == user.id]
    return await _list_page(session, conds, Page.from_query(page, limit))


@router.get("/reviews/received")
async def received_reviews(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    user: UserRow = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """Approved reviews about the current user."""
    conds = _review_conditions(reviewee_id=user.id, status=[ModerationStatus.APPROVED.value])
    return await _list_page(session, conds, Page.from_query(page, limit))


@router.get("/reviews/{review_id}")
async def get_review(
    review_id: str,
    user: UserRow = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """Fetch one approved review. Each fetch counts as a view."""
    review = await _approved_review(session, review_id)
    repo = ReviewRepository(session)
    await repo.increment_views(review.id)
    await session.commit()
    await repo.refresh(review)
    data = await _full_review(session, review)
    data["has_voted_helpful"] = await repo.has_voted_helpful(review.id, user.id)
    return {"success": True, "review": data}


# ── Author edits ─────────────────────────────────────────────────────────────

@router.patch("/reviews/{review_id}")
async def update_review(
    review_id: str,
    req: ReviewUpdate,
    user: UserRow = Depends(require_verified_user),
    session: AsyncSession = Depends(get_session),
):
    """Edit your own review. Changing the comment or images sends it back to moderation."""
    review = await _owned_review(session, review_id, user)
    review_rules.apply_update(review, req)
    await session.commit()
    return {
        "success": True,
        "message": "Review updated successfully",
        "review": await _full_review(session, review),
    }


@router.delete("/reviews/{review_id}")
async def delete_review(
    review_id: str,
    user: UserRow = Depends(require_verified_user),
    session: AsyncSession = Depends(get_session),
):
    review = await _owned_review(session, review_id, user)
    review_rules.soft_delete(review, user.id)
    await session.commit()
    return {"success": True, "message": "Review deleted successfully"}


# ── Engagement ───────────────────────────────────────────────────────────────

@router.post("/reviews/{review_id}/responses", status_code=201)
async def add_response(
    review_id: str,
    req: ResponseCreate,
    user: UserRow = Depends(require_verified_user),
    session: AsyncSession = Depends(get_session),
):
    """Reply to a review. Only the reviewed party or an admin may respond."""
    review = await _approved_review(session, review_id)
    response = review_rules.build_response(review, user, req)
    await ReviewRepository(session).add_response(response)
    await session.commit()
    return {
        "success": True,
        "message": "Response added successfully",
        "review": await _full_review(session, review),
    }


@router.post("/reviews/{review_id}/helpful")
async def mark_helpful(
    review_id: str,
    user: UserRow = Depends(require_verified_user),
    session: AsyncSession = Depends(get_session),
):
    """Mark a review as helpful. Voting twice is a no-op."""
    review = await _approved_review(session, review_id)
    repo = ReviewRepository(session)
    await repo.mark_helpful(review.id, user.id)
    await session.commit()
    await repo.refresh(review)
    return {
        "success": True,
        "message": "Review marked as helpful",
        "data": {"helpful_votes": review.helpful_votes, "is_helpful": True},
    }


@router.delete("/reviews/{review_id}/helpful")
async def remove_helpful(
    review_id: str,
    user: UserRow = Depends(require_verified_user),
    session: AsyncSession = Depends(get_session),
):
    review = await _approved_review(session, review_id)
    repo = ReviewRepository(session)
    await repo.remove_helpful(review.id, user.id)
    await session.commit()
    await repo.refresh(review)
    return {
        "success": True,
        "message": "Helpful mark removed",
        "data": {"helpful_votes": review.helpful_votes, "is_helpful": False},
    }


@router.post("/reviews/{review_id}/report")
async def report_review(
    review_id: str,
    user: UserRow = Depends(require_verified_user),
    session: AsyncSession = Depends(get_session),
):
    """Report a live review. Enough distinct reporters flag it for moderation."""
    _check_id(review_id, "review")
    repo = ReviewRepository(session)
    review = await repo.get(review_id)
    if not review:
        raise NotFoundError("Review not found")

    previous = review.moderation_status
    await repo.add_reporter(review.id, user.id)
    await session.commit()
    await repo.refresh(review)
    if previous != review.moderation_status:
        logger.warning(
            "review %s auto-flagged after %d reports", review.id, review.report_count,
            extra={"review_id": review.id},
        )
    return {"success": True, "message": "Review reported successfully"}


# ── Admin moderation ─────────────────────────────────────────────────────────

@router.get("/admin/reviews")
async def admin_list_reviews(
    status: Optional[list[ModerationStatus]] = Query(None),
    reviewee_id: Optional[str] = None,
    service_id: Optional[str] = None,
    include_deleted: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    sort: str = Query("created_at", pattern="^(created_at|rating|helpful_votes|quality_score)$"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    admin: UserRow = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Moderation queue: reviews in any status."""
    _check_id(reviewee_id, "reviewee")
    _check_id(service_id, "service")
    conds = _review_conditions(
        reviewee_id, service_id, status=[s.value for s in status] if status else None,
    )
    return await _list_page(
        session, conds, Page.from_query(page, limit), sort, sort_order,
        include_deleted=include_deleted,
    )


@router.patch("/admin/reviews/{review_id}/moderation")
async def moderate_review(
    review_id: str,
    req: ModerationRequest,
    admin: UserRow = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    _check_id(review_id, "review")
    review = await ReviewRepository(session).get(review_id)
    if not review:
        raise NotFoundError("Review not found")
    review_rules.moderate(review, req.status, admin.id, req.reason, req.notes)
    await session.commit()
    data = await _full_review(session, review)
    data["moderation_history"] = review.moderation_history or []
    return {"success": True, "message": "Review moderated successfully", "review": data}


# ── Helpers ──────────────────────────────────────────────────────────────────

def _response_dict(response: ReviewResponseRow, user: Optional[UserRow]) -> dict:
    return {
        "id": response.id,
        "responder": user_summary(user),
        "responder_type": response.responder_type,
        "comment": response.comment,
        "is_official_response": response.is_official_response,
        "responded_at": isoformat(response.responded_at),
    }


def _review_response(review: ReviewRow, user: Optional[UserRow], responses: Optional[list] = None) -> dict:
    return {
        "id": review.id,
        "reviewer": user_summary(user),
        "reviewer_type": review.reviewer_type,
        "reviewee_id": review.reviewee_id,
        "reviewee_type": review.reviewee_type,
        "service_id": review.service_id,
        "project_id": review.project_id,
        "context": review.context,
        "rating": review.rating,
        "title": review.title,
        "comment": review.comment,
        "images": review.images or [],
        "would_recommend": review.would_recommend,
        "service_start_date": isoformat(review.service_start_date),
        "service_end_date": isoformat(review.service_end_date),
        "is_verified": review.is_verified,
        "quality_score": review.quality_score,
        "is_high_quality": review.is_high_quality,
        "helpful_votes": review.helpful_votes or 0,
        "view_count": review.view_count or 0,
        "report_count": review.report_count or 0,
        "moderation_status": review.moderation_status,
        "responses": [_response_dict(r, u) for r, u in responses or []],
        "created_at": isoformat(review.created_at),
        "updated_at": isoformat(review.updated_at),
    }
