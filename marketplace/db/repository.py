"""Review and report repositories: the only place that talks SQL.

Every lookup takes an explicit ``include_deleted`` flag instead of relying on
a global soft-delete filter. Engagement counters are changed with in-SQL
expressions guarded by unique membership rows, so two concurrent votes from
the same user can never both count.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import and_, case, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from marketplace.db.report_tables import ReportNoteRow, ReportRow
from marketplace.db.review_tables import (
    ReviewHelpfulVoteRow,
    ReviewReporterRow,
    ReviewResponseRow,
    ReviewRow,
)
from marketplace.db.tables import new_id
from marketplace.db.user_tables import UserRow
from marketplace.models.common import ModerationStatus
from marketplace.services import moderation_filters as mf


def _insert_ignore(session: AsyncSession, table, **values):
    """INSERT ... ON CONFLICT DO NOTHING for whichever backend we're on."""
    if session.get_bind().dialect.name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    else:
        from sqlalchemy.dialects.sqlite import insert
    return insert(table).values(id=new_id(), **values).on_conflict_do_nothing()


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, user_id: str) -> Optional[UserRow]:
        return await self.session.get(UserRow, user_id)

    async def get_many(self, user_ids: Sequence[str]) -> dict[str, UserRow]:
        ids = {uid for uid in user_ids if uid}
        if not ids:
            return {}
        rows = (await self.session.execute(
            select(UserRow).where(UserRow.id.in_(ids))
        )).scalars().all()
        return {u.id: u for u in rows}


class ReviewRepository:
    """Async review persistence backed by SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(
        self,
        review_id: str,
        include_deleted: bool = False,
        status: Optional[ModerationStatus] = None,
    ) -> Optional[ReviewRow]:
        stmt = select(ReviewRow).where(ReviewRow.id == review_id)
        if not include_deleted:
            stmt = stmt.where(ReviewRow.is_deleted.is_(False))
        if status is not None:
            stmt = stmt.where(ReviewRow.moderation_status == status.value)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def refresh(self, review: ReviewRow) -> ReviewRow:
        await self.session.refresh(review)
        return review

    async def find_duplicate(
        self, reviewer_id: str, reviewee_id: str, service_id: Optional[str]
    ) -> Optional[ReviewRow]:
        """A live review for the same (reviewer, reviewee, service) tuple."""
        stmt = select(ReviewRow).where(
            ReviewRow.reviewer_id == reviewer_id,
            ReviewRow.reviewee_id == reviewee_id,
            ReviewRow.is_deleted.is_(False),
        )
        if service_id is None:
            stmt = stmt.where(ReviewRow.service_id.is_(None))
        else:
            stmt = stmt.where(ReviewRow.service_id == service_id)
        return (await self.session.execute(stmt.limit(1))).scalar_one_or_none()

    async def add(self, review: ReviewRow) -> ReviewRow:
        self.session.add(review)
        await self.session.flush()
        return review

    async def list(
        self,
        conditions: list,
        order_by: list,
        offset: int,
        limit: int,
        include_deleted: bool = False,
    ) -> tuple[list[tuple[ReviewRow, Optional[UserRow]]], int]:
        if not include_deleted:
            conditions = [ReviewRow.is_deleted.is_(False), *conditions]
        total = (await self.session.execute(
            select(func.count(ReviewRow.id)).where(*conditions)
        )).scalar() or 0
        stmt = (
            select(ReviewRow, UserRow)
            .outerjoin(UserRow, ReviewRow.reviewer_id == UserRow.id)
            .where(*conditions)
            .order_by(*order_by)
            .offset(offset)
            .limit(limit)
        )
        rows = (await self.session.execute(stmt)).all()
        return [(review, user) for review, user in rows], total

    # ── Engagement ───────────────────────────────────────────────────────

    async def mark_helpful(self, review_id: str, user_id: str) -> bool:
        """Add the user's helpful vote. Returns False if they had already voted."""
        result = await self.session.execute(
            _insert_ignore(self.session, ReviewHelpfulVoteRow, review_id=review_id, user_id=user_id)
        )
        if not result.rowcount:
            return False
        await self.session.execute(
            update(ReviewRow)
            .where(ReviewRow.id == review_id)
            .values(helpful_votes=ReviewRow.helpful_votes + 1)
            .execution_options(synchronize_session=False)
        )
        return True

    async def remove_helpful(self, review_id: str, user_id: str) -> bool:
        """Withdraw the user's helpful vote. Returns False if there was none."""
        result = await self.session.execute(
            delete(ReviewHelpfulVoteRow).where(
                ReviewHelpfulVoteRow.review_id == review_id,
                ReviewHelpfulVoteRow.user_id == user_id,
            )
        )
        if not result.rowcount:
            return False
        await self.session.execute(
            update(ReviewRow)
            .where(ReviewRow.id == review_id)
            .values(helpful_votes=case(
                (ReviewRow.helpful_votes > 0, ReviewRow.helpful_votes - 1),
                else_=0,
            ))
            .execution_options(synchronize_session=False)
        )
        return True

    async def has_voted_helpful(self, review_id: str, user_id: str) -> bool:
        row = (await self.session.execute(
            select(ReviewHelpfulVoteRow.id).where(
                ReviewHelpfulVoteRow.review_id == review_id,
                ReviewHelpfulVoteRow.user_id == user_id,
            )
        )).first()
        return row is not None

    async def add_reporter(self, review_id: str, user_id: str) -> bool:
        """Record a user's report of a review.

        On the first report from this user the counter goes up and, in the
        same statement, an approved review crossing the threshold is flagged.
        The flag is never undone here.
        """
        result = await self.session.execute(
            _insert_ignore(self.session, ReviewReporterRow, review_id=review_id, user_id=user_id)
        )
        if not result.rowcount:
            return False
        threshold = settings.REVIEW_AUTO_FLAG_THRESHOLD
        await self.session.execute(
            update(ReviewRow)
            .where(ReviewRow.id == review_id)
            .values(
                report_count=ReviewRow.report_count + 1,
                moderation_status=case(
                    (
                        and_(
                            ReviewRow.report_count + 1 >= threshold,
                            ReviewRow.moderation_status == ModerationStatus.APPROVED.value,
                        ),
                        ModerationStatus.FLAGGED.value,
                    ),
                    else_=ReviewRow.moderation_status,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        return True

    async def increment_views(self, review_id: str) -> None:
        await self.session.execute(
            update(ReviewRow)
            .where(ReviewRow.id == review_id)
            .values(view_count=ReviewRow.view_count + 1)
            .execution_options(synchronize_session=False)
        )

    # ── Responses ────────────────────────────────────────────────────────

    async def add_response(self, response: ReviewResponseRow) -> ReviewResponseRow:
        self.session.add(response)
        await self.session.flush()
        return response

    async def responses_for(
        self, review_ids: Sequence[str]
    ) -> dict[str, list[tuple[ReviewResponseRow, Optional[UserRow]]]]:
        out: dict[str, list] = {rid: [] for rid in review_ids}
        if not review_ids:
            return out
        rows = (await self.session.execute(
            select(ReviewResponseRow, UserRow)
            .outerjoin(UserRow, ReviewResponseRow.responder_id == UserRow.id)
            .where(ReviewResponseRow.review_id.in_(review_ids))
            .order_by(ReviewResponseRow.responded_at.asc(), ReviewResponseRow.id.asc())
        )).all()
        for response, user in rows:
            out[response.review_id].append((response, user))
        return out


class ReportRepository:
    """Async report persistence backed by SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, report_id: str, include_deleted: bool = False) -> Optional[ReportRow]:
        stmt = select(ReportRow).where(ReportRow.id == report_id)
        if not include_deleted:
            stmt = stmt.where(ReportRow.is_deleted.is_(False))
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def add(self, report: ReportRow) -> ReportRow:
        self.session.add(report)
        await self.session.flush()
        return report

    async def _fetch(self, conditions: list, order_by: list, offset: int = 0, limit: Optional[int] = None):
        stmt = (
            select(ReportRow, UserRow)
            .outerjoin(UserRow, ReportRow.reporter_id == UserRow.id)
            .where(*conditions)
            .order_by(*order_by)
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [(report, user) for report, user in (await self.session.execute(stmt)).all()]

    async def count(self, conditions: list) -> int:
        return (await self.session.execute(
            select(func.count(ReportRow.id)).where(*conditions)
        )).scalar() or 0

    async def list(
        self,
        filters: mf.ReportFilters,
        page: mf.Page,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> tuple[list[tuple[ReportRow, Optional[UserRow]]], int]:
        conditions = mf.build_report_conditions(filters)
        total = await self.count(conditions)
        rows = await self._fetch(
            conditions, mf.report_order_by(sort_by, sort_order), page.offset, page.limit
        )
        return rows, total

    async def by_reporter(self, reporter_id: str, offset: int, limit: int) -> list[ReportRow]:
        rows = (await self.session.execute(
            select(ReportRow)
            .where(ReportRow.reporter_id == reporter_id, ReportRow.is_deleted.is_(False))
            .order_by(ReportRow.created_at.desc())
            .offset(offset)
            .limit(limit)
        )).scalars().all()
        return list(rows)

    async def unassigned(self, priority: Optional[str] = None):
        """Pending, unassigned reports: most pressing first, then oldest first."""
        return await self._fetch(
            mf.unassigned_conditions(priority),
            [mf.priority_rank().asc(), ReportRow.created_at.asc()],
        )

    async def overdue(self, now: datetime):
        return await self._fetch(
            mf.overdue_conditions(now),
            [mf.priority_rank().asc(), ReportRow.created_at.asc()],
        )

    async def existing_ids(self, report_ids: Sequence[str]) -> set[str]:
        if not report_ids:
            return set()
        rows = (await self.session.execute(
            select(ReportRow.id).where(ReportRow.id.in_(report_ids), ReportRow.is_deleted.is_(False))
        )).scalars().all()
        return set(rows)

    async def summaries(self, report_ids: Sequence[str]) -> list[ReportRow]:
        """Load ``report_ids`` in the given order, skipping any that no longer exist."""
        if not report_ids:
            return []
        rows = (await self.session.execute(
            select(ReportRow).where(ReportRow.id.in_(report_ids))
        )).scalars().all()
        by_id = {r.id: r for r in rows}
        return [by_id[rid] for rid in report_ids if rid in by_id]

    # ── Notes ────────────────────────────────────────────────────────────

    async def add_note(self, note: ReportNoteRow) -> ReportNoteRow:
        self.session.add(note)
        await self.session.flush()
        return note

    async def notes(self, report_id: str) -> list[tuple[ReportNoteRow, Optional[UserRow]]]:
        rows = (await self.session.execute(
            select(ReportNoteRow, UserRow)
            .outerjoin(UserRow, ReportNoteRow.author_id == UserRow.id)
            .where(ReportNoteRow.report_id == report_id)
            .order_by(ReportNoteRow.added_at.asc(), ReportNoteRow.id.asc())
        )).all()
        return [(note, user) for note, user in rows]

    # ── Analytics ────────────────────────────────────────────────────────

    async def counts_by(self, column, conditions: list) -> dict[str, int]:
        rows = (await self.session.execute(
            select(column, func.count(ReportRow.id)).where(*conditions).group_by(column)
        )).all()
        return {value: count for value, count in rows}

    async def resolution_times(self, conditions: list) -> list[tuple[datetime, datetime]]:
        rows = (await self.session.execute(
            select(ReportRow.created_at, ReportRow.resolved_at)
            .where(*conditions, ReportRow.resolved_at.is_not(None))
        )).all()
        return [(created, resolved) for created, resolved in rows]
