"""PostgreSQL implementation of ReviewRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from learnhub.db.tables import ReviewRow
from learnhub.models.review import Review
from learnhub.repos.errors import DuplicateRecordError


class PgReviewRepo:
    """Satisfies the ReviewRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, review_id: UUID) -> Review | None:
        stmt = select(ReviewRow).where(ReviewRow.id == review_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return None if row is None else _row_to_review(row)

    async def get_for_pair(self, course_id: UUID, user_id: str) -> Review | None:
        stmt = select(ReviewRow).where(
            ReviewRow.course_id == course_id, ReviewRow.user_id == user_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return None if row is None else _row_to_review(row)

    async def add(self, review: Review) -> None:
        self._session.add(
            ReviewRow(
                id=review.id,
                course_id=review.course_id,
                user_id=review.user_id,
                rating=review.rating,
                comment=review.comment,
                is_approved=review.is_approved,
                created_at=review.created_at,
                updated_at=review.updated_at,
            )
        )
        try:
            await self._session.flush()
        except IntegrityError as e:
            raise DuplicateRecordError("review already exists") from e

    async def update(self, review: Review) -> bool:
        stmt = (
            update(ReviewRow)
            .where(ReviewRow.id == review.id)
            .values(
                rating=review.rating,
                comment=review.comment,
                is_approved=review.is_approved,
                updated_at=review.updated_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def delete(self, review_id: UUID) -> bool:
        stmt = (
            delete(ReviewRow)
            .where(ReviewRow.id == review_id)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def approved_summary(self, course_id: UUID) -> tuple[float, int]:
        stmt = select(func.avg(ReviewRow.rating), func.count(ReviewRow.id)).where(
            ReviewRow.course_id == course_id,
            ReviewRow.is_approved.is_(True),
        )
        avg, count = (await self._session.execute(stmt)).one()
        return float(avg or 0.0), int(count or 0)

    async def list_by_course(
        self, course_id: UUID, *, approved_only: bool = True
    ) -> list[Review]:
        stmt = (
            select(ReviewRow)
            .where(ReviewRow.course_id == course_id)
            .order_by(ReviewRow.created_at.desc())
        )
        if approved_only:
            stmt = stmt.where(ReviewRow.is_approved.is_(True))
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_review(row) for row in rows]


def _row_to_review(row: ReviewRow) -> Review:
    return Review(
        id=row.id,
        course_id=row.course_id,
        user_id=row.user_id,
        rating=row.rating,
        comment=row.comment,
        is_approved=row.is_approved,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
