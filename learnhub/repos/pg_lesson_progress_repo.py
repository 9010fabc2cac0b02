"""PostgreSQL implementation of LessonProgressRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from learnhub.db.tables import LessonProgressRow
from learnhub.models.progress import LessonProgress


class PgLessonProgressRepo:
    """Satisfies the LessonProgressRepo Protocol."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: str, lesson_id: UUID) -> LessonProgress | None:
        stmt = select(LessonProgressRow).where(
            LessonProgressRow.user_id == user_id,
            LessonProgressRow.lesson_id == lesson_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return None if row is None else _row_to_progress(row)

    async def upsert(self, progress: LessonProgress) -> LessonProgress:
        values = {
            "user_id": progress.user_id,
            "lesson_id": progress.lesson_id,
            "course_id": progress.course_id,
            "completed": progress.completed,
            "percent_complete": progress.percent_complete,
            "time_spent": progress.time_spent,
            "last_accessed_at": progress.last_accessed_at,
            "completed_at": progress.completed_at,
        }
        stmt = (
            pg_insert(LessonProgressRow)
            .values(**values)
            .on_conflict_do_update(
                index_elements=[LessonProgressRow.user_id, LessonProgressRow.lesson_id],
                set_={
                    k: v for k, v in values.items() if k not in ("user_id", "lesson_id")
                },
            )
        )
        await self._session.execute(stmt)
        return progress

    async def delete_by_lesson(self, lesson_id: UUID) -> int:
        stmt = (
            delete(LessonProgressRow)
            .where(LessonProgressRow.lesson_id == lesson_id)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    async def list_for_course(
        self, user_id: str, course_id: UUID
    ) -> list[LessonProgress]:
        stmt = select(LessonProgressRow).where(
            LessonProgressRow.user_id == user_id,
            LessonProgressRow.course_id == course_id,
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_progress(row) for row in rows]


def _row_to_progress(row: LessonProgressRow) -> LessonProgress:
    return LessonProgress(
        user_id=row.user_id,
        course_id=row.course_id,
        lesson_id=row.lesson_id,
        completed=row.completed,
        percent_complete=row.percent_complete,
        time_spent=row.time_spent,
        last_accessed_at=row.last_accessed_at,
        completed_at=row.completed_at,
    )
