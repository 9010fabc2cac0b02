"""PostgreSQL implementations of CourseRepo and LessonRepo."""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from learnhub.db.tables import CourseRow, LessonRow
from learnhub.models.course import Course, Lesson
from learnhub.repos.errors import DuplicateRecordError


class PgCourseRepo:
    """Satisfies the CourseRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, course_id: UUID) -> Course | None:
        stmt = select(CourseRow).where(CourseRow.id == course_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return None if row is None else _row_to_course(row)

    async def get_for_update(self, course_id: UUID) -> Course | None:
        # Row lock: concurrent admissions to the same course queue up here,
        # so the capacity count that follows sees every committed seat.
        stmt = (
            select(CourseRow)
            .where(CourseRow.id == course_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return None if row is None else _row_to_course(row)

    async def get_many(self, course_ids: Iterable[UUID]) -> dict[UUID, Course]:
        ids = list(course_ids)
        if not ids:
            return {}
        stmt = select(CourseRow).where(CourseRow.id.in_(ids))
        rows = (await self._session.execute(stmt)).scalars().all()
        return {row.id: _row_to_course(row) for row in rows}

    async def list_all(self, status: str | None = None) -> list[Course]:
        stmt = select(CourseRow).order_by(CourseRow.title)
        if status is not None:
            stmt = stmt.where(CourseRow.status == status)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_course(row) for row in rows]

    async def add(self, course: Course) -> None:
        row = CourseRow(
            id=course.id,
            slug=course.slug,
            title=course.title,
            status=course.status,
            version=course.version,
            created_by=course.created_by,
            max_enrollments=course.max_enrollments,
            prerequisites=list(course.prerequisites),
            enrollment_count=course.enrollment_count,
            average_rating=course.average_rating,
            total_reviews=course.total_reviews,
        )
        self._session.add(row)
        try:
            await self._session.flush()
        except IntegrityError as e:
            raise DuplicateRecordError("slug already exists") from e

    async def adjust_enrollment_count(self, course_id: UUID, delta: int) -> None:
        stmt = (
            update(CourseRow)
            .where(CourseRow.id == course_id)
            .values(
                enrollment_count=func.greatest(CourseRow.enrollment_count + delta, 0)
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise KeyError("course not found")

    async def set_rating(
        self, course_id: UUID, average_rating: float, total_reviews: int
    ) -> bool:
        stmt = (
            update(CourseRow)
            .where(CourseRow.id == course_id)
            .values(average_rating=average_rating, total_reviews=total_reviews)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0


class PgLessonRepo:
    """Satisfies the LessonRepo Protocol."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, lesson_id: UUID) -> Lesson | None:
        stmt = select(LessonRow).where(LessonRow.id == lesson_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return None if row is None else _row_to_lesson(row)

    async def add(self, lesson: Lesson) -> None:
        self._session.add(
            LessonRow(
                id=lesson.id,
                course_id=lesson.course_id,
                title=lesson.title,
                position=lesson.position,
            )
        )
        await self._session.flush()

    async def delete(self, lesson_id: UUID) -> bool:
        stmt = (
            delete(LessonRow)
            .where(LessonRow.id == lesson_id)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def list_by_course(self, course_id: UUID) -> list[Lesson]:
        stmt = (
            select(LessonRow)
            .where(LessonRow.course_id == course_id)
            .order_by(LessonRow.position)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_lesson(row) for row in rows]


def _row_to_course(row: CourseRow) -> Course:
    return Course(
        id=row.id,
        slug=row.slug,
        title=row.title,
        status=row.status,
        version=row.version,
        created_by=row.created_by,
        max_enrollments=row.max_enrollments,
        prerequisites=tuple(row.prerequisites) if row.prerequisites else (),
        enrollment_count=row.enrollment_count,
        average_rating=row.average_rating,
        total_reviews=row.total_reviews,
    )


def _row_to_lesson(row: LessonRow) -> Lesson:
    return Lesson(
        id=row.id, course_id=row.course_id, title=row.title, position=row.position
    )
