"""Minimal course catalog: enough to create courses and lessons and read them.

Content authoring (descriptions, media, categories) belongs to another
service; this one only needs the fields admission and progress tracking
depend on.
"""

from __future__ import annotations

import logging
import re
from uuid import UUID

from learnhub.models.course import Course, Lesson
from learnhub.models.progress import LessonProgress
from learnhub.repos.errors import DuplicateRecordError
from learnhub.repos.store import RecordStore
from learnhub.services.errors import Conflict, CourseUnavailable, ValidationError

logger = logging.getLogger(__name__)

COURSE_STATUSES = frozenset({"draft", "published", "retired"})
_SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


class CatalogService:
    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def create_course(
        self,
        *,
        slug: str,
        title: str,
        created_by: str,
        status: str = "draft",
        max_enrollments: int | None = None,
        prerequisites: tuple[UUID, ...] = (),
    ) -> Course:
        slug = slug.strip().lower()
        title = title.strip()
        if not _SLUG_RE.match(slug):
            raise ValidationError("slug must be lowercase words joined by hyphens")
        if not title:
            raise ValidationError("title must be non-empty")
        if status not in COURSE_STATUSES:
            raise ValidationError(f"status must be one of {sorted(COURSE_STATUSES)}")
        if max_enrollments is not None and max_enrollments < 1:
            raise ValidationError("max_enrollments must be >= 1")

        course = Course.new(
            slug=slug,
            title=title,
            status=status,
            created_by=created_by,
            max_enrollments=max_enrollments,
            prerequisites=tuple(dict.fromkeys(prerequisites)),
        )
        async with self._store.transaction() as tx:
            if course.prerequisites:
                found = await tx.courses.get_many(course.prerequisites)
                unknown = [p for p in course.prerequisites if p not in found]
                if unknown:
                    raise ValidationError(
                        "unknown prerequisite course(s): "
                        + ", ".join(str(u) for u in unknown)
                    )
            try:
                await tx.courses.add(course)
            except DuplicateRecordError:
                raise Conflict(f"slug {slug!r} already exists") from None

        logger.info("Created course id=%s slug=%s", course.id, course.slug)
        return course

    async def get_course(self, course_id: UUID) -> Course:
        async with self._store.transaction() as tx:
            course = await tx.courses.get_by_id(course_id)
        if course is None:
            raise CourseUnavailable("Course not found")
        return course

    async def list_courses(self, status: str | None = None) -> list[Course]:
        if status is not None and status not in COURSE_STATUSES:
            raise ValidationError(f"status must be one of {sorted(COURSE_STATUSES)}")
        async with self._store.transaction() as tx:
            return await tx.courses.list_all(status)

    async def add_lesson(self, course_id: UUID, *, title: str, position: int) -> Lesson:
        title = title.strip()
        if not title:
            raise ValidationError("title must be non-empty")
        if position < 1:
            raise ValidationError("position must be >= 1")
        lesson = Lesson.new(course_id=course_id, title=title, position=position)
        async with self._store.transaction() as tx:
            if await tx.courses.get_by_id(course_id) is None:
                raise CourseUnavailable("Course not found")
            await tx.lessons.add(lesson)
        return lesson

    async def list_lessons_with_progress(
        self, course_id: UUID, user_id: str
    ) -> list[tuple[Lesson, LessonProgress | None]]:
        """Lessons in order, each paired with the caller's progress record."""
        async with self._store.transaction() as tx:
            lessons = await tx.lessons.list_by_course(course_id)
            records = await tx.lesson_progress.list_for_course(user_id, course_id)
        by_lesson = {p.lesson_id: p for p in records}
        return [(le, by_lesson.get(le.id)) for le in lessons]
