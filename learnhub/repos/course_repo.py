from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from typing import Protocol
from uuid import UUID

from learnhub.models.course import Course, Lesson
from learnhub.repos.errors import DuplicateRecordError


class CourseRepo(Protocol):
    async def get_by_id(self, course_id: UUID) -> Course | None: ...
    async def get_for_update(self, course_id: UUID) -> Course | None: ...
    async def get_many(self, course_ids: Iterable[UUID]) -> dict[UUID, Course]: ...
    async def list_all(self, status: str | None = None) -> list[Course]: ...
    async def add(self, course: Course) -> None: ...
    async def adjust_enrollment_count(self, course_id: UUID, delta: int) -> None: ...
    async def set_rating(
        self, course_id: UUID, average_rating: float, total_reviews: int
    ) -> bool: ...


class LessonRepo(Protocol):
    async def get_by_id(self, lesson_id: UUID) -> Lesson | None: ...
    async def add(self, lesson: Lesson) -> None: ...
    async def delete(self, lesson_id: UUID) -> bool: ...
    async def list_by_course(self, course_id: UUID) -> list[Lesson]: ...


class InMemoryCourseRepo:
    def __init__(self, courses: dict[UUID, Course]) -> None:
        self._by_id = courses

    async def get_by_id(self, course_id: UUID) -> Course | None:
        return self._by_id.get(course_id)

    async def get_for_update(self, course_id: UUID) -> Course | None:
        # The in-memory store already serializes whole transactions.
        return self._by_id.get(course_id)

    async def get_many(self, course_ids: Iterable[UUID]) -> dict[UUID, Course]:
        return {cid: self._by_id[cid] for cid in course_ids if cid in self._by_id}

    async def list_all(self, status: str | None = None) -> list[Course]:
        courses = sorted(self._by_id.values(), key=lambda c: c.title)
        if status is not None:
            courses = [c for c in courses if c.status == status]
        return courses

    async def add(self, course: Course) -> None:
        if any(c.slug == course.slug for c in self._by_id.values()):
            raise DuplicateRecordError("slug already exists")
        self._by_id[course.id] = course

    async def adjust_enrollment_count(self, course_id: UUID, delta: int) -> None:
        c = self._by_id.get(course_id)
        if c is None:
            raise KeyError("course not found")
        self._by_id[course_id] = replace(
            c, enrollment_count=max(0, c.enrollment_count + delta)
        )

    async def set_rating(
        self, course_id: UUID, average_rating: float, total_reviews: int
    ) -> bool:
        c = self._by_id.get(course_id)
        if c is None:
            return False
        self._by_id[course_id] = replace(
            c, average_rating=average_rating, total_reviews=total_reviews
        )
        return True


class InMemoryLessonRepo:
    def __init__(self, lessons: dict[UUID, Lesson]) -> None:
        self._by_id = lessons

    async def get_by_id(self, lesson_id: UUID) -> Lesson | None:
        return self._by_id.get(lesson_id)

    async def add(self, lesson: Lesson) -> None:
        self._by_id[lesson.id] = lesson

    async def delete(self, lesson_id: UUID) -> bool:
        return self._by_id.pop(lesson_id, None) is not None

    async def list_by_course(self, course_id: UUID) -> list[Lesson]:
        lessons = [le for le in self._by_id.values() if le.course_id == course_id]
        return sorted(lessons, key=lambda le: le.position)
