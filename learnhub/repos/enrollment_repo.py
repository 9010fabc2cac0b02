from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from typing import Protocol
from uuid import UUID

from learnhub.models.enrollment import CANCELLED, COMPLETED, Enrollment
from learnhub.repos.errors import DuplicateRecordError


class EnrollmentRepo(Protocol):
    async def get_by_id(self, enrollment_id: UUID) -> Enrollment | None: ...
    async def get_owned(
        self, enrollment_id: UUID, student_id: str, *, for_update: bool = False
    ) -> Enrollment | None: ...
    async def find_for_pair(
        self, student_id: str, course_id: UUID, statuses: frozenset[str]
    ) -> Enrollment | None: ...
    async def count_for_course(
        self, course_id: UUID, statuses: frozenset[str]
    ) -> int: ...
    async def completed_course_ids(
        self, student_id: str, course_ids: Iterable[UUID]
    ) -> set[UUID]: ...
    async def add(self, enrollment: Enrollment) -> None: ...
    async def update(self, enrollment: Enrollment, *, expected_status: str) -> bool: ...
    async def list_by_student(
        self, student_id: str, status: str | None = None
    ) -> list[Enrollment]: ...
    async def list_by_course(self, course_id: UUID) -> list[Enrollment]: ...
    async def remove_lesson(self, lesson_id: UUID) -> int: ...


class InMemoryEnrollmentRepo:
    def __init__(self, enrollments: dict[UUID, Enrollment]) -> None:
        self._by_id = enrollments

    async def get_by_id(self, enrollment_id: UUID) -> Enrollment | None:
        return self._by_id.get(enrollment_id)

    async def get_owned(
        self, enrollment_id: UUID, student_id: str, *, for_update: bool = False
    ) -> Enrollment | None:
        e = self._by_id.get(enrollment_id)
        if e is None or e.student_id != student_id:
            return None
        return e

    async def find_for_pair(
        self, student_id: str, course_id: UUID, statuses: frozenset[str]
    ) -> Enrollment | None:
        for e in self._by_id.values():
            if (
                e.student_id == student_id
                and e.course_id == course_id
                and e.status in statuses
            ):
                return e
        return None

    async def count_for_course(self, course_id: UUID, statuses: frozenset[str]) -> int:
        return sum(
            1
            for e in self._by_id.values()
            if e.course_id == course_id and e.status in statuses
        )

    async def completed_course_ids(
        self, student_id: str, course_ids: Iterable[UUID]
    ) -> set[UUID]:
        wanted = set(course_ids)
        return {
            e.course_id
            for e in self._by_id.values()
            if e.student_id == student_id
            and e.status == COMPLETED
            and e.course_id in wanted
        }

    async def add(self, enrollment: Enrollment) -> None:
        # Mirrors the partial unique index on (student_id, course_id)
        # WHERE status <> 'cancelled'.
        for e in self._by_id.values():
            if (
                e.student_id == enrollment.student_id
                and e.course_id == enrollment.course_id
                and e.status != CANCELLED
            ):
                raise DuplicateRecordError("enrollment already exists")
        self._by_id[enrollment.id] = enrollment

    async def update(self, enrollment: Enrollment, *, expected_status: str) -> bool:
        current = self._by_id.get(enrollment.id)
        if current is None or current.status != expected_status:
            return False
        self._by_id[enrollment.id] = enrollment
        return True

    async def list_by_student(
        self, student_id: str, status: str | None = None
    ) -> list[Enrollment]:
        return [
            e
            for e in self._by_id.values()
            if e.student_id == student_id and (status is None or e.status == status)
        ]

    async def list_by_course(self, course_id: UUID) -> list[Enrollment]:
        return [e for e in self._by_id.values() if e.course_id == course_id]

    async def remove_lesson(self, lesson_id: UUID) -> int:
        touched = 0
        for eid, e in list(self._by_id.items()):
            if lesson_id not in e.completed_lessons and e.current_lesson_id != lesson_id:
                continue
            self._by_id[eid] = replace(
                e,
                completed_lessons=tuple(
                    lid for lid in e.completed_lessons if lid != lesson_id
                ),
                current_lesson_id=(
                    None if e.current_lesson_id == lesson_id else e.current_lesson_id
                ),
            )
            touched += 1
        return touched
