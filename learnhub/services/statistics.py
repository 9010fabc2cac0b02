"""Read-only enrollment statistics.  Computed on demand, never cached."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from uuid import UUID

from learnhub.models.enrollment import Enrollment
from learnhub.repos.store import RecordStore
from learnhub.services.errors import CourseUnavailable

RECENT_LIMIT = 5


@dataclass(frozen=True, slots=True)
class StatusBucket:
    status: str
    count: int
    average_progress: float
    time_spent: int


@dataclass(frozen=True, slots=True)
class RecentEnrollment:
    enrollment_id: UUID
    status: str
    progress: int
    updated_at: int
    course_id: UUID
    course_slug: str | None
    course_title: str | None


@dataclass(frozen=True, slots=True)
class StudentDashboard:
    buckets: list[StatusBucket]
    total_time_spent: int
    recent: list[RecentEnrollment]


def _bucket(enrollments: Iterable[Enrollment]) -> list[StatusBucket]:
    grouped: dict[str, list[Enrollment]] = defaultdict(list)
    for e in enrollments:
        grouped[e.status].append(e)
    return [
        StatusBucket(
            status=status,
            count=len(rows),
            average_progress=sum(r.progress for r in rows) / len(rows),
            time_spent=sum(r.time_spent for r in rows),
        )
        for status, rows in sorted(grouped.items())
    ]


class StatisticsReporter:
    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def student_dashboard(self, student_id: str) -> StudentDashboard:
        async with self._store.transaction() as tx:
            enrollments = await tx.enrollments.list_by_student(student_id)
            recent = sorted(enrollments, key=lambda e: e.updated_at, reverse=True)[
                :RECENT_LIMIT
            ]
            courses = await tx.courses.get_many({e.course_id for e in recent})

        recent_rows = []
        for e in recent:
            course = courses.get(e.course_id)
            recent_rows.append(
                RecentEnrollment(
                    enrollment_id=e.id,
                    status=e.status,
                    progress=e.progress,
                    updated_at=e.updated_at,
                    course_id=e.course_id,
                    course_slug=course.slug if course else None,
                    course_title=course.title if course else None,
                )
            )
        return StudentDashboard(
            buckets=_bucket(enrollments),
            total_time_spent=sum(e.time_spent for e in enrollments),
            recent=recent_rows,
        )

    async def course_breakdown(self, course_id: UUID) -> list[StatusBucket]:
        async with self._store.transaction() as tx:
            if await tx.courses.get_by_id(course_id) is None:
                raise CourseUnavailable("Course not found")
            enrollments = await tx.enrollments.list_by_course(course_id)
        return _bucket(enrollments)
