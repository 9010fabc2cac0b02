"""Record store: the transaction boundary the enrollment services run in.

Services never talk to a repository outside of a transaction:

    async with store.transaction() as tx:
        course = await tx.courses.get_for_update(course_id)
        ...
        await tx.enrollments.add(enrollment)
        await tx.courses.adjust_enrollment_count(course_id, 1)

Leaving the block normally commits every write made through ``tx``;
raising out of it discards all of them.  That is what makes an admission
check plus the enrollment insert plus the counter bump one atomic unit.

Two implementations satisfy the RecordStore Protocol:

  InMemoryRecordStore (below): used when DATABASE_URL is unset and in
    tests.  One asyncio.Lock serializes transactions; each transaction
    works on a copy of the tables that replaces the live tables only on
    commit.

  PgRecordStore (pg_store.py): one AsyncSession per transaction inside
    ``session.begin()``; row locks and unique indexes provide isolation.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass, field
from typing import Protocol
from uuid import UUID

from learnhub.models.course import Course, Lesson
from learnhub.models.enrollment import Enrollment
from learnhub.models.progress import LessonProgress
from learnhub.models.review import Review
from learnhub.repos.course_repo import (
    CourseRepo,
    InMemoryCourseRepo,
    InMemoryLessonRepo,
    LessonRepo,
)
from learnhub.repos.enrollment_repo import EnrollmentRepo, InMemoryEnrollmentRepo
from learnhub.repos.lesson_progress_repo import (
    InMemoryLessonProgressRepo,
    LessonProgressRepo,
)
from learnhub.repos.review_repo import InMemoryReviewRepo, ReviewRepo

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Transaction:
    courses: CourseRepo
    lessons: LessonRepo
    enrollments: EnrollmentRepo
    reviews: ReviewRepo
    lesson_progress: LessonProgressRepo


class RecordStore(Protocol):
    def transaction(self) -> AbstractAsyncContextManager[Transaction]: ...


@dataclass
class _Tables:
    courses: dict[UUID, Course] = field(default_factory=dict)
    lessons: dict[UUID, Lesson] = field(default_factory=dict)
    enrollments: dict[UUID, Enrollment] = field(default_factory=dict)
    reviews: dict[UUID, Review] = field(default_factory=dict)
    lesson_progress: dict[tuple[str, UUID], LessonProgress] = field(
        default_factory=dict
    )

    def copy(self) -> _Tables:
        # Records are frozen dataclasses, so copying the dicts is enough.
        return _Tables(
            courses=dict(self.courses),
            lessons=dict(self.lessons),
            enrollments=dict(self.enrollments),
            reviews=dict(self.reviews),
            lesson_progress=dict(self.lesson_progress),
        )


class InMemoryRecordStore:
    def __init__(self) -> None:
        self._tables = _Tables()
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Transaction]:
        async with self._lock:
            working = self._tables.copy()
            yield Transaction(
                courses=InMemoryCourseRepo(working.courses),
                lessons=InMemoryLessonRepo(working.lessons),
                enrollments=InMemoryEnrollmentRepo(working.enrollments),
                reviews=InMemoryReviewRepo(working.reviews),
                lesson_progress=InMemoryLessonProgressRepo(working.lesson_progress),
            )
            # Only reached when the block exits cleanly.
            self._tables = working

    def clear(self) -> None:
        """Drop every record.  Used by tests between cases."""
        self._tables = _Tables()
        self._lock = asyncio.Lock()
