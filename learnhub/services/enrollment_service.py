"""Enrollment state machine: progress, status changes, lesson completion.

Status moves follow learnhub.models.enrollment.TRANSITIONS:

    active    -> completed | suspended | dropped | cancelled
    suspended -> active | cancelled
    completed, dropped, cancelled: terminal

Completion has one path no matter how it is reached (progress 100 or an
explicit status change): progress is pinned to 100, completed_at is set
and a single certificate is attached.  An enrollment that already holds
a certificate never gets another.

Every write is a conditional update on the status the enrollment had
when it was read.  If another request moved it in between, the update
matches nothing and the caller gets a Conflict instead of a silent
overwrite.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from uuid import UUID

from learnhub.core.metrics import CERTIFICATES_ISSUED, ENROLLMENT_TRANSITIONS
from learnhub.models.course import Lesson
from learnhub.models.enrollment import (
    ACTIVE,
    CANCELLED,
    COMPLETED,
    ENROLLMENT_STATUSES,
    SEAT_HOLDING_STATUSES,
    Certificate,
    Enrollment,
    can_transition,
)
from learnhub.models.progress import LessonProgress
from learnhub.repos.store import RecordStore, Transaction
from learnhub.services.clock import Clock, epoch_now
from learnhub.services.errors import (
    CapacityExceeded,
    Conflict,
    EnrollmentNotFound,
    InvalidTransition,
    LessonNotFound,
    ValidationError,
)

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


@dataclass(frozen=True, slots=True)
class ProgressUpdate:
    """Partial update; None means "leave as is"."""

    progress: int | None = None
    completed_lessons: tuple[UUID, ...] | None = None
    time_spent_delta: int | None = None
    current_lesson_id: UUID | None = None
    grade: int | None = None


def _validate_update(update: ProgressUpdate) -> None:
    if update.progress is not None and not 0 <= update.progress <= 100:
        raise ValidationError("progress must be between 0 and 100")
    if update.time_spent_delta is not None and update.time_spent_delta < 0:
        raise ValidationError("time_spent_delta must be non-negative")
    if update.grade is not None and not 0 <= update.grade <= 100:
        raise ValidationError("grade must be between 0 and 100")


def _union(existing: tuple[UUID, ...], extra: tuple[UUID, ...]) -> tuple[UUID, ...]:
    seen = set(existing)
    merged = list(existing)
    for lesson_id in extra:
        if lesson_id not in seen:
            seen.add(lesson_id)
            merged.append(lesson_id)
    return tuple(merged)


def _complete(enrollment: Enrollment, now: int) -> Enrollment:
    certificates = enrollment.certificates or (
        Certificate.issue(enrollment_id=enrollment.id, issued_at=now),
    )
    return replace(
        enrollment,
        status=COMPLETED,
        progress=100,
        completed_at=enrollment.completed_at or now,
        certificates=certificates,
    )


class EnrollmentStateMachine:
    def __init__(self, store: RecordStore, *, clock: Clock = epoch_now) -> None:
        self._store = store
        self._clock = clock

    # -- reads --

    async def get_enrollment(self, enrollment_id: UUID, caller_id: str) -> Enrollment:
        async with self._store.transaction() as tx:
            enrollment = await tx.enrollments.get_owned(enrollment_id, caller_id)
        if enrollment is None:
            raise EnrollmentNotFound("Enrollment not found")
        return enrollment

    async def list_enrollments(
        self,
        student_id: str,
        *,
        status: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Enrollment], int]:
        """One page of the student's enrollments, newest first, plus the total."""
        if status is not None and status not in ENROLLMENT_STATUSES:
            raise ValidationError(f"unknown status {status!r}")
        if page < 1:
            raise ValidationError("page must be >= 1")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")

        async with self._store.transaction() as tx:
            rows = await tx.enrollments.list_by_student(student_id, status)
        rows.sort(key=lambda e: e.enrolled_at, reverse=True)
        start = (page - 1) * limit
        return rows[start : start + limit], len(rows)

    # -- writes --

    async def update_progress(
        self, enrollment_id: UUID, caller_id: str, update: ProgressUpdate
    ) -> Enrollment:
        _validate_update(update)

        async with self._store.transaction() as tx:
            current = await tx.enrollments.get_owned(
                enrollment_id, caller_id, for_update=True
            )
            if current is None or current.status != ACTIVE:
                raise EnrollmentNotFound("Active enrollment not found")

            now = self._clock()
            changes: dict = {"last_accessed_at": now, "updated_at": now}
            if update.progress is not None:
                changes["progress"] = update.progress
            if update.completed_lessons:
                changes["completed_lessons"] = _union(
                    current.completed_lessons, update.completed_lessons
                )
            if update.time_spent_delta:
                changes["time_spent"] = current.time_spent + update.time_spent_delta
            if update.current_lesson_id is not None:
                changes["current_lesson_id"] = update.current_lesson_id
            if update.grade is not None:
                changes["grade"] = update.grade

            updated = replace(current, **changes)
            if updated.progress == 100:
                updated = _complete(updated, now)
            await self._save(tx, updated, expected_status=current.status)

        self._record_transition(current, updated)
        logger.info(
            "Progress updated enrollment=%s progress=%d status=%s",
            updated.id,
            updated.progress,
            updated.status,
        )
        return updated

    async def set_status(
        self, enrollment_id: UUID, caller_id: str, new_status: str
    ) -> Enrollment:
        if new_status not in ENROLLMENT_STATUSES:
            raise ValidationError(f"unknown status {new_status!r}")

        async with self._store.transaction() as tx:
            current = await tx.enrollments.get_owned(
                enrollment_id, caller_id, for_update=True
            )
            if current is None:
                raise EnrollmentNotFound("Enrollment not found")
            if not can_transition(current.status, new_status):
                logger.warning(
                    "Rejected transition enrollment=%s %s -> %s",
                    current.id,
                    current.status,
                    new_status,
                )
                raise InvalidTransition(current.status, new_status)

            now = self._clock()
            touched = replace(current, updated_at=now, last_accessed_at=now)
            if new_status == COMPLETED:
                updated = _complete(touched, now)
            elif new_status == CANCELLED:
                updated = replace(touched, status=CANCELLED, cancelled_at=now)
            else:
                if new_status == ACTIVE:
                    await self._check_seat(tx, current)
                updated = replace(touched, status=new_status)

            await self._save(tx, updated, expected_status=current.status)
            if new_status == CANCELLED:
                await tx.courses.adjust_enrollment_count(current.course_id, -1)

        self._record_transition(current, updated)
        logger.info(
            "Enrollment %s moved %s -> %s", updated.id, current.status, updated.status
        )
        return updated

    async def unenroll(self, enrollment_id: UUID, caller_id: str) -> Enrollment:
        """Soft delete: the record stays, with status cancelled."""
        return await self.set_status(enrollment_id, caller_id, CANCELLED)

    async def complete_lesson(self, lesson_id: UUID, user_id: str) -> LessonProgress:
        """Mark one lesson done.  Calling it again returns the stored record."""
        async with self._store.transaction() as tx:
            lesson = await tx.lessons.get_by_id(lesson_id)
            if lesson is None:
                raise LessonNotFound("Lesson not found")

            existing = await tx.lesson_progress.get(user_id, lesson_id)
            if existing is not None and existing.completed:
                return existing

            now = self._clock()
            record = LessonProgress(
                user_id=user_id,
                course_id=lesson.course_id,
                lesson_id=lesson_id,
                completed=True,
                percent_complete=100,
                time_spent=existing.time_spent if existing else 0,
                last_accessed_at=now,
                completed_at=now,
            )
            await tx.lesson_progress.upsert(record)
            await self._mark_lesson_done(tx, user_id, lesson, now)

        logger.info("Lesson %s completed by user=%s", lesson_id, user_id)
        return record

    async def update_lesson_progress(
        self, lesson_id: UUID, user_id: str, percent: int, time_spent: int = 0
    ) -> LessonProgress:
        """Record how far into a lesson the learner is.

        Reaching 100 completes the lesson.  A completed lesson stays
        completed; later calls only refresh time spent and access time.
        """
        if not 0 <= percent <= 100:
            raise ValidationError("Progress must be between 0 and 100")
        if time_spent < 0:
            raise ValidationError("time_spent must be non-negative")

        async with self._store.transaction() as tx:
            lesson = await tx.lessons.get_by_id(lesson_id)
            if lesson is None:
                raise LessonNotFound("Lesson not found")

            existing = await tx.lesson_progress.get(user_id, lesson_id)
            was_completed = existing is not None and existing.completed
            completed = was_completed or percent >= 100
            now = self._clock()
            if was_completed:
                completed_at = existing.completed_at
            else:
                completed_at = now if completed else None

            record = LessonProgress(
                user_id=user_id,
                course_id=lesson.course_id,
                lesson_id=lesson_id,
                completed=completed,
                percent_complete=100 if completed else percent,
                time_spent=time_spent,
                last_accessed_at=now,
                completed_at=completed_at,
            )
            await tx.lesson_progress.upsert(record)
            if completed and not was_completed:
                await self._mark_lesson_done(tx, user_id, lesson, now)

        return record

    async def purge_lesson(self, lesson_id: UUID) -> int:
        """Delete a lesson and every trace of it.

        Returns how many enrollments had the lesson removed from their
        completed set or current position.
        """
        async with self._store.transaction() as tx:
            if await tx.lessons.get_by_id(lesson_id) is None:
                raise LessonNotFound("Lesson not found")
            await tx.lesson_progress.delete_by_lesson(lesson_id)
            touched = await tx.enrollments.remove_lesson(lesson_id)
            await tx.lessons.delete(lesson_id)

        logger.info("Purged lesson %s from %d enrollments", lesson_id, touched)
        return touched

    # -- helpers --

    async def _save(
        self, tx: Transaction, enrollment: Enrollment, *, expected_status: str
    ) -> None:
        if not await tx.enrollments.update(enrollment, expected_status=expected_status):
            logger.warning("Concurrent change on enrollment=%s", enrollment.id)
            raise Conflict("Enrollment was modified concurrently")

    async def _check_seat(self, tx: Transaction, enrollment: Enrollment) -> None:
        course = await tx.courses.get_for_update(enrollment.course_id)
        if course is None or course.max_enrollments is None:
            return
        taken = await tx.enrollments.count_for_course(
            enrollment.course_id, SEAT_HOLDING_STATUSES
        )
        if taken >= course.max_enrollments:
            raise CapacityExceeded("Course enrollment limit reached")

    async def _mark_lesson_done(
        self, tx: Transaction, user_id: str, lesson: Lesson, now: int
    ) -> None:
        # Enrollment owns the completed set; the percentage is left alone.
        found = await tx.enrollments.find_for_pair(
            user_id, lesson.course_id, frozenset({ACTIVE})
        )
        if found is None:
            return
        enrollment = await tx.enrollments.get_owned(found.id, user_id, for_update=True)
        if enrollment is None or lesson.id in enrollment.completed_lessons:
            return
        updated = replace(
            enrollment,
            completed_lessons=enrollment.completed_lessons + (lesson.id,),
            last_accessed_at=now,
            updated_at=now,
        )
        await self._save(tx, updated, expected_status=enrollment.status)

    @staticmethod
    def _record_transition(before: Enrollment, after: Enrollment) -> None:
        if before.status != after.status:
            ENROLLMENT_TRANSITIONS.labels(
                from_status=before.status, to_status=after.status
            ).inc()
        if not before.certificates and after.certificates:
            CERTIFICATES_ISSUED.inc()
