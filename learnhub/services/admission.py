"""Admission control for new enrollments.

request_enrollment runs every check and the write in ONE transaction:

  1. course exists and is published         else CourseUnavailable
  2. seats left (active + completed < max)  else CapacityExceeded
  3. no open enrollment for the pair        else AlreadyEnrolled
  4. every prerequisite completed           else PrerequisitesNotMet

The first failing check wins.  On success the enrollment is inserted and
Course.enrollment_count goes up by one before the transaction commits.

Two concurrent requests for the last seat cannot both pass check 2: the
course row is fetched with get_for_update(), so the second request waits
for the first to commit and then counts its seat.  Check 3 has a second
line of defence in the store's unique constraint on (student, course) for
non-cancelled rows; a violation there is reported as AlreadyEnrolled too.
"""

from __future__ import annotations

import logging
from uuid import UUID

from learnhub.core.metrics import ADMISSION_REJECTIONS, ENROLLMENTS_CREATED
from learnhub.models.enrollment import OPEN_STATUSES, SEAT_HOLDING_STATUSES, Enrollment
from learnhub.repos.errors import DuplicateRecordError
from learnhub.repos.store import RecordStore
from learnhub.services.clock import Clock, epoch_now
from learnhub.services.errors import (
    AlreadyEnrolled,
    CapacityExceeded,
    Conflict,
    CourseUnavailable,
    NotFound,
    PrerequisitesNotMet,
)

logger = logging.getLogger(__name__)


class AdmissionController:
    def __init__(self, store: RecordStore, *, clock: Clock = epoch_now) -> None:
        self._store = store
        self._clock = clock

    async def request_enrollment(self, student_id: str, course_id: UUID) -> Enrollment:
        try:
            async with self._store.transaction() as tx:
                course = await tx.courses.get_for_update(course_id)
                if course is None or not course.is_open:
                    raise CourseUnavailable("Course not found or not available")

                if course.max_enrollments is not None:
                    taken = await tx.enrollments.count_for_course(
                        course_id, SEAT_HOLDING_STATUSES
                    )
                    if taken >= course.max_enrollments:
                        raise CapacityExceeded("Course enrollment limit reached")

                existing = await tx.enrollments.find_for_pair(
                    student_id, course_id, OPEN_STATUSES
                )
                if existing is not None:
                    raise AlreadyEnrolled("Already enrolled in this course")

                if course.prerequisites:
                    done = await tx.enrollments.completed_course_ids(
                        student_id, course.prerequisites
                    )
                    missing = [p for p in course.prerequisites if p not in done]
                    if missing:
                        raise PrerequisitesNotMet(missing)

                enrollment = Enrollment.new(
                    student_id=student_id, course_id=course_id, now=self._clock()
                )
                try:
                    await tx.enrollments.add(enrollment)
                except DuplicateRecordError:
                    raise AlreadyEnrolled("Already enrolled in this course") from None
                await tx.courses.adjust_enrollment_count(course_id, 1)
        except (NotFound, Conflict) as e:
            ADMISSION_REJECTIONS.labels(reason=e.kind).inc()
            logger.warning(
                "Rejected enrollment student=%s course=%s reason=%s",
                student_id,
                course_id,
                e.kind,
            )
            raise

        ENROLLMENTS_CREATED.inc()
        logger.info(
            "Enrolled student=%s course=%s enrollment=%s",
            student_id,
            course_id,
            enrollment.id,
        )
        return enrollment
