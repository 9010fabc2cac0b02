from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4

ACTIVE = "active"
COMPLETED = "completed"
DROPPED = "dropped"
SUSPENDED = "suspended"
CANCELLED = "cancelled"

ENROLLMENT_STATUSES = frozenset({ACTIVE, COMPLETED, DROPPED, SUSPENDED, CANCELLED})

# Statuses that occupy a seat when checking Course.max_enrollments.
SEAT_HOLDING_STATUSES = frozenset({ACTIVE, COMPLETED})

# Anything but cancelled blocks a second enrollment for the same pair.
OPEN_STATUSES = ENROLLMENT_STATUSES - {CANCELLED}

# Allowed status moves.  Statuses with no outgoing edge are terminal.
TRANSITIONS: dict[str, frozenset[str]] = {
    ACTIVE: frozenset({COMPLETED, SUSPENDED, DROPPED, CANCELLED}),
    SUSPENDED: frozenset({ACTIVE, CANCELLED}),
    COMPLETED: frozenset(),
    DROPPED: frozenset(),
    CANCELLED: frozenset(),
}


def can_transition(current: str, new: str) -> bool:
    return new in TRANSITIONS.get(current, frozenset())


@dataclass(frozen=True, slots=True)
class Certificate:
    certificate_id: str
    issued_at: int

    @staticmethod
    def issue(*, enrollment_id: UUID, issued_at: int) -> Certificate:
        return Certificate(
            certificate_id=f"CERT-{enrollment_id}-{issued_at}",
            issued_at=issued_at,
        )


@dataclass(frozen=True, slots=True)
class Enrollment:
    """One student's registration in one course.

    Authoritative for course-level progress and for the set of completed
    lessons.  Per-lesson detail lives in LessonProgress.
    """

    id: UUID
    student_id: str
    course_id: UUID
    status: str = ACTIVE
    progress: int = 0  # 0..100
    completed_lessons: tuple[UUID, ...] = ()
    grade: int | None = None  # 0..100
    time_spent: int = 0  # minutes
    current_lesson_id: UUID | None = None
    enrolled_at: int = 0
    last_accessed_at: int = 0
    updated_at: int = 0
    completed_at: int | None = None
    cancelled_at: int | None = None
    certificates: tuple[Certificate, ...] = ()

    @staticmethod
    def new(*, student_id: str, course_id: UUID, now: int) -> Enrollment:
        return Enrollment(
            id=uuid4(),
            student_id=student_id,
            course_id=course_id,
            enrolled_at=now,
            last_accessed_at=now,
            updated_at=now,
        )
