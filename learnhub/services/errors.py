"""Domain errors raised by the enrollment, review and statistics services.

Every error carries a stable ``kind`` string (for clients and metrics
labels) and a human-readable message.  Routers translate the category
(NotFound, Conflict, ...) into an HTTP status; services never let a raw
store exception escape, they wrap it in DependencyFailure.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID


class DomainError(Exception):
    kind = "domain_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# --- NotFound ---


class NotFound(DomainError):
    kind = "not_found"


class CourseUnavailable(NotFound):
    kind = "course_unavailable"


class EnrollmentNotFound(NotFound):
    kind = "enrollment_not_found"


class LessonNotFound(NotFound):
    kind = "lesson_not_found"


class ReviewNotFound(NotFound):
    kind = "review_not_found"


# --- Conflict ---


class Conflict(DomainError):
    kind = "conflict"


class AlreadyEnrolled(Conflict):
    kind = "already_enrolled"


class CapacityExceeded(Conflict):
    kind = "capacity_exceeded"


class PrerequisitesNotMet(Conflict):
    kind = "prerequisites_not_met"

    def __init__(self, missing: Iterable[UUID]) -> None:
        self.missing: tuple[UUID, ...] = tuple(missing)
        names = ", ".join(str(m) for m in self.missing)
        super().__init__(f"prerequisites not met: {names}")


class ReviewAlreadyExists(Conflict):
    kind = "review_already_exists"


# --- everything else ---


class InvalidTransition(DomainError):
    kind = "invalid_transition"

    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__(f"cannot move enrollment from {current} to {requested}")


class ValidationError(DomainError):
    kind = "validation_error"


class PermissionDenied(DomainError):
    kind = "permission_denied"


class DependencyFailure(DomainError):
    kind = "dependency_failure"
