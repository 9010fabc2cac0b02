from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class LessonProgress:
    """Per-lesson detail for one learner.

    Keyed by (user_id, lesson_id).  Course-level progress is owned by
    Enrollment; this record only says how far into one lesson the learner
    got and how long they spent there.
    """

    user_id: str
    course_id: UUID
    lesson_id: UUID
    completed: bool = False
    percent_complete: int = 0
    time_spent: int = 0  # minutes
    last_accessed_at: int | None = None
    completed_at: int | None = None
