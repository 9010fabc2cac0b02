from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Review:
    id: UUID
    course_id: UUID
    user_id: str
    rating: int  # 1..5
    comment: str
    is_approved: bool = False  # only approved reviews count toward the course rating
    created_at: int = 0
    updated_at: int = 0

    @staticmethod
    def new(
        *, course_id: UUID, user_id: str, rating: int, comment: str, now: int
    ) -> Review:
        return Review(
            id=uuid4(),
            course_id=course_id,
            user_id=user_id,
            rating=rating,
            comment=comment,
            created_at=now,
            updated_at=now,
        )
