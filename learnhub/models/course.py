from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Course:
    id: UUID
    slug: str
    title: str
    status: str = "draft"  # draft|published|retired
    version: int = 1
    created_by: str | None = None
    max_enrollments: int | None = None  # None = unlimited
    prerequisites: tuple[UUID, ...] = ()
    # derived, maintained by the enrollment and review write paths
    enrollment_count: int = 0
    average_rating: float = 0.0
    total_reviews: int = 0

    @property
    def is_open(self) -> bool:
        return self.status == "published"

    @staticmethod
    def new(
        *,
        slug: str,
        title: str,
        status: str = "draft",
        created_by: str | None = None,
        max_enrollments: int | None = None,
        prerequisites: tuple[UUID, ...] = (),
    ) -> Course:
        return Course(
            id=uuid4(),
            slug=slug,
            title=title,
            status=status,
            created_by=created_by,
            max_enrollments=max_enrollments,
            prerequisites=prerequisites,
        )


@dataclass(frozen=True, slots=True)
class Lesson:
    id: UUID
    course_id: UUID
    title: str
    position: int

    @staticmethod
    def new(*, course_id: UUID, title: str, position: int) -> Lesson:
        return Lesson(id=uuid4(), course_id=course_id, title=title, position=position)
