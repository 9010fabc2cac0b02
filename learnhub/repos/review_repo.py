from __future__ import annotations

from typing import Protocol
from uuid import UUID

from learnhub.models.review import Review
from learnhub.repos.errors import DuplicateRecordError


class ReviewRepo(Protocol):
    async def get_by_id(self, review_id: UUID) -> Review | None: ...
    async def get_for_pair(self, course_id: UUID, user_id: str) -> Review | None: ...
    async def add(self, review: Review) -> None: ...
    async def update(self, review: Review) -> bool: ...
    async def delete(self, review_id: UUID) -> bool: ...
    async def approved_summary(self, course_id: UUID) -> tuple[float, int]: ...
    async def list_by_course(
        self, course_id: UUID, *, approved_only: bool = True
    ) -> list[Review]: ...


class InMemoryReviewRepo:
    def __init__(self, reviews: dict[UUID, Review]) -> None:
        self._by_id = reviews

    async def get_by_id(self, review_id: UUID) -> Review | None:
        return self._by_id.get(review_id)

    async def get_for_pair(self, course_id: UUID, user_id: str) -> Review | None:
        for r in self._by_id.values():
            if r.course_id == course_id and r.user_id == user_id:
                return r
        return None

    async def add(self, review: Review) -> None:
        if await self.get_for_pair(review.course_id, review.user_id) is not None:
            raise DuplicateRecordError("review already exists")
        self._by_id[review.id] = review

    async def update(self, review: Review) -> bool:
        if review.id not in self._by_id:
            return False
        self._by_id[review.id] = review
        return True

    async def delete(self, review_id: UUID) -> bool:
        return self._by_id.pop(review_id, None) is not None

    async def approved_summary(self, course_id: UUID) -> tuple[float, int]:
        ratings = [
            r.rating
            for r in self._by_id.values()
            if r.course_id == course_id and r.is_approved
        ]
        if not ratings:
            return 0.0, 0
        return sum(ratings) / len(ratings), len(ratings)

    async def list_by_course(
        self, course_id: UUID, *, approved_only: bool = True
    ) -> list[Review]:
        reviews = [
            r
            for r in self._by_id.values()
            if r.course_id == course_id and (r.is_approved or not approved_only)
        ]
        return sorted(reviews, key=lambda r: r.created_at, reverse=True)
