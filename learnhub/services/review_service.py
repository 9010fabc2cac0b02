"""Course reviews.

Every write publishes ReviewChanged on the event bus once its
transaction has committed.  The aggregate recalculator listens for it
and refreshes the course's average rating and review count; nothing in
here touches those fields directly.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from uuid import UUID

from learnhub.models.principal import Principal
from learnhub.models.review import Review
from learnhub.repos.errors import DuplicateRecordError
from learnhub.repos.store import RecordStore
from learnhub.services.clock import Clock, epoch_now
from learnhub.services.errors import (
    CourseUnavailable,
    PermissionDenied,
    ReviewAlreadyExists,
    ReviewNotFound,
    ValidationError,
)
from learnhub.services.events import EventBus, ReviewChanged

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 500


def _clean(rating: int, comment: str) -> str:
    if not 1 <= rating <= 5:
        raise ValidationError("rating must be between 1 and 5")
    comment = comment.strip()
    if not comment:
        raise ValidationError("comment must be non-empty")
    if len(comment) > MAX_COMMENT_LENGTH:
        raise ValidationError(
            f"comment must be at most {MAX_COMMENT_LENGTH} characters"
        )
    return comment


class ReviewService:
    def __init__(
        self, store: RecordStore, bus: EventBus, *, clock: Clock = epoch_now
    ) -> None:
        self._store = store
        self._bus = bus
        self._clock = clock

    async def list_reviews(
        self, course_id: UUID, *, include_pending: bool = False
    ) -> list[Review]:
        async with self._store.transaction() as tx:
            return await tx.reviews.list_by_course(
                course_id, approved_only=not include_pending
            )

    async def create_review(
        self, course_id: UUID, user_id: str, rating: int, comment: str
    ) -> Review:
        comment = _clean(rating, comment)
        async with self._store.transaction() as tx:
            if await tx.courses.get_by_id(course_id) is None:
                raise CourseUnavailable("Course not found")
            review = Review.new(
                course_id=course_id,
                user_id=user_id,
                rating=rating,
                comment=comment,
                now=self._clock(),
            )
            try:
                await tx.reviews.add(review)
            except DuplicateRecordError:
                logger.warning(
                    "Rejected duplicate review course=%s user=%s", course_id, user_id
                )
                raise ReviewAlreadyExists("You have already reviewed this course") from None

        logger.info("Review %s created for course=%s", review.id, course_id)
        await self._bus.publish(ReviewChanged(course_id, review.id, "created"))
        return review

    async def update_review(
        self,
        review_id: UUID,
        caller: Principal,
        *,
        rating: int | None = None,
        comment: str | None = None,
    ) -> Review:
        async with self._store.transaction() as tx:
            current = await tx.reviews.get_by_id(review_id)
            if current is None:
                raise ReviewNotFound("Review not found")
            if current.user_id != caller.user_id:
                raise PermissionDenied("Only the author can edit a review")
            new_rating = current.rating if rating is None else rating
            new_comment = _clean(
                new_rating, current.comment if comment is None else comment
            )
            updated = replace(
                current,
                rating=new_rating,
                comment=new_comment,
                updated_at=self._clock(),
            )
            if not await tx.reviews.update(updated):
                raise ReviewNotFound("Review not found")

        await self._bus.publish(ReviewChanged(updated.course_id, updated.id, "updated"))
        return updated

    async def approve_review(self, review_id: UUID, caller: Principal) -> Review:
        if not caller.can_moderate():
            raise PermissionDenied("Only instructors or admins can approve reviews")

        async with self._store.transaction() as tx:
            current = await tx.reviews.get_by_id(review_id)
            if current is None:
                raise ReviewNotFound("Review not found")
            if current.is_approved:
                return current
            updated = replace(current, is_approved=True, updated_at=self._clock())
            if not await tx.reviews.update(updated):
                raise ReviewNotFound("Review not found")

        logger.info("Review %s approved by %s", review_id, caller.user_id)
        await self._bus.publish(
            ReviewChanged(updated.course_id, updated.id, "approved")
        )
        return updated

    async def delete_review(self, review_id: UUID, caller: Principal) -> None:
        async with self._store.transaction() as tx:
            current = await tx.reviews.get_by_id(review_id)
            if current is None:
                raise ReviewNotFound("Review not found")
            if current.user_id != caller.user_id and not caller.is_platform_admin():
                raise PermissionDenied("Only the author or an admin can delete a review")
            await tx.reviews.delete(review_id)

        logger.info("Review %s deleted by %s", review_id, caller.user_id)
        await self._bus.publish(ReviewChanged(current.course_id, review_id, "deleted"))
