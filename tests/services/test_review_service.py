from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from learnhub.models.course import Course
from learnhub.models.principal import Principal
from learnhub.repos.store import InMemoryRecordStore
from learnhub.services.errors import (
    CourseUnavailable,
    PermissionDenied,
    ReviewAlreadyExists,
    ReviewNotFound,
    ValidationError,
)
from learnhub.services.events import EventBus, ReviewChanged
from learnhub.services.review_service import ReviewService

AUTHOR = Principal(user_id="author", roles=frozenset({"user"}))
OTHER = Principal(user_id="other", roles=frozenset({"user"}))
INSTRUCTOR = Principal(user_id="teach", roles=frozenset({"instructor"}))
ADMIN = Principal(user_id="admin", roles=frozenset({"admin"}))


async def _service() -> tuple[ReviewService, Course, list[ReviewChanged]]:
    store = InMemoryRecordStore()
    bus = EventBus()
    seen: list[ReviewChanged] = []

    async def record(event: ReviewChanged) -> None:
        seen.append(event)

    bus.subscribe(ReviewChanged, record)
    course = Course.new(slug="c", title="C", status="published")
    async with store.transaction() as tx:
        await tx.courses.add(course)
    return ReviewService(store, bus), course, seen


def test_create_publishes_after_commit() -> None:
    async def scenario():
        svc, course, seen = await _service()
        review = await svc.create_review(course.id, "author", 4, "  solid course  ")
        return review, seen

    review, seen = asyncio.run(scenario())
    assert review.comment == "solid course"
    assert review.is_approved is False
    assert [e.action for e in seen] == ["created"]


def test_duplicate_review_is_a_conflict() -> None:
    async def scenario():
        svc, course, _ = await _service()
        await svc.create_review(course.id, "author", 4, "one")
        await svc.create_review(course.id, "author", 2, "two")

    with pytest.raises(ReviewAlreadyExists):
        asyncio.run(scenario())


@pytest.mark.parametrize(
    ("rating", "comment"),
    [(0, "x"), (6, "x"), (3, "   "), (3, "x" * 501)],
)
def test_invalid_review_input(rating: int, comment: str) -> None:
    async def scenario():
        svc, course, _ = await _service()
        await svc.create_review(course.id, "author", rating, comment)

    with pytest.raises(ValidationError):
        asyncio.run(scenario())


def test_review_for_missing_course() -> None:
    async def scenario():
        svc, _, _ = await _service()
        await svc.create_review(uuid4(), "author", 3, "x")

    with pytest.raises(CourseUnavailable):
        asyncio.run(scenario())


def test_only_author_can_edit() -> None:
    async def scenario():
        svc, course, _ = await _service()
        review = await svc.create_review(course.id, "author", 3, "ok")
        await svc.update_review(review.id, OTHER, rating=1)

    with pytest.raises(PermissionDenied):
        asyncio.run(scenario())


def test_author_edits_rating_and_comment() -> None:
    async def scenario():
        svc, course, seen = await _service()
        review = await svc.create_review(course.id, "author", 3, "ok")
        updated = await svc.update_review(review.id, AUTHOR, rating=5, comment="better")
        return updated, seen

    updated, seen = asyncio.run(scenario())
    assert (updated.rating, updated.comment) == (5, "better")
    assert [e.action for e in seen] == ["created", "updated"]


def test_approval_requires_moderator() -> None:
    async def scenario():
        svc, course, _ = await _service()
        review = await svc.create_review(course.id, "author", 3, "ok")
        await svc.approve_review(review.id, AUTHOR)

    with pytest.raises(PermissionDenied):
        asyncio.run(scenario())


def test_instructor_can_approve() -> None:
    async def scenario():
        svc, course, _ = await _service()
        review = await svc.create_review(course.id, "author", 3, "ok")
        return await svc.approve_review(review.id, INSTRUCTOR)

    assert asyncio.run(scenario()).is_approved is True


def test_admin_can_delete_anyones_review() -> None:
    async def scenario():
        svc, course, seen = await _service()
        review = await svc.create_review(course.id, "author", 3, "ok")
        await svc.delete_review(review.id, ADMIN)
        return seen

    assert [e.action for e in asyncio.run(scenario())] == ["created", "deleted"]


def test_stranger_cannot_delete() -> None:
    async def scenario():
        svc, course, _ = await _service()
        review = await svc.create_review(course.id, "author", 3, "ok")
        await svc.delete_review(review.id, OTHER)

    with pytest.raises(PermissionDenied):
        asyncio.run(scenario())


def test_delete_missing_review() -> None:
    async def scenario():
        svc, _, _ = await _service()
        await svc.delete_review(uuid4(), ADMIN)

    with pytest.raises(ReviewNotFound):
        asyncio.run(scenario())


def test_list_hides_pending_reviews_by_default() -> None:
    async def scenario():
        svc, course, _ = await _service()
        r = await svc.create_review(course.id, "author", 3, "ok")
        await svc.create_review(course.id, "other", 4, "pending")
        await svc.approve_review(r.id, ADMIN)
        public = await svc.list_reviews(course.id)
        everything = await svc.list_reviews(course.id, include_pending=True)
        return public, everything

    public, everything = asyncio.run(scenario())
    assert [r.user_id for r in public] == ["author"]
    assert len(everything) == 2
