from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from learnhub.models.course import Course
from learnhub.models.enrollment import Enrollment
from learnhub.repos.errors import DuplicateRecordError
from learnhub.repos.store import InMemoryRecordStore


def test_transaction_commits_on_clean_exit() -> None:
    async def scenario():
        store = InMemoryRecordStore()
        course = Course.new(slug="kept", title="Kept")
        async with store.transaction() as tx:
            await tx.courses.add(course)
        async with store.transaction() as tx:
            return await tx.courses.get_by_id(course.id)

    assert asyncio.run(scenario()) is not None


def test_transaction_rolls_back_on_exception() -> None:
    async def scenario():
        store = InMemoryRecordStore()
        course = Course.new(slug="lost", title="Lost")
        with pytest.raises(RuntimeError):
            async with store.transaction() as tx:
                await tx.courses.add(course)
                await tx.enrollments.add(
                    Enrollment.new(student_id="s", course_id=course.id, now=1)
                )
                raise RuntimeError("abort")
        async with store.transaction() as tx:
            return (
                await tx.courses.get_by_id(course.id),
                await tx.enrollments.list_by_course(course.id),
            )

    course, enrollments = asyncio.run(scenario())
    assert course is None
    assert enrollments == []


def test_duplicate_slug_is_rejected() -> None:
    async def scenario():
        store = InMemoryRecordStore()
        async with store.transaction() as tx:
            await tx.courses.add(Course.new(slug="same", title="A"))
            await tx.courses.add(Course.new(slug="same", title="B"))

    with pytest.raises(DuplicateRecordError):
        asyncio.run(scenario())


def test_second_open_enrollment_for_pair_is_rejected() -> None:
    course_id = uuid4()

    async def scenario():
        store = InMemoryRecordStore()
        async with store.transaction() as tx:
            await tx.enrollments.add(
                Enrollment.new(student_id="s", course_id=course_id, now=1)
            )
            await tx.enrollments.add(
                Enrollment.new(student_id="s", course_id=course_id, now=2)
            )

    with pytest.raises(DuplicateRecordError):
        asyncio.run(scenario())


def test_update_requires_expected_status() -> None:
    async def scenario():
        store = InMemoryRecordStore()
        e = Enrollment.new(student_id="s", course_id=uuid4(), now=1)
        async with store.transaction() as tx:
            await tx.enrollments.add(e)
            stale = await tx.enrollments.update(e, expected_status="suspended")
            fresh = await tx.enrollments.update(e, expected_status="active")
        return stale, fresh

    assert asyncio.run(scenario()) == (False, True)


def test_adjust_enrollment_count_never_goes_negative() -> None:
    async def scenario():
        store = InMemoryRecordStore()
        course = Course.new(slug="c", title="C")
        async with store.transaction() as tx:
            await tx.courses.add(course)
            await tx.courses.adjust_enrollment_count(course.id, -1)
            return await tx.courses.get_by_id(course.id)

    assert asyncio.run(scenario()).enrollment_count == 0
