from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest
from prometheus_client import REGISTRY

from learnhub.models.course import Course
from learnhub.models.enrollment import COMPLETED, Enrollment
from learnhub.repos.store import InMemoryRecordStore
from learnhub.services.admission import AdmissionController
from learnhub.services.errors import (
    AlreadyEnrolled,
    CapacityExceeded,
    CourseUnavailable,
    PrerequisitesNotMet,
)
from tests.conftest import FakeClock


async def _add_course(store: InMemoryRecordStore, **kwargs) -> Course:
    kwargs.setdefault("status", "published")
    course = Course.new(**kwargs)
    async with store.transaction() as tx:
        await tx.courses.add(course)
    return course


async def _course(store: InMemoryRecordStore, course: Course) -> Course:
    async with store.transaction() as tx:
        found = await tx.courses.get_by_id(course.id)
    assert found is not None
    return found


async def _complete_course(
    store: InMemoryRecordStore, student_id: str, course: Course
) -> None:
    """Insert a completed enrollment directly, bypassing admission."""
    e = replace(
        Enrollment.new(student_id=student_id, course_id=course.id, now=1),
        status=COMPLETED,
        progress=100,
        completed_at=1,
    )
    async with store.transaction() as tx:
        await tx.enrollments.add(e)


def _rejections(reason: str) -> float:
    value = REGISTRY.get_sample_value(
        "admission_rejections_total", {"reason": reason}
    )
    return value or 0.0


# ---- happy path ----


def test_admits_and_bumps_enrollment_count() -> None:
    async def scenario():
        store = InMemoryRecordStore()
        clock = FakeClock()
        admission = AdmissionController(store, clock=clock)
        course = await _add_course(store, slug="py", title="Python")

        enrollment = await admission.request_enrollment("alice", course.id)
        return enrollment, await _course(store, course), clock.now

    enrollment, course, now = asyncio.run(scenario())
    assert enrollment.status == "active"
    assert enrollment.progress == 0
    assert enrollment.completed_lessons == ()
    assert enrollment.certificates == ()
    assert enrollment.time_spent == 0
    assert enrollment.enrolled_at == now
    assert course.enrollment_count == 1


# ---- capacity ----


def test_capacity_two_admits_two_then_rejects() -> None:
    async def scenario():
        store = InMemoryRecordStore()
        admission = AdmissionController(store)
        course = await _add_course(store, slug="small", title="Small", max_enrollments=2)

        await admission.request_enrollment("a", course.id)
        await admission.request_enrollment("b", course.id)
        with pytest.raises(CapacityExceeded):
            await admission.request_enrollment("c", course.id)
        return await _course(store, course)

    course = asyncio.run(scenario())
    assert course.enrollment_count == 2


def test_concurrent_requests_never_exceed_capacity() -> None:
    async def scenario():
        store = InMemoryRecordStore()
        admission = AdmissionController(store)
        course = await _add_course(store, slug="hot", title="Hot", max_enrollments=3)
        results = await asyncio.gather(
            *(admission.request_enrollment(f"s{i}", course.id) for i in range(10)),
            return_exceptions=True,
        )
        async with store.transaction() as tx:
            stored = await tx.enrollments.list_by_course(course.id)
        return results, stored

    results, stored = asyncio.run(scenario())
    admitted = [r for r in results if isinstance(r, Enrollment)]
    rejected = [r for r in results if isinstance(r, CapacityExceeded)]
    assert len(admitted) == 3
    assert len(rejected) == 7
    assert len(stored) == 3


def test_capacity_check_comes_before_duplicate_check() -> None:
    async def scenario():
        store = InMemoryRecordStore()
        admission = AdmissionController(store)
        course = await _add_course(store, slug="one", title="One", max_enrollments=1)
        await admission.request_enrollment("a", course.id)
        await admission.request_enrollment("a", course.id)

    with pytest.raises(CapacityExceeded):
        asyncio.run(scenario())


def test_rejection_is_counted_by_reason() -> None:
    before = _rejections("capacity_exceeded")

    async def scenario():
        store = InMemoryRecordStore()
        admission = AdmissionController(store)
        course = await _add_course(store, slug="c", title="C", max_enrollments=1)
        await admission.request_enrollment("a", course.id)
        with pytest.raises(CapacityExceeded):
            await admission.request_enrollment("b", course.id)

    asyncio.run(scenario())
    assert _rejections("capacity_exceeded") - before == 1


# ---- availability ----


def test_unpublished_course_is_unavailable() -> None:
    async def scenario():
        store = InMemoryRecordStore()
        admission = AdmissionController(store)
        course = await _add_course(store, slug="wip", title="WIP", status="draft")
        await admission.request_enrollment("a", course.id)

    with pytest.raises(CourseUnavailable):
        asyncio.run(scenario())


def test_missing_course_is_unavailable() -> None:
    from uuid import uuid4

    async def scenario():
        await AdmissionController(InMemoryRecordStore()).request_enrollment(
            "a", uuid4()
        )

    with pytest.raises(CourseUnavailable):
        asyncio.run(scenario())


# ---- duplicates ----


def test_second_enrollment_for_same_pair_is_rejected() -> None:
    async def scenario():
        store = InMemoryRecordStore()
        admission = AdmissionController(store)
        course = await _add_course(store, slug="dup", title="Dup")
        await admission.request_enrollment("a", course.id)
        with pytest.raises(AlreadyEnrolled):
            await admission.request_enrollment("a", course.id)
        return await _course(store, course)

    course = asyncio.run(scenario())
    assert course.enrollment_count == 1


def test_can_re_enroll_after_cancelling() -> None:
    from learnhub.services.enrollment_service import EnrollmentStateMachine

    async def scenario():
        store = InMemoryRecordStore()
        admission = AdmissionController(store)
        machine = EnrollmentStateMachine(store)
        course = await _add_course(store, slug="again", title="Again")
        first = await admission.request_enrollment("a", course.id)
        await machine.unenroll(first.id, "a")
        second = await admission.request_enrollment("a", course.id)
        return first, second, await _course(store, course)

    first, second, course = asyncio.run(scenario())
    assert second.id != first.id
    assert course.enrollment_count == 1


# ---- prerequisites ----


def test_missing_prerequisite_is_named() -> None:
    async def scenario():
        store = InMemoryRecordStore()
        admission = AdmissionController(store)
        a = await _add_course(store, slug="a", title="A")
        b = await _add_course(store, slug="b", title="B")
        advanced = await _add_course(
            store, slug="adv", title="Advanced", prerequisites=(a.id, b.id)
        )
        await _complete_course(store, "stu", a)
        try:
            await admission.request_enrollment("stu", advanced.id)
        except PrerequisitesNotMet as e:
            return e, b
        raise AssertionError("expected PrerequisitesNotMet")

    err, b = asyncio.run(scenario())
    assert err.missing == (b.id,)
    assert str(b.id) in err.message


def test_all_prerequisites_completed_admits() -> None:
    async def scenario():
        store = InMemoryRecordStore()
        admission = AdmissionController(store)
        a = await _add_course(store, slug="a", title="A")
        advanced = await _add_course(
            store, slug="adv", title="Advanced", prerequisites=(a.id,)
        )
        await _complete_course(store, "stu", a)
        return await admission.request_enrollment("stu", advanced.id)

    assert asyncio.run(scenario()).status == "active"


def test_active_prerequisite_does_not_count() -> None:
    async def scenario():
        store = InMemoryRecordStore()
        admission = AdmissionController(store)
        a = await _add_course(store, slug="a", title="A")
        advanced = await _add_course(
            store, slug="adv", title="Advanced", prerequisites=(a.id,)
        )
        await admission.request_enrollment("stu", a.id)
        await admission.request_enrollment("stu", advanced.id)

    with pytest.raises(PrerequisitesNotMet):
        asyncio.run(scenario())
