from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from learnhub.models.course import Course
from learnhub.repos.store import InMemoryRecordStore
from learnhub.services.admission import AdmissionController
from learnhub.services.enrollment_service import EnrollmentStateMachine, ProgressUpdate
from learnhub.services.errors import CourseUnavailable
from learnhub.services.statistics import RECENT_LIMIT, StatisticsReporter
from tests.conftest import FakeClock


async def _courses(store: InMemoryRecordStore, n: int) -> list[Course]:
    courses = [
        Course.new(slug=f"course-{i}", title=f"Course {i}", status="published")
        for i in range(n)
    ]
    async with store.transaction() as tx:
        for course in courses:
            await tx.courses.add(course)
    return courses


def test_dashboard_buckets_by_status() -> None:
    async def scenario():
        store = InMemoryRecordStore()
        clock = FakeClock()
        admission = AdmissionController(store, clock=clock)
        machine = EnrollmentStateMachine(store, clock=clock)
        c1, c2, c3 = await _courses(store, 3)

        e1 = await admission.request_enrollment("stu", c1.id)
        e2 = await admission.request_enrollment("stu", c2.id)
        e3 = await admission.request_enrollment("stu", c3.id)
        await machine.update_progress(
            e1.id, "stu", ProgressUpdate(progress=20, time_spent_delta=30)
        )
        await machine.update_progress(
            e2.id, "stu", ProgressUpdate(progress=60, time_spent_delta=10)
        )
        await machine.update_progress(
            e3.id, "stu", ProgressUpdate(progress=100, time_spent_delta=5)
        )
        return await StatisticsReporter(store).student_dashboard("stu")

    dashboard = asyncio.run(scenario())
    buckets = {b.status: b for b in dashboard.buckets}
    assert set(buckets) == {"active", "completed"}
    assert buckets["active"].count == 2
    assert buckets["active"].average_progress == 40.0
    assert buckets["active"].time_spent == 40
    assert buckets["completed"].count == 1
    assert buckets["completed"].average_progress == 100.0
    assert dashboard.total_time_spent == 45


def test_dashboard_recent_is_newest_five_with_course_details() -> None:
    async def scenario():
        store = InMemoryRecordStore()
        clock = FakeClock()
        admission = AdmissionController(store, clock=clock)
        courses = await _courses(store, RECENT_LIMIT + 2)
        for course in courses:
            clock.tick()
            await admission.request_enrollment("stu", course.id)
        return courses, await StatisticsReporter(store).student_dashboard("stu")

    courses, dashboard = asyncio.run(scenario())
    assert len(dashboard.recent) == RECENT_LIMIT
    newest = courses[-1]
    assert dashboard.recent[0].course_id == newest.id
    assert dashboard.recent[0].course_slug == newest.slug
    assert dashboard.recent[0].course_title == newest.title
    stamps = [r.updated_at for r in dashboard.recent]
    assert stamps == sorted(stamps, reverse=True)


def test_dashboard_for_student_without_enrollments() -> None:
    dashboard = asyncio.run(
        StatisticsReporter(InMemoryRecordStore()).student_dashboard("nobody")
    )
    assert dashboard.buckets == []
    assert dashboard.total_time_spent == 0
    assert dashboard.recent == []


def test_course_breakdown_counts_every_student() -> None:
    async def scenario():
        store = InMemoryRecordStore()
        admission = AdmissionController(store)
        machine = EnrollmentStateMachine(store)
        (course,) = await _courses(store, 1)
        a = await admission.request_enrollment("a", course.id)
        await admission.request_enrollment("b", course.id)
        await machine.unenroll(a.id, "a")
        return await StatisticsReporter(store).course_breakdown(course.id)

    buckets = {b.status: b.count for b in asyncio.run(scenario())}
    assert buckets == {"active": 1, "cancelled": 1}


def test_course_breakdown_for_missing_course() -> None:
    with pytest.raises(CourseUnavailable):
        asyncio.run(StatisticsReporter(InMemoryRecordStore()).course_breakdown(uuid4()))
