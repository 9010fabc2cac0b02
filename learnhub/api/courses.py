"""Course endpoints: catalog reads and writes, per-course stats and reviews."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from learnhub.api.dependencies import require_staff, require_user
from learnhub.api.errors import raise_http
from learnhub.api.reviews import ReviewIn, ReviewOut, to_review_out
from learnhub.models.course import Course, Lesson
from learnhub.models.principal import Principal
from learnhub.services.errors import DomainError
from learnhub.services.wiring import catalog, reviews, statistics

router = APIRouter(prefix="/v1/courses", tags=["courses"])


class CourseIn(BaseModel):
    slug: str
    title: str
    status: str = "draft"
    max_enrollments: int | None = Field(default=None, ge=1)
    prerequisites: list[UUID] = []


class CourseOut(BaseModel):
    id: str
    slug: str
    title: str
    status: str
    version: int
    max_enrollments: int | None
    prerequisites: list[str]
    enrollment_count: int
    average_rating: float
    total_reviews: int


class LessonIn(BaseModel):
    title: str
    position: int = Field(ge=1)


class LessonOut(BaseModel):
    id: str
    course_id: str
    title: str
    position: int


class LessonWithProgressOut(LessonOut):
    completed: bool
    percent_complete: int
    time_spent: int


class CourseStatsOut(BaseModel):
    status: str
    count: int
    average_progress: float
    time_spent: int


def _to_course_out(c: Course) -> CourseOut:
    return CourseOut(
        id=str(c.id),
        slug=c.slug,
        title=c.title,
        status=c.status,
        version=c.version,
        max_enrollments=c.max_enrollments,
        prerequisites=[str(p) for p in c.prerequisites],
        enrollment_count=c.enrollment_count,
        average_rating=c.average_rating,
        total_reviews=c.total_reviews,
    )


def _to_lesson_out(le: Lesson) -> LessonOut:
    return LessonOut(
        id=str(le.id), course_id=str(le.course_id), title=le.title, position=le.position
    )


@router.get("", response_model=list[CourseOut])
async def list_courses(
    _principal: Annotated[Principal, Depends(require_user)],
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> list[CourseOut]:
    try:
        courses = await catalog.list_courses(status_filter)
    except DomainError as e:
        raise_http(e)
    return [_to_course_out(c) for c in courses]


@router.post("", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
async def create_course(
    body: CourseIn,
    principal: Annotated[Principal, Depends(require_staff)],
) -> CourseOut:
    try:
        course = await catalog.create_course(
            slug=body.slug,
            title=body.title,
            created_by=principal.user_id,
            status=body.status,
            max_enrollments=body.max_enrollments,
            prerequisites=tuple(body.prerequisites),
        )
    except DomainError as e:
        raise_http(e)
    return _to_course_out(course)


@router.get("/{course_id}", response_model=CourseOut)
async def get_course(
    course_id: UUID,
    _principal: Annotated[Principal, Depends(require_user)],
) -> CourseOut:
    try:
        course = await catalog.get_course(course_id)
    except DomainError as e:
        raise_http(e)
    return _to_course_out(course)


@router.get("/{course_id}/lessons", response_model=list[LessonWithProgressOut])
async def list_lessons(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
) -> list[LessonWithProgressOut]:
    """Lessons in order with the caller's own progress on each."""
    pairs = await catalog.list_lessons_with_progress(course_id, principal.user_id)
    return [
        LessonWithProgressOut(
            **_to_lesson_out(le).model_dump(),
            completed=p is not None and p.completed,
            percent_complete=0 if p is None else p.percent_complete,
            time_spent=0 if p is None else p.time_spent,
        )
        for le, p in pairs
    ]


@router.post(
    "/{course_id}/lessons",
    response_model=LessonOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_lesson(
    course_id: UUID,
    body: LessonIn,
    _principal: Annotated[Principal, Depends(require_staff)],
) -> LessonOut:
    try:
        lesson = await catalog.add_lesson(
            course_id, title=body.title, position=body.position
        )
    except DomainError as e:
        raise_http(e)
    return _to_lesson_out(lesson)


@router.get("/{course_id}/stats", response_model=list[CourseStatsOut])
async def course_stats(
    course_id: UUID,
    _principal: Annotated[Principal, Depends(require_staff)],
) -> list[CourseStatsOut]:
    try:
        buckets = await statistics.course_breakdown(course_id)
    except DomainError as e:
        raise_http(e)
    return [
        CourseStatsOut(
            status=b.status,
            count=b.count,
            average_progress=b.average_progress,
            time_spent=b.time_spent,
        )
        for b in buckets
    ]


@router.get("/{course_id}/reviews", response_model=list[ReviewOut])
async def list_reviews(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    include_pending: bool = False,
) -> list[ReviewOut]:
    # Pending reviews are visible to moderators only.
    rows = await reviews.list_reviews(
        course_id, include_pending=include_pending and principal.can_moderate()
    )
    return [to_review_out(r) for r in rows]


@router.post(
    "/{course_id}/reviews",
    response_model=ReviewOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_review(
    course_id: UUID,
    body: ReviewIn,
    principal: Annotated[Principal, Depends(require_user)],
) -> ReviewOut:
    try:
        review = await reviews.create_review(
            course_id, principal.user_id, body.rating, body.comment
        )
    except DomainError as e:
        raise_http(e)
    return to_review_out(review)
