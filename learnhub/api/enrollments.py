"""Enrollment endpoints.

  POST   /v1/enrollments                   admission (201)
  GET    /v1/enrollments                   caller's enrollments, paginated
  GET    /v1/enrollments/stats/dashboard   caller's dashboard
  GET    /v1/enrollments/{id}              one enrollment (owner only)
  PATCH  /v1/enrollments/{id}/progress     progress update
  PATCH  /v1/enrollments/{id}/status       status transition
  DELETE /v1/enrollments/{id}              unenroll (soft delete)

Every enrollment is scoped to the token subject: asking for someone
else's enrollment is indistinguishable from asking for one that does not
exist (404).
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from learnhub.api.dependencies import require_user
from learnhub.api.errors import raise_http
from learnhub.models.enrollment import Enrollment
from learnhub.models.principal import Principal
from learnhub.services.enrollment_service import MAX_PAGE_SIZE, ProgressUpdate
from learnhub.services.errors import DomainError
from learnhub.services.statistics import StudentDashboard
from learnhub.services.wiring import admission, enrollments, statistics

router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


class EnrollIn(BaseModel):
    course_id: UUID


class ProgressIn(BaseModel):
    progress: int | None = Field(default=None, ge=0, le=100)
    completed_lessons: list[UUID] | None = None
    time_spent: int | None = Field(default=None, ge=0)  # minutes to add
    current_lesson_id: UUID | None = None
    grade: int | None = Field(default=None, ge=0, le=100)


class StatusIn(BaseModel):
    status: str


class CertificateOut(BaseModel):
    certificate_id: str
    issued_at: int


class EnrollmentOut(BaseModel):
    id: str
    student_id: str
    course_id: str
    status: str
    progress: int
    completed_lessons: list[str]
    grade: int | None
    time_spent: int
    current_lesson_id: str | None
    enrolled_at: int
    last_accessed_at: int
    updated_at: int
    completed_at: int | None
    cancelled_at: int | None
    certificates: list[CertificateOut]


class EnrollmentPage(BaseModel):
    items: list[EnrollmentOut]
    page: int
    limit: int
    total: int
    pages: int


class StatusBucketOut(BaseModel):
    status: str
    count: int
    average_progress: float
    time_spent: int


class RecentActivityOut(BaseModel):
    enrollment_id: str
    status: str
    progress: int
    updated_at: int
    course_id: str
    course_slug: str | None
    course_title: str | None


class DashboardOut(BaseModel):
    stats: list[StatusBucketOut]
    total_time_spent: int
    recent_activity: list[RecentActivityOut]


def to_enrollment_out(e: Enrollment) -> EnrollmentOut:
    return EnrollmentOut(
        id=str(e.id),
        student_id=e.student_id,
        course_id=str(e.course_id),
        status=e.status,
        progress=e.progress,
        completed_lessons=[str(lid) for lid in e.completed_lessons],
        grade=e.grade,
        time_spent=e.time_spent,
        current_lesson_id=str(e.current_lesson_id) if e.current_lesson_id else None,
        enrolled_at=e.enrolled_at,
        last_accessed_at=e.last_accessed_at,
        updated_at=e.updated_at,
        completed_at=e.completed_at,
        cancelled_at=e.cancelled_at,
        certificates=[
            CertificateOut(certificate_id=c.certificate_id, issued_at=c.issued_at)
            for c in e.certificates
        ],
    )


def _to_dashboard_out(d: StudentDashboard) -> DashboardOut:
    return DashboardOut(
        stats=[
            StatusBucketOut(
                status=b.status,
                count=b.count,
                average_progress=b.average_progress,
                time_spent=b.time_spent,
            )
            for b in d.buckets
        ],
        total_time_spent=d.total_time_spent,
        recent_activity=[
            RecentActivityOut(
                enrollment_id=str(r.enrollment_id),
                status=r.status,
                progress=r.progress,
                updated_at=r.updated_at,
                course_id=str(r.course_id),
                course_slug=r.course_slug,
                course_title=r.course_title,
            )
            for r in d.recent
        ],
    )


@router.post("", response_model=EnrollmentOut, status_code=status.HTTP_201_CREATED)
async def enroll(
    body: EnrollIn,
    principal: Annotated[Principal, Depends(require_user)],
) -> EnrollmentOut:
    try:
        enrollment = await admission.request_enrollment(
            principal.user_id, body.course_id
        )
    except DomainError as e:
        raise_http(e)
    return to_enrollment_out(enrollment)


@router.get("", response_model=EnrollmentPage)
async def list_my_enrollments(
    principal: Annotated[Principal, Depends(require_user)],
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = 10,
) -> EnrollmentPage:
    try:
        items, total = await enrollments.list_enrollments(
            principal.user_id, status=status_filter, page=page, limit=limit
        )
    except DomainError as e:
        raise_http(e)
    return EnrollmentPage(
        items=[to_enrollment_out(e) for e in items],
        page=page,
        limit=limit,
        total=total,
        pages=-(-total // limit),
    )


@router.get("/stats/dashboard", response_model=DashboardOut)
async def my_dashboard(
    principal: Annotated[Principal, Depends(require_user)],
) -> DashboardOut:
    try:
        dashboard = await statistics.student_dashboard(principal.user_id)
    except DomainError as e:
        raise_http(e)
    return _to_dashboard_out(dashboard)


@router.get("/{enrollment_id}", response_model=EnrollmentOut)
async def get_enrollment(
    enrollment_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
) -> EnrollmentOut:
    try:
        enrollment = await enrollments.get_enrollment(enrollment_id, principal.user_id)
    except DomainError as e:
        raise_http(e)
    return to_enrollment_out(enrollment)


@router.patch("/{enrollment_id}/progress", response_model=EnrollmentOut)
async def update_progress(
    enrollment_id: UUID,
    body: ProgressIn,
    principal: Annotated[Principal, Depends(require_user)],
) -> EnrollmentOut:
    update = ProgressUpdate(
        progress=body.progress,
        completed_lessons=(
            tuple(body.completed_lessons) if body.completed_lessons else None
        ),
        time_spent_delta=body.time_spent,
        current_lesson_id=body.current_lesson_id,
        grade=body.grade,
    )
    try:
        enrollment = await enrollments.update_progress(
            enrollment_id, principal.user_id, update
        )
    except DomainError as e:
        raise_http(e)
    return to_enrollment_out(enrollment)


@router.patch("/{enrollment_id}/status", response_model=EnrollmentOut)
async def set_status(
    enrollment_id: UUID,
    body: StatusIn,
    principal: Annotated[Principal, Depends(require_user)],
) -> EnrollmentOut:
    try:
        enrollment = await enrollments.set_status(
            enrollment_id, principal.user_id, body.status
        )
    except DomainError as e:
        raise_http(e)
    return to_enrollment_out(enrollment)


@router.delete("/{enrollment_id}", response_model=EnrollmentOut)
async def unenroll(
    enrollment_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
) -> EnrollmentOut:
    try:
        enrollment = await enrollments.unenroll(enrollment_id, principal.user_id)
    except DomainError as e:
        raise_http(e)
    return to_enrollment_out(enrollment)
