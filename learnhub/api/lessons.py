"""Per-lesson progress endpoints and lesson deletion."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from learnhub.api.dependencies import require_staff, require_user
from learnhub.api.errors import raise_http
from learnhub.models.principal import Principal
from learnhub.models.progress import LessonProgress
from learnhub.services.errors import DomainError
from learnhub.services.wiring import enrollments

router = APIRouter(prefix="/v1/lessons", tags=["lessons"])


class LessonProgressIn(BaseModel):
    progress: int = Field(ge=0, le=100)
    time_spent: int = Field(default=0, ge=0)


class LessonProgressOut(BaseModel):
    user_id: str
    course_id: str
    lesson_id: str
    completed: bool
    percent_complete: int
    time_spent: int
    last_accessed_at: int | None
    completed_at: int | None


class PurgeOut(BaseModel):
    lesson_id: str
    enrollments_updated: int


def _to_progress_out(p: LessonProgress) -> LessonProgressOut:
    return LessonProgressOut(
        user_id=p.user_id,
        course_id=str(p.course_id),
        lesson_id=str(p.lesson_id),
        completed=p.completed,
        percent_complete=p.percent_complete,
        time_spent=p.time_spent,
        last_accessed_at=p.last_accessed_at,
        completed_at=p.completed_at,
    )


@router.post("/{lesson_id}/complete", response_model=LessonProgressOut)
async def complete_lesson(
    lesson_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
) -> LessonProgressOut:
    try:
        record = await enrollments.complete_lesson(lesson_id, principal.user_id)
    except DomainError as e:
        raise_http(e)
    return _to_progress_out(record)


@router.put("/{lesson_id}/progress", response_model=LessonProgressOut)
async def update_lesson_progress(
    lesson_id: UUID,
    body: LessonProgressIn,
    principal: Annotated[Principal, Depends(require_user)],
) -> LessonProgressOut:
    try:
        record = await enrollments.update_lesson_progress(
            lesson_id, principal.user_id, body.progress, body.time_spent
        )
    except DomainError as e:
        raise_http(e)
    return _to_progress_out(record)


@router.delete(
    "/{lesson_id}", response_model=PurgeOut, status_code=status.HTTP_200_OK
)
async def delete_lesson(
    lesson_id: UUID,
    _principal: Annotated[Principal, Depends(require_staff)],
) -> PurgeOut:
    try:
        touched = await enrollments.purge_lesson(lesson_id)
    except DomainError as e:
        raise_http(e)
    return PurgeOut(lesson_id=str(lesson_id), enrollments_updated=touched)
