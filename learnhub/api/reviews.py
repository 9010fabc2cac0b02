"""Review endpoints that address a review directly.

Creation lives under /v1/courses/{course_id}/reviews.  Any change here
triggers an asynchronous recomputation of the course rating, so the
course's average_rating may lag the response by one worker cycle.
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from learnhub.api.dependencies import require_staff, require_user
from learnhub.api.errors import raise_http
from learnhub.models.principal import Principal
from learnhub.models.review import Review
from learnhub.services.errors import DomainError
from learnhub.services.wiring import reviews

router = APIRouter(prefix="/v1/reviews", tags=["reviews"])


class ReviewIn(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: str = Field(min_length=1, max_length=500)


class ReviewPatch(BaseModel):
    rating: int | None = Field(default=None, ge=1, le=5)
    comment: str | None = Field(default=None, min_length=1, max_length=500)


class ReviewOut(BaseModel):
    id: str
    course_id: str
    user_id: str
    rating: int
    comment: str
    is_approved: bool
    created_at: int
    updated_at: int


def to_review_out(r: Review) -> ReviewOut:
    return ReviewOut(
        id=str(r.id),
        course_id=str(r.course_id),
        user_id=r.user_id,
        rating=r.rating,
        comment=r.comment,
        is_approved=r.is_approved,
        created_at=r.created_at,
        updated_at=r.updated_at,
    )


@router.patch("/{review_id}", response_model=ReviewOut)
async def update_review(
    review_id: UUID,
    body: ReviewPatch,
    principal: Annotated[Principal, Depends(require_user)],
) -> ReviewOut:
    try:
        review = await reviews.update_review(
            review_id, principal, rating=body.rating, comment=body.comment
        )
    except DomainError as e:
        raise_http(e)
    return to_review_out(review)


@router.post("/{review_id}/approve", response_model=ReviewOut)
async def approve_review(
    review_id: UUID,
    principal: Annotated[Principal, Depends(require_staff)],
) -> ReviewOut:
    try:
        review = await reviews.approve_review(review_id, principal)
    except DomainError as e:
        raise_http(e)
    return to_review_out(review)


@router.delete("/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_review(
    review_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
) -> None:
    try:
        await reviews.delete_review(review_id, principal)
    except DomainError as e:
        raise_http(e)
