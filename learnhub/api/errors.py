"""Translate service errors into HTTP responses.

Routers wrap service calls like this:

    try:
        enrollment = await admission.request_enrollment(...)
    except DomainError as e:
        raise_http(e)

The response body is ``{"detail": {"kind": ..., "message": ...}}`` so
clients can branch on the stable kind instead of parsing the message.
"""

from __future__ import annotations

import logging
from typing import NoReturn

from fastapi import HTTPException, status

from learnhub.services.errors import (
    Conflict,
    DependencyFailure,
    DomainError,
    InvalidTransition,
    NotFound,
    PermissionDenied,
    PrerequisitesNotMet,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_CATEGORY: tuple[tuple[type[DomainError], int], ...] = (
    (NotFound, status.HTTP_404_NOT_FOUND),
    (Conflict, status.HTTP_409_CONFLICT),
    (InvalidTransition, status.HTTP_400_BAD_REQUEST),
    (ValidationError, 422),
    (PermissionDenied, status.HTTP_403_FORBIDDEN),
    (DependencyFailure, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_for(error: DomainError) -> int:
    for category, code in _STATUS_BY_CATEGORY:
        if isinstance(error, category):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def raise_http(error: DomainError) -> NoReturn:
    code = status_for(error)
    detail: dict[str, object] = {"kind": error.kind, "message": error.message}
    if isinstance(error, PrerequisitesNotMet):
        detail["missing"] = [str(m) for m in error.missing]

    if code >= 500:
        logger.error("Request failed: %s (%s)", error.message, error.kind)
    else:
        logger.warning("Request rejected: %s (%s)", error.message, error.kind)
    raise HTTPException(status_code=code, detail=detail) from None
