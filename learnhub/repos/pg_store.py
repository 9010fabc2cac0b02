"""PostgreSQL implementation of RecordStore."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from learnhub.repos.pg_course_repo import PgCourseRepo, PgLessonRepo
from learnhub.repos.pg_enrollment_repo import PgEnrollmentRepo
from learnhub.repos.pg_lesson_progress_repo import PgLessonProgressRepo
from learnhub.repos.pg_review_repo import PgReviewRepo
from learnhub.repos.store import Transaction
from learnhub.services.errors import DependencyFailure

logger = logging.getLogger(__name__)


class PgRecordStore:
    """One AsyncSession per transaction.

    ``session.begin()`` commits when the block exits cleanly and rolls
    back on any exception.  Driver and connection errors surface as
    DependencyFailure; domain errors raised by the services pass through
    untouched after the rollback.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Transaction]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield Transaction(
                        courses=PgCourseRepo(session),
                        lessons=PgLessonRepo(session),
                        enrollments=PgEnrollmentRepo(session),
                        reviews=PgReviewRepo(session),
                        lesson_progress=PgLessonProgressRepo(session),
                    )
        except SQLAlchemyError as e:
            logger.exception("Record store transaction aborted")
            raise DependencyFailure("record store unavailable") from e
