"""PostgreSQL implementation of EnrollmentRepo.

Certificates live in their own table with a unique enrollment_id, so a
second certificate for the same enrollment is rejected by the database
even if two completions raced past the service checks.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from learnhub.db.tables import CertificateRow, EnrollmentRow
from learnhub.models.enrollment import COMPLETED, Certificate, Enrollment
from learnhub.repos.errors import DuplicateRecordError


class PgEnrollmentRepo:
    """Satisfies the EnrollmentRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, enrollment_id: UUID) -> Enrollment | None:
        stmt = select(EnrollmentRow).where(EnrollmentRow.id == enrollment_id)
        return await self._one(stmt)

    async def get_owned(
        self, enrollment_id: UUID, student_id: str, *, for_update: bool = False
    ) -> Enrollment | None:
        stmt = select(EnrollmentRow).where(
            EnrollmentRow.id == enrollment_id,
            EnrollmentRow.student_id == student_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        return await self._one(stmt)

    async def find_for_pair(
        self, student_id: str, course_id: UUID, statuses: frozenset[str]
    ) -> Enrollment | None:
        stmt = (
            select(EnrollmentRow)
            .where(
                EnrollmentRow.student_id == student_id,
                EnrollmentRow.course_id == course_id,
                EnrollmentRow.status.in_(statuses),
            )
            .limit(1)
        )
        return await self._one(stmt)

    async def count_for_course(self, course_id: UUID, statuses: frozenset[str]) -> int:
        stmt = (
            select(func.count())
            .select_from(EnrollmentRow)
            .where(
                EnrollmentRow.course_id == course_id,
                EnrollmentRow.status.in_(statuses),
            )
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def completed_course_ids(
        self, student_id: str, course_ids: Iterable[UUID]
    ) -> set[UUID]:
        ids = list(course_ids)
        if not ids:
            return set()
        stmt = select(EnrollmentRow.course_id).where(
            EnrollmentRow.student_id == student_id,
            EnrollmentRow.course_id.in_(ids),
            EnrollmentRow.status == COMPLETED,
        )
        return set((await self._session.execute(stmt)).scalars().all())

    async def add(self, enrollment: Enrollment) -> None:
        self._session.add(
            EnrollmentRow(
                id=enrollment.id,
                student_id=enrollment.student_id,
                course_id=enrollment.course_id,
                status=enrollment.status,
                progress=enrollment.progress,
                completed_lessons=list(enrollment.completed_lessons),
                grade=enrollment.grade,
                time_spent=enrollment.time_spent,
                current_lesson_id=enrollment.current_lesson_id,
                enrolled_at=enrollment.enrolled_at,
                last_accessed_at=enrollment.last_accessed_at,
                updated_at=enrollment.updated_at,
                completed_at=enrollment.completed_at,
                cancelled_at=enrollment.cancelled_at,
            )
        )
        try:
            await self._session.flush()
        except IntegrityError as e:
            raise DuplicateRecordError("enrollment already exists") from e

    async def update(self, enrollment: Enrollment, *, expected_status: str) -> bool:
        # Conditional update: a concurrent writer that already moved the
        # status leaves rowcount at 0 and the caller reports a conflict.
        stmt = (
            update(EnrollmentRow)
            .where(
                EnrollmentRow.id == enrollment.id,
                EnrollmentRow.status == expected_status,
            )
            .values(
                status=enrollment.status,
                progress=enrollment.progress,
                completed_lessons=list(enrollment.completed_lessons),
                grade=enrollment.grade,
                time_spent=enrollment.time_spent,
                current_lesson_id=enrollment.current_lesson_id,
                last_accessed_at=enrollment.last_accessed_at,
                updated_at=enrollment.updated_at,
                completed_at=enrollment.completed_at,
                cancelled_at=enrollment.cancelled_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return False

        if enrollment.certificates:
            cert_stmt = (
                pg_insert(CertificateRow)
                .values(
                    [
                        {
                            "certificate_id": c.certificate_id,
                            "enrollment_id": enrollment.id,
                            "issued_at": c.issued_at,
                        }
                        for c in enrollment.certificates
                    ]
                )
                .on_conflict_do_nothing()
            )
            await self._session.execute(cert_stmt)
        return True

    async def list_by_student(
        self, student_id: str, status: str | None = None
    ) -> list[Enrollment]:
        stmt = select(EnrollmentRow).where(EnrollmentRow.student_id == student_id)
        if status is not None:
            stmt = stmt.where(EnrollmentRow.status == status)
        return await self._many(stmt)

    async def list_by_course(self, course_id: UUID) -> list[Enrollment]:
        stmt = select(EnrollmentRow).where(EnrollmentRow.course_id == course_id)
        return await self._many(stmt)

    async def remove_lesson(self, lesson_id: UUID) -> int:
        pulled = await self._session.execute(
            update(EnrollmentRow)
            .where(EnrollmentRow.completed_lessons.contains([lesson_id]))
            .values(
                completed_lessons=func.array_remove(
                    EnrollmentRow.completed_lessons, lesson_id
                )
            )
            .returning(EnrollmentRow.id)
            .execution_options(synchronize_session=False)
        )
        touched = set(pulled.scalars().all())
        cleared = await self._session.execute(
            update(EnrollmentRow)
            .where(EnrollmentRow.current_lesson_id == lesson_id)
            .values(current_lesson_id=None)
            .returning(EnrollmentRow.id)
            .execution_options(synchronize_session=False)
        )
        touched.update(cleared.scalars().all())
        return len(touched)

    # --- helpers ---

    async def _one(self, stmt) -> Enrollment | None:
        stmt = stmt.execution_options(populate_existing=True)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        certs = await self._certificates_for([row.id])
        return _row_to_enrollment(row, certs.get(row.id, ()))

    async def _many(self, stmt) -> list[Enrollment]:
        stmt = stmt.execution_options(populate_existing=True)
        rows = (await self._session.execute(stmt)).scalars().all()
        certs = await self._certificates_for([r.id for r in rows])
        return [_row_to_enrollment(r, certs.get(r.id, ())) for r in rows]

    async def _certificates_for(
        self, enrollment_ids: Sequence[UUID]
    ) -> dict[UUID, tuple[Certificate, ...]]:
        if not enrollment_ids:
            return {}
        stmt = (
            select(CertificateRow)
            .where(CertificateRow.enrollment_id.in_(enrollment_ids))
            .order_by(CertificateRow.issued_at)
        )
        grouped: dict[UUID, list[Certificate]] = defaultdict(list)
        for row in (await self._session.execute(stmt)).scalars().all():
            grouped[row.enrollment_id].append(
                Certificate(certificate_id=row.certificate_id, issued_at=row.issued_at)
            )
        return {eid: tuple(certs) for eid, certs in grouped.items()}


def _row_to_enrollment(
    row: EnrollmentRow, certificates: tuple[Certificate, ...]
) -> Enrollment:
    return Enrollment(
        id=row.id,
        student_id=row.student_id,
        course_id=row.course_id,
        status=row.status,
        progress=row.progress,
        completed_lessons=tuple(row.completed_lessons) if row.completed_lessons else (),
        grade=row.grade,
        time_spent=row.time_spent,
        current_lesson_id=row.current_lesson_id,
        enrolled_at=row.enrolled_at,
        last_accessed_at=row.last_accessed_at,
        updated_at=row.updated_at,
        completed_at=row.completed_at,
        cancelled_at=row.cancelled_at,
        certificates=certificates,
    )
