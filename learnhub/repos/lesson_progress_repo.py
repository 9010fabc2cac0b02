from __future__ import annotations

from typing import Protocol
from uuid import UUID

from learnhub.models.progress import LessonProgress


class LessonProgressRepo(Protocol):
    async def get(self, user_id: str, lesson_id: UUID) -> LessonProgress | None: ...
    async def upsert(self, progress: LessonProgress) -> LessonProgress: ...
    async def delete_by_lesson(self, lesson_id: UUID) -> int: ...
    async def list_for_course(
        self, user_id: str, course_id: UUID
    ) -> list[LessonProgress]: ...


class InMemoryLessonProgressRepo:
    def __init__(self, records: dict[tuple[str, UUID], LessonProgress]) -> None:
        self._store = records

    async def get(self, user_id: str, lesson_id: UUID) -> LessonProgress | None:
        return self._store.get((user_id, lesson_id))

    async def upsert(self, progress: LessonProgress) -> LessonProgress:
        self._store[(progress.user_id, progress.lesson_id)] = progress
        return progress

    async def delete_by_lesson(self, lesson_id: UUID) -> int:
        keys = [k for k in self._store if k[1] == lesson_id]
        for k in keys:
            del self._store[k]
        return len(keys)

    async def list_for_course(
        self, user_id: str, course_id: UUID
    ) -> list[LessonProgress]:
        return [
            p
            for p in self._store.values()
            if p.user_id == user_id and p.course_id == course_id
        ]
