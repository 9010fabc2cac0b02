from __future__ import annotations

import asyncio
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

from learnhub.main import app
from learnhub.models.course import Course, Lesson
from learnhub.repos.store import InMemoryRecordStore
from learnhub.services import token_service, wiring
from learnhub.services.task_queue import task_queue


@pytest.fixture(autouse=True)
def reset_record_store() -> None:
    """Start every test with empty tables."""
    if isinstance(wiring.record_store, InMemoryRecordStore):
        wiring.record_store.clear()


@pytest.fixture(autouse=True)
def reset_task_queue() -> None:
    """Clear task queues between tests."""
    if hasattr(task_queue, "clear"):
        task_queue.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(
    username: str = "test-user",
    roles: list[str] | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=username, roles=roles)


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def token() -> str:
    """Token with default role (user)."""
    return mint_token()


@pytest.fixture
def instructor_token() -> str:
    return mint_token(username="test-instructor", roles=["instructor"])


@pytest.fixture
def admin_token() -> str:
    return mint_token(username="test-admin", roles=["admin"])


# ---------------------------------------------------------------------------
# Seeding helpers (go through the app's own singletons)
# ---------------------------------------------------------------------------


def seed_course(
    slug: str = "intro-python",
    *,
    title: str | None = None,
    status: str = "published",
    max_enrollments: int | None = None,
    prerequisites: tuple[UUID, ...] = (),
) -> Course:
    return asyncio.run(
        wiring.catalog.create_course(
            slug=slug,
            title=title or slug.replace("-", " ").title(),
            created_by="seed",
            status=status,
            max_enrollments=max_enrollments,
            prerequisites=prerequisites,
        )
    )


def seed_lesson(course_id: UUID, title: str = "Lesson", position: int = 1) -> Lesson:
    return asyncio.run(
        wiring.catalog.add_lesson(course_id, title=title, position=position)
    )


class FakeClock:
    """Deterministic clock for service tests; advance with tick()."""

    def __init__(self, start: int = 1_700_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def tick(self, seconds: int = 60) -> int:
        self.now += seconds
        return self.now
