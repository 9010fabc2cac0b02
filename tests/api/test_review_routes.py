"""HTTP tests for reviews and the asynchronous rating recomputation."""

from __future__ import annotations

import asyncio
from uuid import uuid4

from fastapi.testclient import TestClient

from learnhub import worker
from tests.conftest import auth, mint_token, seed_course


def _review(client: TestClient, course_id, token: str, rating: int = 4) -> dict:
    resp = client.post(
        f"/v1/courses/{course_id}/reviews",
        json={"rating": rating, "comment": "Clear and well paced"},
        headers=auth(token),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def _approve(client: TestClient, review_id: str, staff_token: str) -> None:
    resp = client.post(f"/v1/reviews/{review_id}/approve", headers=auth(staff_token))
    assert resp.status_code == 200


def _course(client: TestClient, course_id, token: str) -> dict:
    return client.get(f"/v1/courses/{course_id}", headers=auth(token)).json()


def test_create_review(client: TestClient, token: str) -> None:
    course = seed_course()
    body = _review(client, course.id, token)
    assert body["user_id"] == "test-user"
    assert body["is_approved"] is False


def test_second_review_by_same_user_is_409(client: TestClient, token: str) -> None:
    course = seed_course()
    _review(client, course.id, token)
    resp = client.post(
        f"/v1/courses/{course.id}/reviews",
        json={"rating": 2, "comment": "Changed my mind"},
        headers=auth(token),
    )
    assert resp.status_code == 409


def test_rating_out_of_range_is_422(client: TestClient, token: str) -> None:
    course = seed_course()
    resp = client.post(
        f"/v1/courses/{course.id}/reviews",
        json={"rating": 9, "comment": "x"},
        headers=auth(token),
    )
    assert resp.status_code == 422


def test_review_for_unknown_course_is_404(client: TestClient, token: str) -> None:
    resp = client.post(
        f"/v1/courses/{uuid4()}/reviews",
        json={"rating": 3, "comment": "x"},
        headers=auth(token),
    )
    assert resp.status_code == 404


def test_students_cannot_approve(client: TestClient, token: str) -> None:
    course = seed_course()
    review = _review(client, course.id, token)
    resp = client.post(f"/v1/reviews/{review['id']}/approve", headers=auth(token))
    assert resp.status_code == 403


def test_only_author_can_edit(client: TestClient, token: str) -> None:
    course = seed_course()
    review = _review(client, course.id, token)
    resp = client.patch(
        f"/v1/reviews/{review['id']}",
        json={"rating": 1},
        headers=auth(mint_token("someone-else")),
    )
    assert resp.status_code == 403


def test_pending_reviews_hidden_from_students(
    client: TestClient, token: str, instructor_token: str
) -> None:
    course = seed_course()
    _review(client, course.id, token)
    url = f"/v1/courses/{course.id}/reviews?include_pending=true"
    assert client.get(url, headers=auth(token)).json() == []
    assert len(client.get(url, headers=auth(instructor_token)).json()) == 1


def test_approval_updates_course_rating_after_worker_runs(
    client: TestClient, token: str, admin_token: str
) -> None:
    course = seed_course()
    r1 = _review(client, course.id, mint_token("ann"), rating=5)
    r2 = _review(client, course.id, mint_token("bob"), rating=2)
    _approve(client, r1["id"], admin_token)
    _approve(client, r2["id"], admin_token)

    # Recomputation is asynchronous: nothing changes until the worker runs.
    assert _course(client, course.id, token)["total_reviews"] == 0

    asyncio.run(worker.drain())
    course_body = _course(client, course.id, token)
    assert course_body["average_rating"] == 3.5
    assert course_body["total_reviews"] == 2

    resp = client.delete(f"/v1/reviews/{r1['id']}", headers=auth(admin_token))
    assert resp.status_code == 204
    asyncio.run(worker.drain())
    course_body = _course(client, course.id, token)
    assert course_body["average_rating"] == 2.0
    assert course_body["total_reviews"] == 1


def test_author_edit_changes_rating(
    client: TestClient, token: str, admin_token: str
) -> None:
    course = seed_course()
    review = _review(client, course.id, token, rating=2)
    _approve(client, review["id"], admin_token)
    resp = client.patch(
        f"/v1/reviews/{review['id']}", json={"rating": 5}, headers=auth(token)
    )
    assert resp.status_code == 200
    asyncio.run(worker.drain())
    assert _course(client, course.id, token)["average_rating"] == 5.0


def test_delete_unknown_review_is_404(client: TestClient, admin_token: str) -> None:
    resp = client.delete(f"/v1/reviews/{uuid4()}", headers=auth(admin_token))
    assert resp.status_code == 404
