"""HTTP tests for /v1/courses."""

from __future__ import annotations

from uuid import uuid4

from fastapi.testclient import TestClient

from tests.conftest import auth, mint_token, seed_course, seed_lesson

# ---- 401 / 403 ----


def test_list_courses_rejects_missing_token(client: TestClient) -> None:
    assert client.get("/v1/courses").status_code == 401


def test_students_cannot_create_courses(client: TestClient, token: str) -> None:
    resp = client.post(
        "/v1/courses", json={"slug": "mine", "title": "Mine"}, headers=auth(token)
    )
    assert resp.status_code == 403


# ---- catalog ----


def test_instructor_creates_course(client: TestClient, instructor_token: str) -> None:
    resp = client.post(
        "/v1/courses",
        json={
            "slug": "data-101",
            "title": "Data 101",
            "status": "published",
            "max_enrollments": 30,
        },
        headers=auth(instructor_token),
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["slug"] == "data-101"
    assert body["enrollment_count"] == 0
    assert body["average_rating"] == 0.0
    assert body["total_reviews"] == 0


def test_duplicate_slug_is_409(client: TestClient, instructor_token: str) -> None:
    seed_course("taken")
    resp = client.post(
        "/v1/courses",
        json={"slug": "taken", "title": "Again"},
        headers=auth(instructor_token),
    )
    assert resp.status_code == 409


def test_bad_slug_is_422(client: TestClient, instructor_token: str) -> None:
    resp = client.post(
        "/v1/courses",
        json={"slug": "Not A Slug", "title": "x"},
        headers=auth(instructor_token),
    )
    assert resp.status_code == 422


def test_unknown_prerequisite_is_422(client: TestClient, admin_token: str) -> None:
    resp = client.post(
        "/v1/courses",
        json={"slug": "adv", "title": "Adv", "prerequisites": [str(uuid4())]},
        headers=auth(admin_token),
    )
    assert resp.status_code == 422


def test_list_courses_filters_by_status(client: TestClient, token: str) -> None:
    seed_course("live")
    seed_course("hidden", status="draft")
    resp = client.get("/v1/courses?status=published", headers=auth(token))
    assert resp.status_code == 200
    assert [c["slug"] for c in resp.json()] == ["live"]


def test_get_course_404(client: TestClient, token: str) -> None:
    assert client.get(f"/v1/courses/{uuid4()}", headers=auth(token)).status_code == 404


# ---- lessons ----


def test_lessons_are_listed_in_order(
    client: TestClient, token: str, instructor_token: str
) -> None:
    course = seed_course()
    seed_lesson(course.id, "Second", 2)
    resp = client.post(
        f"/v1/courses/{course.id}/lessons",
        json={"title": "First", "position": 1},
        headers=auth(instructor_token),
    )
    assert resp.status_code == 201

    listed = client.get(f"/v1/courses/{course.id}/lessons", headers=auth(token))
    assert [le["title"] for le in listed.json()] == ["First", "Second"]


# ---- stats ----


def test_course_stats_for_staff(client: TestClient, admin_token: str) -> None:
    course = seed_course()
    for name in ("a", "b"):
        client.post(
            "/v1/enrollments",
            json={"course_id": str(course.id)},
            headers=auth(mint_token(name)),
        )
    resp = client.get(f"/v1/courses/{course.id}/stats", headers=auth(admin_token))
    assert resp.status_code == 200
    assert resp.json() == [
        {"status": "active", "count": 2, "average_progress": 0.0, "time_spent": 0}
    ]


def test_course_stats_forbidden_for_students(client: TestClient, token: str) -> None:
    course = seed_course()
    resp = client.get(f"/v1/courses/{course.id}/stats", headers=auth(token))
    assert resp.status_code == 403


def test_enrollment_count_tracks_admissions(client: TestClient, token: str) -> None:
    course = seed_course()
    client.post(
        "/v1/enrollments", json={"course_id": str(course.id)}, headers=auth(token)
    )
    resp = client.get(f"/v1/courses/{course.id}", headers=auth(token))
    assert resp.json()["enrollment_count"] == 1


def test_lesson_listing_carries_callers_progress(
    client: TestClient, token: str
) -> None:
    course = seed_course()
    first = seed_lesson(course.id, "First", 1)
    second = seed_lesson(course.id, "Second", 2)
    client.post(
        "/v1/enrollments", json={"course_id": str(course.id)}, headers=auth(token)
    )
    client.post(f"/v1/lessons/{first.id}/complete", headers=auth(token))
    client.put(
        f"/v1/lessons/{second.id}/progress",
        json={"progress": 30, "time_spent": 7},
        headers=auth(token),
    )

    mine = client.get(f"/v1/courses/{course.id}/lessons", headers=auth(token))
    assert mine.status_code == 200
    assert [
        (le["title"], le["completed"], le["percent_complete"], le["time_spent"])
        for le in mine.json()
    ] == [("First", True, 100, 0), ("Second", False, 30, 7)]

    other = client.get(
        f"/v1/courses/{course.id}/lessons", headers=auth(mint_token("someone-else"))
    )
    assert [(le["completed"], le["percent_complete"]) for le in other.json()] == [
        (False, 0),
        (False, 0),
    ]
