"""Tests for the request context middleware.

Every response carries an X-Request-ID header, generated or echoed from
the request, and the ID is visible to log records emitted while the
request is handled.
"""

from __future__ import annotations

import logging
import uuid

from fastapi.testclient import TestClient

from learnhub.core.logging import _RequestContextFilter, request_id_var


def test_request_id_generated_when_not_provided(client: TestClient) -> None:
    resp = client.get("/health")
    req_id = resp.headers.get("x-request-id")
    assert req_id is not None
    uuid.UUID(req_id)


def test_request_id_echoed_when_provided(client: TestClient) -> None:
    custom_id = "my-custom-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": custom_id})
    assert resp.headers.get("x-request-id") == custom_id


def test_request_id_present_on_error_responses(client: TestClient) -> None:
    resp = client.get("/v1/enrollments")  # no token -> 401
    assert resp.status_code == 401
    assert resp.headers.get("x-request-id") is not None


def test_filter_copies_context_request_id() -> None:
    token = request_id_var.set("req-abc")
    try:
        record = logging.LogRecord("x", logging.INFO, "f.py", 1, "m", (), None)
        _RequestContextFilter().filter(record)
    finally:
        request_id_var.reset(token)
    assert record.request_id == "req-abc"  # type: ignore[attr-defined]
