"""Tests for normalized error responses."""

import logging

from fastapi import FastAPI
from fastapi.testclient import TestClient

from ecotrac.core.errors import (
    AlreadyJoinedError,
    AppError,
    DuplicateDayError,
    PersistenceConflictError,
    app_error_handler,
)
from ecotrac.core.middleware.request_id import RequestIdMiddleware


def _app_raising(exc: Exception) -> FastAPI:
    test_app = FastAPI()
    test_app.add_middleware(RequestIdMiddleware)
    test_app.add_exception_handler(AppError, app_error_handler)

    @test_app.get("/boom")
    def boom():
        raise exc

    return test_app


def test_error_codes_are_distinct():
    codes = {
        DuplicateDayError(3).code,
        AlreadyJoinedError("c1", "u1").code,
        PersistenceConflictError("c1", "u1", 2).code,
    }
    assert codes == {"duplicate_day", "already_joined", "persistence_conflict"}


def test_persistence_conflict_rendered_with_request_id():
    client = TestClient(_app_raising(PersistenceConflictError("c1", "u1", 4)))
    resp = client.get("/boom")
    rid = resp.headers.get("x-request-id")
    assert resp.status_code == 409
    body = resp.json()
    assert body["error"]["code"] == "persistence_conflict"
    assert body["error"]["request_id"] == rid


def test_incoming_request_id_is_echoed():
    client = TestClient(_app_raising(DuplicateDayError(1)))
    resp = client.get("/boom", headers={"x-request-id": "fixed-rid"})
    assert resp.headers["x-request-id"] == "fixed-rid"
    assert resp.json()["error"]["request_id"] == "fixed-rid"


def test_validation_error_has_standard_shape(client):
    resp = client.post("/v1/challenges", json={"title": "No duration"})
    assert resp.status_code == 400
    body = resp.json()
    assert body["error"]["code"] == "validation_error"
    assert body["error"]["request_id"] == resp.headers.get("x-request-id")


def test_request_id_in_logs(client, caplog):
    with caplog.at_level(logging.INFO, logger="ecotrac"):
        response = client.get("/healthz")
    rid = response.headers.get("x-request-id")
    assert rid
    records = [r for r in caplog.records if getattr(r, "request_id", None) == rid]
    assert records, "Expected logs to contain request_id from response"
