"""Tests for the uniform error envelope."""

from fastapi import APIRouter
from fastapi.testclient import TestClient
from pydantic import BaseModel
from sqlalchemy.exc import OperationalError

import pytest

from app.core.errors import (
    BadRequest,
    Conflict,
    InternalError,
    NotFound,
    TooManyRequests,
    Unauthorized,
    store_errors,
)
from mocks import build_app

router = APIRouter()


class Body(BaseModel):
    name: str


@router.get("/raise/{kind}")
async def raise_kind(kind: str):
    errors = {
        "bad": BadRequest("bad input"),
        "unauth": Unauthorized("who are you"),
        "missing": NotFound("nothing here"),
        "conflict": Conflict("taken"),
        "slow": TooManyRequests("slow down", headers={"Retry-After": "60"}),
        "internal": InternalError("failed"),
    }
    raise errors[kind]


@router.post("/body")
async def takes_body(body: Body):
    return {"ok": True}


@router.get("/store")
async def store_failure():
    with store_errors("demo_op", "Failed to do the thing."):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))


@router.get("/boom")
async def boom():
    raise RuntimeError("kaboom")


@pytest.fixture
def client():
    return TestClient(build_app((router, "")), raise_server_exceptions=False)


@pytest.mark.parametrize("kind,status,category", [
    ("bad", 400, "Bad Request"),
    ("unauth", 401, "Unauthorized"),
    ("missing", 404, "Not Found"),
    ("conflict", 409, "Conflict"),
    ("slow", 429, "Too Many Requests"),
    ("internal", 500, "Internal Server Error"),
])
def test_api_errors_share_one_shape(client, kind, status, category):
    resp = client.get(f"/raise/{kind}")
    assert resp.status_code == status
    body = resp.json()
    assert set(body) == {"error", "message"}
    assert body["error"] == category


def test_error_headers_are_forwarded(client):
    resp = client.get("/raise/slow")
    assert resp.headers["Retry-After"] == "60"


def test_missing_body_field_is_bad_request(client):
    resp = client.post("/body", json={})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Bad Request", "message": "name is required."}


def test_wrong_type_is_bad_request(client):
    resp = client.post("/body", json={"name": 42})
    assert resp.status_code == 400
    assert resp.json()["message"].startswith("name:")


def test_store_failure_becomes_generic_internal_error(client):
    resp = client.get("/store")
    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal Server Error", "message": "Failed to do the thing."}


def test_unknown_route_uses_envelope(client):
    resp = client.get("/nope")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Not Found", "message": "Route GET /nope not found"}


def test_unhandled_exception_is_500_with_envelope(client):
    # Tests run with EAE_DEBUG=true, so the message is verbose
    resp = client.get("/boom")
    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal Server Error", "message": "kaboom"}


def test_unhandled_exception_hides_detail_in_production(client, monkeypatch):
    from app.config import get_settings
    monkeypatch.setattr(get_settings(), "debug", False)
    resp = client.get("/boom")
    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal Server Error", "message": "An error occurred"}
