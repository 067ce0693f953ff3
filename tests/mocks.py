"""
Mock objects shared by the API tests.

The database is never touched: handlers get an AsyncMock session whose
execute() returns canned result objects in call order.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from fastapi import FastAPI

from app.core.errors import register_exception_handlers
from app.middleware.auth import AuthContext

APP_ID = "0b7f3c9a-5d1e-4c2b-9f6a-1e2d3c4b5a69"
API_KEY_ID = "5c1d2e3f-4a5b-4c6d-8e7f-9a0b1c2d3e4f"


def make_db(execute_results=None):
    """AsyncSession stand-in. execute() yields execute_results one per call."""
    db = AsyncMock(spec=["execute", "add", "commit", "flush", "rollback"])
    if execute_results is None:
        db.execute = AsyncMock(return_value=make_result())
    else:
        db.execute = AsyncMock(side_effect=list(execute_results))
    db.add = MagicMock()
    db.commit = AsyncMock()
    db.flush = AsyncMock()
    db.rollback = AsyncMock()
    return db


def make_result(first=None, scalar=None, rows=None, one=None, rowcount=0):
    """A SQLAlchemy Result look-alike."""
    result = MagicMock()
    result.first.return_value = first
    result.scalar_one_or_none.return_value = scalar
    result.scalar_one.return_value = scalar
    result.all.return_value = list(rows or [])
    result.one.return_value = one
    result.rowcount = rowcount
    return result


def row(**fields):
    return SimpleNamespace(**fields)


def auth_context(app_id=APP_ID, api_key_id=API_KEY_ID, app_name="Demo App") -> AuthContext:
    return AuthContext(app_id=app_id, api_key_id=api_key_id, app_name=app_name)


def build_app(*routers) -> FastAPI:
    """A bare app with our error envelope. routers: (router, prefix) pairs."""
    app = FastAPI()
    register_exception_handlers(app)
    for router, prefix in routers:
        app.include_router(router, prefix=prefix)
    return app


class FakeCache:
    """In-memory ResultCache double that records every write."""

    def __init__(self, initial=None):
        self.store = dict(initial or {})
        self.writes = []

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ttl=None):
        self.store[key] = value
        self.writes.append((key, value, ttl))
        return True

    def expire_all(self):
        self.store.clear()
