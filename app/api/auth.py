"""
Application registration and API key lifecycle.

  POST /auth/register    — create app + first key (the only time a raw key is returned)
  GET  /auth/api-key     — list an app's keys, masked
  POST /auth/revoke      — revoke one key
  POST /auth/regenerate  — revoke all active keys of an app, issue a new one

Keys are never reactivated or rewritten: every issuance is a new row.
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, field_validator
from sqlalchemy import select, func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.core.errors import NotFound, store_errors
from app.core.keygen import mask_api_key, new_api_key, new_id
from app.models.database import get_db
from app.models.tables import APIKey, Application

import structlog

logger = structlog.get_logger()
router = APIRouter(prefix="/auth", tags=["auth"])


# --- Request schemas ---

class RegisterRequest(BaseModel):
    name: str
    description: str | None = None

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Application name is required and must be a non-empty string.")
        return v


class RevokeRequest(BaseModel):
    api_key_id: str

    @field_validator("api_key_id")
    @classmethod
    def _id_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("api_key_id is required.")
        return v


class RegenerateRequest(BaseModel):
    app_id: str

    @field_validator("app_id")
    @classmethod
    def _id_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("app_id is required.")
        return v


# --- Endpoints ---

@router.post("/register", status_code=201)
async def register_app(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db),
):
    app_id = new_id()
    raw_key = new_api_key()

    with store_errors("register_app", "Failed to register application."):
        try:
            db.add(Application(id=app_id, name=body.name, description=body.description))
            await db.flush()
            db.add(APIKey(id=new_id(), app_id=app_id, api_key=raw_key))
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            raise

    logger.info("app_registered", app_id=app_id, name=body.name)

    return {
        "success": True,
        "data": {
            "appId": app_id,
            "apiKey": raw_key,
            "message": "Application registered successfully. Save your API key securely.",
        },
    }


@router.get("/api-key")
async def list_api_keys(
    app_id: str = Query(...),
    db: AsyncSession = Depends(get_db),
):
    """All keys of one application, newest first, secrets masked."""
    suffix = get_settings().api_key_mask_suffix
    stmt = (
        select(
            APIKey.id,
            APIKey.api_key,
            APIKey.is_revoked,
            APIKey.expires_at,
            APIKey.created_at,
            APIKey.revoked_at,
            Application.name.label("app_name"),
        )
        .join(Application, Application.id == APIKey.app_id)
        .where(APIKey.app_id == app_id)
        .order_by(APIKey.created_at.desc())
    )
    with store_errors("list_api_keys", "Failed to retrieve API keys.", app_id=app_id):
        result = await db.execute(stmt)
        rows = result.all()

    return {
        "success": True,
        "data": [
            {
                "id": row.id,
                "api_key": mask_api_key(row.api_key, row.is_revoked, suffix),
                "is_revoked": row.is_revoked,
                "expires_at": row.expires_at,
                "created_at": row.created_at,
                "revoked_at": row.revoked_at,
                "app_name": row.app_name,
            }
            for row in rows
        ],
    }


@router.post("/revoke")
async def revoke_api_key(
    body: RevokeRequest,
    db: AsyncSession = Depends(get_db),
):
    """Revoke one key. Revoking an already-revoked key is a no-op success."""
    with store_errors("revoke_api_key", "Failed to revoke API key.", api_key_id=body.api_key_id):
        result = await db.execute(
            update(APIKey)
            .where(APIKey.id == body.api_key_id, APIKey.is_revoked == False)
            .values(is_revoked=True, revoked_at=func.now())
        )
        if result.rowcount == 0:
            existing = await db.execute(select(APIKey.id).where(APIKey.id == body.api_key_id))
            if existing.scalar_one_or_none() is None:
                raise NotFound("API key not found.")
        await db.commit()

    logger.info("api_key_revoked", api_key_id=body.api_key_id, changed=result.rowcount > 0)
    return {"success": True, "message": "API key revoked successfully."}


@router.post("/regenerate")
async def regenerate_api_key(
    body: RegenerateRequest,
    db: AsyncSession = Depends(get_db),
):
    """Revoke every active key of the app and issue exactly one new key.

    The application row is locked (SELECT ... FOR UPDATE) for the whole
    transaction, so concurrent regenerations for one app run one after the
    other and leave exactly one active key.
    """
    raw_key = new_api_key()

    with store_errors("regenerate_api_key", "Failed to regenerate API key.", app_id=body.app_id):
        try:
            locked = await db.execute(
                select(Application.id).where(Application.id == body.app_id).with_for_update()
            )
            if locked.scalar_one_or_none() is None:
                raise NotFound("Application not found.")

            await db.execute(
                update(APIKey)
                .where(APIKey.app_id == body.app_id, APIKey.is_revoked == False)
                .values(is_revoked=True, revoked_at=func.now())
            )
            db.add(APIKey(id=new_id(), app_id=body.app_id, api_key=raw_key))
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            raise

    logger.info("api_key_regenerated", app_id=body.app_id)

    return {
        "success": True,
        "data": {
            "apiKey": raw_key,
            "message": "API key regenerated successfully. Old keys have been revoked.",
        },
    }
