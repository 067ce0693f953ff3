"""
Database models — the "truth layer."

Design principles:
  - Applications own everything; deleting one cascades to keys, events, links
  - API keys are never mutated back to active: regeneration inserts a new row
  - Events are append-only (no updates/deletes on the events table)
  - Short links are mutable only through their click counter
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase

from app.core.keygen import new_id


class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# Entity tables
# ---------------------------------------------------------------------------

class Application(Base):
    __tablename__ = "apps"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class APIKey(Base):
    """One row per issuance. Usable iff not revoked and not past expires_at."""
    __tablename__ = "api_keys"

    id = Column(String(36), primary_key=True, default=new_id)
    app_id = Column(String(36), ForeignKey("apps.id", ondelete="CASCADE"), nullable=False, index=True)
    api_key = Column(String(64), nullable=False, unique=True, index=True)
    is_revoked = Column(Boolean, nullable=False, default=False, server_default="false", index=True)
    expires_at = Column(DateTime(timezone=True), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    revoked_at = Column(DateTime(timezone=True), nullable=True)


class ShortURL(Base):
    __tablename__ = "short_urls"

    id = Column(String(36), primary_key=True, default=new_id)
    app_id = Column(String(36), ForeignKey("apps.id", ondelete="CASCADE"), nullable=False, index=True)
    slug = Column(String(100), nullable=False, unique=True, index=True)
    original_url = Column(Text, nullable=False)
    click_count = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


# ---------------------------------------------------------------------------
# Event table (append-only)
# ---------------------------------------------------------------------------

class Event(Base):
    """One row per collected event, tagged with the key that sent it."""
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=new_id)
    app_id = Column(String(36), ForeignKey("apps.id", ondelete="CASCADE"), nullable=False)
    api_key_id = Column(String(36), ForeignKey("api_keys.id", ondelete="CASCADE"), nullable=False)

    event_name = Column(String(255), nullable=False, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    session_id = Column(String(255), nullable=True, index=True)

    # --- Device ---
    device_type = Column(String(50), nullable=True)
    device_model = Column(String(255), nullable=True)
    os_name = Column(String(100), nullable=True)
    os_version = Column(String(50), nullable=True)
    browser_name = Column(String(100), nullable=True)
    browser_version = Column(String(50), nullable=True)

    # --- Captured server-side ---
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)

    # Plain JSON (not JSONB) so the client's key order survives the round trip
    properties = Column(JSON, nullable=True)

    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_events_app_event_timestamp", "app_id", "event_name", "timestamp"),
    )
