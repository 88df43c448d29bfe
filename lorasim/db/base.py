"""
db/base.py
----------
Declarative base and shared column helpers.

Identifiers are strings, not native UUIDs: organisation and profile ids are
assigned upstream (FrostGuard, Stack Auth) and stored verbatim, and the
same schema must run on PostgreSQL and on SQLite in tests. Locally created
rows get a uuid4 string from generate_uuid.

Timestamps are timezone-aware UTC throughout. Server defaults fill
created_at / updated_at; application-side times (synced_at, processed_at,
telemetry timestamps) come from utcnow().
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    # Core UPDATE / upsert statements bypass onupdate; they set updated_at explicitly.
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


def generate_uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
