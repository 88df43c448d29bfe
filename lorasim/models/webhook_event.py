"""
models/webhook_event.py
-----------------------
Audit log of every inbound FrostGuard webhook delivery.

A row is written and committed before any sync side effect runs, whether or
not the signature verified, so forged and malformed deliveries are on record
and failed ones can be replayed from `payload`. Rows are never deleted.

event_id is FrostGuard's id for the event. It is indexed but not unique:
at-least-once delivery means the same event_id can legitimately arrive more
than once, and each delivery gets its own row.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from lorasim.db.base import Base, generate_uuid


class WebhookEvent(Base):
    __tablename__ = "webhook_events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    event_id: Mapped[Optional[str]] = mapped_column(String(128), index=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    signature: Mapped[str] = mapped_column(String(128), nullable=False)
    signature_valid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    error_message: Mapped[Optional[str]] = mapped_column(Text)

    source_ip: Mapped[Optional[str]] = mapped_column(String(64))
    user_agent: Mapped[Optional[str]] = mapped_column(String(512))
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<WebhookEvent id={self.id} type={self.event_type} "
            f"processed={self.processed}>"
        )
