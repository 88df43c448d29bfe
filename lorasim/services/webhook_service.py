"""
services/webhook_service.py
---------------------------
Durable log of FrostGuard webhook deliveries.

Lifecycle of a row:
  1. ingest()          inserted on receipt, before any processing
  2. mark_processed()  processed=True, or processed=False with the error
  3. replay()          operator re-dispatch of a stored delivery; updates
                       the same row through mark_processed()

The route commits after ingest() so the row survives a crash or a rollback
of the sync handler's writes.
"""

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from lorasim.core.logging import get_logger
from lorasim.db.base import utcnow
from lorasim.models.webhook_event import WebhookEvent
from lorasim.schemas.webhook import WebhookEnvelope
from lorasim.services.sync_service import SyncDispatcher

logger = get_logger(__name__)

MALFORMED_EVENT_TYPE = "malformed"


class WebhookEventLog:

    @staticmethod
    async def ingest(
        db: AsyncSession,
        *,
        event_type: str,
        event_id: Optional[str],
        raw_body: bytes,
        signature: str,
        signature_valid: bool,
        source_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> WebhookEvent:
        event = WebhookEvent(
            event_type=event_type[:64],
            event_id=event_id[:128] if event_id else None,
            payload=raw_body.decode("utf-8", errors="replace"),
            signature=signature[:128],
            signature_valid=signature_valid,
            processed=False,
            source_ip=source_ip[:64] if source_ip else None,
            user_agent=user_agent[:512] if user_agent else None,
        )
        db.add(event)
        await db.flush()
        logger.info(
            "Webhook event logged",
            record_id=event.id,
            event_type=event.event_type,
            event_id=event_id,
            signature_valid=signature_valid,
        )
        return event

    @staticmethod
    async def mark_processed(
        db: AsyncSession,
        record_id: str,
        success: bool,
        error_message: Optional[str] = None,
    ) -> None:
        await db.execute(
            update(WebhookEvent)
            .where(WebhookEvent.id == record_id)
            .values(
                processed=success,
                processed_at=utcnow(),
                error_message=None if success else error_message,
            )
        )

    @staticmethod
    async def get(db: AsyncSession, record_id: str) -> WebhookEvent | None:
        result = await db.execute(select(WebhookEvent).where(WebhookEvent.id == record_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def list_failed(db: AsyncSession) -> list[WebhookEvent]:
        """Deliveries that verified but did not process, oldest first."""
        result = await db.execute(
            select(WebhookEvent)
            .where(
                WebhookEvent.processed.is_(False),
                WebhookEvent.signature_valid.is_(True),
            )
            .order_by(WebhookEvent.received_at)
        )
        return list(result.scalars().all())

    @staticmethod
    async def replay(db: AsyncSession, record_id: str, raw_payload: str) -> bool:
        """
        Re-dispatch a stored delivery from its raw payload and record the
        outcome. Returns True on success. Commits.

        A failed dispatch rolls the session back, which expires every loaded
        ORM object: pass plain values, not a WebhookEvent.
        """
        try:
            envelope = WebhookEnvelope.model_validate_json(raw_payload)
            await SyncDispatcher.dispatch(db, envelope.event_type, envelope.data)
        except Exception as exc:
            await db.rollback()
            await WebhookEventLog.mark_processed(db, record_id, False, str(exc))
            await db.commit()
            logger.warning("Webhook replay failed", record_id=record_id, error=str(exc))
            return False

        await WebhookEventLog.mark_processed(db, record_id, True)
        await db.commit()
        logger.info("Webhook replayed", record_id=record_id)
        return True
