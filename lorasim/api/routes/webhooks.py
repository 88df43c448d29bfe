"""
api/routes/webhooks.py
----------------------
Inbound webhooks.

POST /api/frostguard-sync  FrostGuard state sync (HMAC-signed)
POST /webhooks/ttn         TTN uplink delivery

FrostGuard pipeline:
  1. No X-FrostGuard-Signature header → 401, body never read.
  2. Signature checked against the raw body bytes.
  3. Delivery logged and committed, valid or not.
  4. Invalid signature → recorded as failed, 401 (unless the
     WEBHOOK_ALLOW_INVALID_SIGNATURE escape hatch is on).
  5. Dispatch; outcome recorded on the logged row.
"""

import hmac
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from lorasim.core.config import Settings, get_settings
from lorasim.core.exceptions import UnknownEventTypeError
from lorasim.core.logging import bind_context, get_logger
from lorasim.core.security import verify_signature
from lorasim.db.base import utcnow
from lorasim.db.session import get_db
from lorasim.schemas.telemetry import TTNUplinkWebhook
from lorasim.schemas.webhook import WebhookAck, WebhookEnvelope, WebhookFailure
from lorasim.services.device_service import DeviceService
from lorasim.services.sync_service import SyncDispatcher
from lorasim.services.telemetry_service import TelemetryService
from lorasim.services.webhook_service import MALFORMED_EVENT_TYPE, WebhookEventLog

logger = get_logger(__name__)

router = APIRouter(tags=["Webhooks"])

SIGNATURE_HEADER = "X-FrostGuard-Signature"


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def _failure(status_code: int, error: str, record_id: Optional[str]) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=WebhookFailure(error=error, event_id=record_id).model_dump(),
    )


@router.post("/api/frostguard-sync", summary="Receive a FrostGuard sync event")
async def frostguard_sync(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
):
    signature = request.headers.get(SIGNATURE_HEADER)
    if not signature:
        logger.warning("Webhook rejected: no signature", source_ip=_client_ip(request))
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"error": "No signature provided"},
        )

    raw_body = await request.body()
    signature_valid = verify_signature(signature, raw_body, settings.FROSTGUARD_WEBHOOK_SECRET)

    try:
        envelope: Optional[WebhookEnvelope] = WebhookEnvelope.model_validate_json(raw_body)
    except ValidationError:
        envelope = None

    event = await WebhookEventLog.ingest(
        db,
        event_type=envelope.event_type if envelope else MALFORMED_EVENT_TYPE,
        event_id=envelope.event_id if envelope else None,
        raw_body=raw_body,
        signature=signature,
        signature_valid=signature_valid,
        source_ip=_client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )
    record_id = event.id
    await db.commit()
    bind_context(record_id=record_id, event_type=event.event_type)

    if not signature_valid:
        if not settings.WEBHOOK_ALLOW_INVALID_SIGNATURE:
            logger.warning("Webhook rejected: invalid signature", record_id=record_id)
            await WebhookEventLog.mark_processed(db, record_id, False, "Invalid signature")
            return _failure(status.HTTP_401_UNAUTHORIZED, "Invalid signature", record_id)
        logger.warning(
            "WEBHOOK SIGNATURE BYPASS: processing unverified delivery",
            record_id=record_id,
            app_env=settings.APP_ENV,
        )

    if envelope is None:
        await WebhookEventLog.mark_processed(db, record_id, False, "Malformed payload")
        return _failure(status.HTTP_400_BAD_REQUEST, "Malformed payload", record_id)

    try:
        await SyncDispatcher.dispatch(db, envelope.event_type, envelope.data)
    except UnknownEventTypeError as exc:
        logger.warning("Unknown webhook event type", event_type=exc.event_type, record_id=record_id)
        await WebhookEventLog.mark_processed(db, record_id, False, str(exc))
        return _failure(status.HTTP_400_BAD_REQUEST, "Unknown event type", record_id)
    except Exception as exc:
        logger.error(
            "Webhook processing failed",
            event_type=envelope.event_type,
            record_id=record_id,
            error=str(exc),
        )
        await db.rollback()
        await WebhookEventLog.mark_processed(db, record_id, False, str(exc))
        return _failure(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc), record_id)

    await WebhookEventLog.mark_processed(db, record_id, True)
    logger.info("Webhook processed", event_type=envelope.event_type, record_id=record_id)
    return WebhookAck(
        event_id=record_id,
        event_type=envelope.event_type,
        timestamp=utcnow().isoformat(),
    )


@router.post("/webhooks/ttn", summary="Receive an uplink from TTN")
async def ttn_uplink(
    body: TTNUplinkWebhook,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> dict:
    if settings.TTN_WEBHOOK_SECRET:
        supplied = request.headers.get("X-Webhook-Secret", "")
        if not hmac.compare_digest(supplied.encode(), settings.TTN_WEBHOOK_SECRET.encode()):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook secret"
            )

    dev_eui = body.end_device_ids.dev_eui
    if not dev_eui:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid TTN webhook payload"
        )

    device = await DeviceService.get_by_dev_eui(db, dev_eui)
    if device is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Device not found")

    try:
        await TelemetryService.record_uplink(db, device, body)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return {"success": True}
