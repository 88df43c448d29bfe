"""
services/telemetry_service.py
-----------------------------
Telemetry retrieval and storage of uplinks delivered by TTN's webhook
integration.
"""


from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lorasim.core.logging import get_logger
from lorasim.db.base import utcnow
from lorasim.models.device import Device
from lorasim.models.telemetry import Telemetry
from lorasim.schemas.telemetry import TTNUplinkWebhook
from lorasim.services import payload_codec

logger = get_logger(__name__)


class TelemetryService:

    @staticmethod
    async def list_for_device(
        db: AsyncSession, device_id: str, limit: int = 100, offset: int = 0
    ) -> list[Telemetry]:
        result = await db.execute(
            select(Telemetry)
            .where(Telemetry.device_id == device_id)
            .order_by(Telemetry.timestamp.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    @staticmethod
    async def record_uplink(
        db: AsyncSession, device: Device, body: TTNUplinkWebhook
    ) -> Telemetry:
        """
        Store an uplink received from TTN. TTN's own payload formatter output
        (decoded_payload) wins; otherwise frm_payload is decoded locally.

        Raises ValueError if neither is present or frm_payload is not base64.
        """
        uplink = body.uplink_message
        if uplink.decoded_payload is not None:
            payload = uplink.decoded_payload
        elif uplink.frm_payload:
            payload = payload_codec.decode_base64(uplink.frm_payload).to_payload()
        else:
            raise ValueError("Uplink carries neither decoded_payload nor frm_payload")

        gateway = uplink.rx_metadata[0] if uplink.rx_metadata else None
        row = Telemetry(
            device_id=device.id,
            payload=payload,
            frm_payload=uplink.frm_payload,
            rssi=gateway.rssi if gateway else None,
            snr=gateway.snr if gateway else None,
            f_cnt=uplink.f_cnt,
            timestamp=utcnow(),
        )
        db.add(row)
        await db.flush()
        logger.info("TTN uplink stored", device_id=device.id, dev_eui=device.dev_eui)
        return row
