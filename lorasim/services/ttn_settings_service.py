"""
services/ttn_settings_service.py
--------------------------------
Per-organisation TTN credentials.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lorasim.core.logging import get_logger
from lorasim.models.ttn_settings import TTNSettings
from lorasim.schemas.ttn import TTNSettingsWrite

logger = get_logger(__name__)


class TTNSettingsService:

    @staticmethod
    async def get_settings(db: AsyncSession, organization_id: str) -> TTNSettings | None:
        result = await db.execute(
            select(TTNSettings).where(TTNSettings.organization_id == organization_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def save_settings(
        db: AsyncSession, organization_id: str, data: TTNSettingsWrite
    ) -> TTNSettings:
        row = await TTNSettingsService.get_settings(db, organization_id)
        if row is None:
            row = TTNSettings(organization_id=organization_id)
            db.add(row)
        row.app_id = data.app_id
        row.api_key = data.api_key
        row.region = data.region
        row.webhook_url = data.webhook_url
        await db.flush()
        await db.refresh(row)
        logger.info("TTN settings saved", organization_id=organization_id, app_id=data.app_id)
        return row
