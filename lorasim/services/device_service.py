"""
services/device_service.py
--------------------------
Business logic for simulated devices.

Critical security invariant:
  Every query MUST include organization_id in the WHERE clause.
  A device id from another organisation behaves exactly like a missing one.
"""

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lorasim.core.exceptions import ResourceNotFoundError
from lorasim.core.logging import get_logger
from lorasim.models.device import Device
from lorasim.schemas.device import DeviceCreate, DeviceUpdate
from lorasim.services.application_service import ApplicationService

logger = get_logger(__name__)


class DeviceService:

    @staticmethod
    async def list_devices(db: AsyncSession, organization_id: str) -> list[Device]:
        result = await db.execute(
            select(Device)
            .where(Device.organization_id == organization_id)
            .order_by(Device.created_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_device(
        db: AsyncSession, organization_id: str, device_id: str
    ) -> Device | None:
        result = await db.execute(
            select(Device).where(
                Device.id == device_id, Device.organization_id == organization_id
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_dev_eui(db: AsyncSession, dev_eui: str) -> Device | None:
        """Unscoped lookup, for uplinks arriving from TTN."""
        result = await db.execute(select(Device).where(Device.dev_eui == dev_eui.upper()))
        return result.scalar_one_or_none()

    @staticmethod
    async def create_device(
        db: AsyncSession, organization_id: str, data: DeviceCreate
    ) -> Device:
        """
        Raises:
            ResourceNotFoundError: application_id does not name an application
                of this organisation.
            ValueError: The DevEUI is already registered (in any organisation).
        """
        if data.application_id is not None:
            application = await ApplicationService.get_application(
                db, organization_id, data.application_id
            )
            if application is None:
                raise ResourceNotFoundError("Application not found")

        device = Device(
            organization_id=organization_id,
            application_id=data.application_id,
            dev_eui=data.dev_eui,
            app_eui=data.app_eui,
            app_key=data.app_key,
            name=data.name,
            device_type=data.device_type.value,
            simulation_params=data.simulation_params.model_dump(exclude_none=True),
        )
        db.add(device)
        try:
            await db.flush()
            await db.refresh(device)
        except IntegrityError:
            await db.rollback()
            if await DeviceService.get_by_dev_eui(db, data.dev_eui) is None:
                raise
            raise ValueError(f"DevEUI '{data.dev_eui}' is already registered")
        logger.info(
            "Device created",
            device_id=device.id,
            dev_eui=device.dev_eui,
            organization_id=organization_id,
        )
        return device

    @staticmethod
    async def update_device(
        db: AsyncSession, organization_id: str, device_id: str, data: DeviceUpdate
    ) -> Device | None:
        device = await DeviceService.get_device(db, organization_id, device_id)
        if device is None:
            return None
        patch = data.to_patch()
        for field, value in patch.items():
            setattr(device, field, value)
        await db.flush()
        await db.refresh(device)
        logger.info("Device updated", device_id=device_id, fields=sorted(patch))
        return device

    @staticmethod
    async def delete_device(db: AsyncSession, organization_id: str, device_id: str) -> bool:
        result = await db.execute(
            delete(Device).where(
                Device.id == device_id, Device.organization_id == organization_id
            )
        )
        deleted = result.rowcount > 0
        if deleted:
            logger.info("Device deleted", device_id=device_id, organization_id=organization_id)
        return deleted
