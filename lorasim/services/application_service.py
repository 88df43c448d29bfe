"""
services/application_service.py
-------------------------------
Organisation-scoped TTN applications.

Every query filters on organization_id; an application id from another
organisation is indistinguishable from a missing one.
"""

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lorasim.core.exceptions import ResourceNotFoundError
from lorasim.core.logging import get_logger
from lorasim.models.application import Application
from lorasim.models.device import Device
from lorasim.models.organization import Organization
from lorasim.schemas.application import ApplicationCreate, ApplicationUpdate

logger = get_logger(__name__)


class ApplicationService:

    @staticmethod
    async def list_applications(db: AsyncSession, organization_id: str) -> list[Application]:
        result = await db.execute(
            select(Application)
            .where(Application.organization_id == organization_id)
            .order_by(Application.created_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_application(
        db: AsyncSession, organization_id: str, application_id: str
    ) -> Application | None:
        result = await db.execute(
            select(Application).where(
                Application.id == application_id,
                Application.organization_id == organization_id,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def create_application(
        db: AsyncSession, organization_id: str, data: ApplicationCreate
    ) -> Application:
        """
        Raises:
            ResourceNotFoundError: The caller's organisation has not been
                synced from FrostGuard, so nothing can hang off it.
            ValueError: app_id already exists in the organisation.
        """
        org = await db.execute(select(Organization.id).where(Organization.id == organization_id))
        if org.scalar_one_or_none() is None:
            raise ResourceNotFoundError("Organization not found")

        application = Application(
            organization_id=organization_id,
            app_id=data.app_id,
            name=data.name,
            description=data.description,
        )
        db.add(application)
        try:
            await db.flush()
            await db.refresh(application)
        except IntegrityError:
            await db.rollback()
            raise ValueError(f"Application '{data.app_id}' already exists")
        logger.info(
            "Application created",
            application_id=application.id,
            app_id=data.app_id,
            organization_id=organization_id,
        )
        return application

    @staticmethod
    async def update_application(
        db: AsyncSession, organization_id: str, application_id: str, data: ApplicationUpdate
    ) -> Application | None:
        application = await ApplicationService.get_application(db, organization_id, application_id)
        if application is None:
            return None
        patch = data.to_patch()
        for field, value in patch.items():
            setattr(application, field, value)
        await db.flush()
        await db.refresh(application)
        logger.info("Application updated", application_id=application_id, fields=sorted(patch))
        return application

    @staticmethod
    async def delete_application(
        db: AsyncSession, organization_id: str, application_id: str
    ) -> bool:
        """Devices attached to the application are detached, not deleted."""
        if await ApplicationService.get_application(db, organization_id, application_id) is None:
            return False
        await db.execute(
            update(Device)
            .where(Device.application_id == application_id)
            .values(application_id=None)
        )
        await db.execute(
            delete(Application).where(
                Application.id == application_id,
                Application.organization_id == organization_id,
            )
        )
        logger.info("Application deleted", application_id=application_id)
        return True
