"""
services/gateway_service.py
---------------------------
Organisation-scoped gateway registry.
"""

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lorasim.core.logging import get_logger
from lorasim.models.gateway import Gateway
from lorasim.schemas.gateway import GatewayCreate, GatewayUpdate

logger = get_logger(__name__)


class GatewayService:

    @staticmethod
    async def list_gateways(db: AsyncSession, organization_id: str) -> list[Gateway]:
        result = await db.execute(
            select(Gateway)
            .where(Gateway.organization_id == organization_id)
            .order_by(Gateway.created_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_gateway(
        db: AsyncSession, organization_id: str, gateway_id: str
    ) -> Gateway | None:
        result = await db.execute(
            select(Gateway).where(
                Gateway.id == gateway_id, Gateway.organization_id == organization_id
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def create_gateway(
        db: AsyncSession, organization_id: str, data: GatewayCreate
    ) -> Gateway:
        """Raises ValueError if the gateway id or EUI is taken in the organisation."""
        gateway = Gateway(organization_id=organization_id, **data.model_dump(mode="json"))
        db.add(gateway)
        try:
            await db.flush()
            await db.refresh(gateway)
        except IntegrityError:
            await db.rollback()
            raise ValueError(
                f"Gateway '{data.gateway_id}' / EUI {data.gateway_eui} is already registered"
            )
        logger.info(
            "Gateway created",
            gateway_id=data.gateway_id,
            gateway_eui=data.gateway_eui,
            organization_id=organization_id,
        )
        return gateway

    @staticmethod
    async def update_gateway(
        db: AsyncSession, organization_id: str, gateway_id: str, data: GatewayUpdate
    ) -> Gateway | None:
        gateway = await GatewayService.get_gateway(db, organization_id, gateway_id)
        if gateway is None:
            return None
        patch = data.to_patch()
        for field, value in patch.items():
            setattr(gateway, field, value)
        await db.flush()
        await db.refresh(gateway)
        logger.info("Gateway updated", gateway_id=gateway_id, fields=sorted(patch))
        return gateway

    @staticmethod
    async def delete_gateway(db: AsyncSession, organization_id: str, gateway_id: str) -> bool:
        result = await db.execute(
            delete(Gateway).where(
                Gateway.id == gateway_id, Gateway.organization_id == organization_id
            )
        )
        deleted = result.rowcount > 0
        if deleted:
            logger.info("Gateway deleted", gateway_id=gateway_id)
        return deleted
