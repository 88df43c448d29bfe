"""
services/organization_service.py
--------------------------------
Read access to synced organisations. Rows are written only by the FrostGuard
sync (services/sync_service.py); callers can only ever see their own.
"""

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from lorasim.models.organization import Organization


class OrganizationService:

    @staticmethod
    async def list_visible(db: AsyncSession, organization_id: str) -> list[Organization]:
        result = await db.execute(
            select(Organization).where(
                Organization.id == organization_id, Organization.deleted_at.is_(None)
            )
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_visible(
        db: AsyncSession, organization_id: str, lookup_id: str
    ) -> Organization | None:
        """lookup_id may be the local id or the FrostGuard id."""
        result = await db.execute(
            select(Organization).where(
                Organization.id == organization_id,
                Organization.deleted_at.is_(None),
                or_(Organization.id == lookup_id, Organization.frostguard_org_id == lookup_id),
            )
        )
        return result.scalar_one_or_none()
