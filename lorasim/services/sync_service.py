"""
services/sync_service.py
------------------------
Applies FrostGuard state-sync events to the local database.

Every handler is an idempotent upsert keyed on FrostGuard's identifier, so
redelivering an event converges to the same rows. Overlapping fields are
last-write-wins.

Event types:
  organization.created / organization.updated → organizations (frostguard_org_id)
  user.added_to_org                           → profiles (id)
  user.removed_from_org                       → profiles.organization_id cleared
  application.created / application.updated   → applications (organization_id, app_id)
"""

import re
from typing import Any, Awaitable, Callable, Dict

from pydantic import ValidationError
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from lorasim.core.exceptions import UnknownEventTypeError, WebhookProcessingError
from lorasim.core.logging import get_logger
from lorasim.db.base import utcnow
from lorasim.db.upsert import insert_for
from lorasim.models.application import Application
from lorasim.models.organization import Organization
from lorasim.models.profile import Profile, Role
from lorasim.schemas.webhook import (
    ApplicationSyncData,
    OrganizationSyncData,
    UserAddedData,
    UserRemovedData,
)

logger = get_logger(__name__)

Handler = Callable[[AsyncSession, Dict[str, Any]], Awaitable[None]]


def slugify(name: str) -> str:
    return re.sub(r"\s+", "-", name.strip().lower())


async def _local_org_id(db: AsyncSession, frostguard_org_id: str) -> str:
    result = await db.execute(
        select(Organization.id).where(Organization.frostguard_org_id == frostguard_org_id)
    )
    org_id = result.scalar_one_or_none()
    if org_id is None:
        raise WebhookProcessingError(f"Organization not found: {frostguard_org_id}")
    return org_id


async def sync_organization(db: AsyncSession, data: Dict[str, Any]) -> None:
    org = OrganizationSyncData.model_validate(data)
    now = utcnow()
    stmt = insert_for(db, Organization).values(
        id=org.id,
        frostguard_org_id=org.id,
        name=org.name,
        slug=org.slug or slugify(org.name),
        ttn_application_id=org.ttn_application_id,
        sync_source="webhook",
        synced_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[Organization.frostguard_org_id],
        set_={
            "name": stmt.excluded.name,
            "slug": stmt.excluded.slug,
            "ttn_application_id": stmt.excluded.ttn_application_id,
            "sync_source": "webhook",
            "synced_at": now,
            "updated_at": func.now(),
        },
    )
    await db.execute(stmt)
    logger.info("Organization synced", frostguard_org_id=org.id, name=org.name)


async def add_user_to_org(db: AsyncSession, data: Dict[str, Any]) -> None:
    user = UserAddedData.model_validate(data)
    role = user.role or Role.viewer
    organization_id = await _local_org_id(db, user.org_id)
    now = utcnow()
    stmt = insert_for(db, Profile).values(
        id=user.user_id,
        frostguard_user_id=user.frostguard_user_id,
        organization_id=organization_id,
        email=user.email,
        full_name=user.full_name or "",
        role=role.value,
        synced_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[Profile.id],
        set_={
            "frostguard_user_id": stmt.excluded.frostguard_user_id,
            "organization_id": stmt.excluded.organization_id,
            "email": stmt.excluded.email,
            "full_name": stmt.excluded.full_name,
            "role": stmt.excluded.role,
            "synced_at": now,
            "updated_at": func.now(),
        },
    )
    await db.execute(stmt)
    logger.info(
        "User added to organization",
        user_id=user.user_id,
        organization_id=organization_id,
        role=role.value,
    )


async def remove_user_from_org(db: AsyncSession, data: Dict[str, Any]) -> None:
    """
    Soft removal: the profile is kept and its organisation reference cleared.
    With org_id present only a membership of that organisation is cleared, so
    a late removal cannot undo a newer add to a different organisation.
    """
    user = UserRemovedData.model_validate(data)
    stmt = update(Profile).where(Profile.id == user.user_id)
    if user.org_id is not None:
        org_ids = select(Organization.id).where(
            Organization.frostguard_org_id == user.org_id
        )
        stmt = stmt.where(Profile.organization_id.in_(org_ids))
    await db.execute(
        stmt.values(organization_id=None, synced_at=utcnow(), updated_at=func.now())
    )
    logger.info("User removed from organization", user_id=user.user_id, org_id=user.org_id)


async def sync_application(db: AsyncSession, data: Dict[str, Any]) -> None:
    app = ApplicationSyncData.model_validate(data)
    organization_id = await _local_org_id(db, app.org_id)
    stmt = insert_for(db, Application).values(
        organization_id=organization_id,
        app_id=app.app_id,
        name=app.name,
        description=app.description,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[Application.organization_id, Application.app_id],
        set_={
            "name": stmt.excluded.name,
            "description": stmt.excluded.description,
            "updated_at": func.now(),
        },
    )
    await db.execute(stmt)
    logger.info("Application synced", app_id=app.app_id, organization_id=organization_id)


class SyncDispatcher:

    handlers: Dict[str, Handler] = {
        "organization.created": sync_organization,
        "organization.updated": sync_organization,
        "user.added_to_org": add_user_to_org,
        "user.removed_from_org": remove_user_from_org,
        "application.created": sync_application,
        "application.updated": sync_application,
    }

    @classmethod
    async def dispatch(cls, db: AsyncSession, event_type: str, data: Dict[str, Any]) -> None:
        """
        Route an event to its handler.

        Raises:
            UnknownEventTypeError: If event_type has no handler.
            WebhookProcessingError: If the event data is invalid or refers to
                an organisation that has not been synced yet.
        """
        handler = cls.handlers.get(event_type)
        if handler is None:
            raise UnknownEventTypeError(event_type)
        try:
            await handler(db, data)
        except ValidationError as exc:
            raise WebhookProcessingError(
                f"Invalid {event_type} data: {exc.error_count()} validation error(s)"
            ) from exc
