"""
api/routes/organizations.py
---------------------------
GET /api/organizations        The caller's organisation, as a list of zero or one
GET /api/organizations/{id}   By local or FrostGuard id; other organisations 404
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from lorasim.db.session import get_db
from lorasim.dependencies import get_auth_context
from lorasim.schemas.auth import AuthContext
from lorasim.schemas.organization import OrganizationRead
from lorasim.services.organization_service import OrganizationService

router = APIRouter(prefix="/api/organizations", tags=["Organizations"])


@router.get("", response_model=list[OrganizationRead], summary="List visible organisations")
async def list_organizations(
    db: Annotated[AsyncSession, Depends(get_db)],
    auth: Annotated[AuthContext, Depends(get_auth_context)],
) -> list[OrganizationRead]:
    rows = await OrganizationService.list_visible(db, auth.organization_id)
    return [OrganizationRead.model_validate(r) for r in rows]


@router.get("/{organization_id}", response_model=OrganizationRead, summary="Get an organisation")
async def get_organization(
    organization_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    auth: Annotated[AuthContext, Depends(get_auth_context)],
) -> OrganizationRead:
    row = await OrganizationService.get_visible(db, auth.organization_id, organization_id)
    if row is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found"
        )
    return OrganizationRead.model_validate(row)
