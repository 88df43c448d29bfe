"""
api/routes/gateways.py
----------------------
Gateway endpoints, scoped to the caller's organisation.

GET    /api/gateways        List gateways
POST   /api/gateways        Register (admin / manager)
PUT    /api/gateways/{id}   Partial update (admin / manager)
DELETE /api/gateways/{id}   Delete (admin only)
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from lorasim.db.session import get_db
from lorasim.dependencies import get_auth_context, require_admin, require_editor
from lorasim.schemas.auth import AuthContext
from lorasim.schemas.gateway import GatewayCreate, GatewayRead, GatewayUpdate
from lorasim.services.gateway_service import GatewayService

router = APIRouter(prefix="/api/gateways", tags=["Gateways"])

_NOT_FOUND = HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Gateway not found")


@router.get("", response_model=list[GatewayRead], summary="List gateways")
async def list_gateways(
    db: Annotated[AsyncSession, Depends(get_db)],
    auth: Annotated[AuthContext, Depends(get_auth_context)],
) -> list[GatewayRead]:
    rows = await GatewayService.list_gateways(db, auth.organization_id)
    return [GatewayRead.model_validate(r) for r in rows]


@router.post(
    "",
    response_model=GatewayRead,
    status_code=status.HTTP_201_CREATED,
    summary="Register a gateway",
)
async def create_gateway(
    body: GatewayCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    auth: Annotated[AuthContext, Depends(require_editor)],
) -> GatewayRead:
    try:
        row = await GatewayService.create_gateway(db, auth.organization_id, body)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return GatewayRead.model_validate(row)


@router.put("/{gateway_id}", response_model=GatewayRead, summary="Update a gateway")
async def update_gateway(
    gateway_id: str,
    body: GatewayUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    auth: Annotated[AuthContext, Depends(require_editor)],
) -> GatewayRead:
    row = await GatewayService.update_gateway(db, auth.organization_id, gateway_id, body)
    if row is None:
        raise _NOT_FOUND
    return GatewayRead.model_validate(row)


@router.delete("/{gateway_id}", summary="Delete a gateway (admin only)")
async def delete_gateway(
    gateway_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    auth: Annotated[AuthContext, Depends(require_admin)],
) -> dict:
    if not await GatewayService.delete_gateway(db, auth.organization_id, gateway_id):
        raise _NOT_FOUND
    return {"success": True}
