"""
api/routes/devices.py
---------------------
Device management endpoints, scoped to the caller's organisation.

GET    /api/devices                  List devices
POST   /api/devices                  Create a device (admin / manager)
PUT    /api/devices/{id}             Partial update (admin / manager)
DELETE /api/devices/{id}             Delete (admin only)
GET    /api/devices/{id}/telemetry   Stored uplinks, newest first
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from lorasim.core.exceptions import ResourceNotFoundError
from lorasim.db.session import get_db
from lorasim.dependencies import get_auth_context, require_admin, require_editor
from lorasim.schemas.auth import AuthContext
from lorasim.schemas.device import DeviceCreate, DeviceRead, DeviceUpdate
from lorasim.schemas.telemetry import TelemetryRead
from lorasim.services.device_service import DeviceService
from lorasim.services.telemetry_service import TelemetryService

router = APIRouter(prefix="/api/devices", tags=["Devices"])

_NOT_FOUND = HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Device not found")


@router.get("", response_model=list[DeviceRead], summary="List devices")
async def list_devices(
    db: Annotated[AsyncSession, Depends(get_db)],
    auth: Annotated[AuthContext, Depends(get_auth_context)],
) -> list[DeviceRead]:
    devices = await DeviceService.list_devices(db, auth.organization_id)
    return [DeviceRead.model_validate(d) for d in devices]


@router.post(
    "",
    response_model=DeviceRead,
    status_code=status.HTTP_201_CREATED,
    summary="Register a simulated device",
)
async def create_device(
    body: DeviceCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    auth: Annotated[AuthContext, Depends(require_editor)],
) -> DeviceRead:
    try:
        device = await DeviceService.create_device(db, auth.organization_id, body)
    except ResourceNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return DeviceRead.model_validate(device)


@router.put("/{device_id}", response_model=DeviceRead, summary="Update a device")
async def update_device(
    device_id: str,
    body: DeviceUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    auth: Annotated[AuthContext, Depends(require_editor)],
) -> DeviceRead:
    device = await DeviceService.update_device(db, auth.organization_id, device_id, body)
    if device is None:
        raise _NOT_FOUND
    return DeviceRead.model_validate(device)


@router.delete("/{device_id}", summary="Delete a device (admin only)")
async def delete_device(
    device_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    auth: Annotated[AuthContext, Depends(require_admin)],
) -> dict:
    if not await DeviceService.delete_device(db, auth.organization_id, device_id):
        raise _NOT_FOUND
    return {"success": True}


@router.get(
    "/{device_id}/telemetry",
    response_model=list[TelemetryRead],
    summary="List stored uplinks for a device",
)
async def list_telemetry(
    device_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
) -> list[TelemetryRead]:
    if await DeviceService.get_device(db, auth.organization_id, device_id) is None:
        raise _NOT_FOUND
    rows = await TelemetryService.list_for_device(db, device_id, limit=limit, offset=offset)
    return [TelemetryRead.model_validate(r) for r in rows]
