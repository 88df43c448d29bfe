"""
api/routes/ttn.py
-----------------
The Things Network endpoints.

GET  /api/ttn-settings                Current organisation's TTN settings
POST /api/ttn-settings                Save settings (admin / manager)
POST /api/ttn-settings/test           Check credentials against TTN
POST /api/ttn/simulate/{device_id}    Push a simulated uplink (admin / manager)

The test and simulate endpoints answer 200 even when TTN rejects the call;
the body's `success` flag and `error` / `details` describe the failure.
"""

from typing import Annotated

from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from lorasim.core.exceptions import ExternalApiError
from lorasim.core.logging import get_logger
from lorasim.db.session import get_db
from lorasim.dependencies import get_auth_context, get_ttn_client, require_editor
from lorasim.schemas.auth import AuthContext
from lorasim.schemas.ttn import (
    ConnectionTestResult,
    SimulateRequest,
    SimulationResult,
    TTNCredentials,
    TTNSettingsRead,
    TTNSettingsWrite,
)
from lorasim.services.device_service import DeviceService
from lorasim.services.ttn_client import TTNClient
from lorasim.services.ttn_settings_service import TTNSettingsService
from lorasim.services.uplink_simulator import UplinkSimulator

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["The Things Network"])


def get_uplink_simulator(
    client: Annotated[TTNClient, Depends(get_ttn_client)],
) -> UplinkSimulator:
    return UplinkSimulator(client)


@router.get("/ttn-settings", response_model=TTNSettingsRead, summary="Get TTN settings")
async def get_ttn_settings(
    db: Annotated[AsyncSession, Depends(get_db)],
    auth: Annotated[AuthContext, Depends(get_auth_context)],
) -> TTNSettingsRead:
    row = await TTNSettingsService.get_settings(db, auth.organization_id)
    if row is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="TTN settings not found"
        )
    return TTNSettingsRead.from_model(row)


@router.post("/ttn-settings", response_model=TTNSettingsRead, summary="Save TTN settings")
async def save_ttn_settings(
    body: TTNSettingsWrite,
    db: Annotated[AsyncSession, Depends(get_db)],
    auth: Annotated[AuthContext, Depends(require_editor)],
) -> TTNSettingsRead:
    row = await TTNSettingsService.save_settings(db, auth.organization_id, body)
    return TTNSettingsRead.from_model(row)


@router.post(
    "/ttn-settings/test",
    response_model=ConnectionTestResult,
    response_model_exclude_none=True,
    summary="Test TTN credentials",
)
async def test_ttn_connection(
    body: TTNCredentials,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    client: Annotated[TTNClient, Depends(get_ttn_client)],
) -> ConnectionTestResult:
    try:
        app_data = await client.get_application(body.region, body.app_id, body.api_key)
    except ExternalApiError as exc:
        return ConnectionTestResult(
            success=False,
            error="Authentication failed" if exc.status_code else exc.message,
            details=exc.details,
            status=exc.status_code,
        )
    return ConnectionTestResult(
        success=True,
        application={
            "id": (app_data.get("ids") or {}).get("application_id"),
            "name": app_data.get("name"),
            "description": app_data.get("description"),
        },
    )


@router.post(
    "/ttn/simulate/{device_id}",
    response_model=SimulationResult,
    response_model_exclude_none=True,
    summary="Send a simulated uplink through TTN",
)
async def simulate_uplink(
    device_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    auth: Annotated[AuthContext, Depends(require_editor)],
    simulator: Annotated[UplinkSimulator, Depends(get_uplink_simulator)],
    body: Annotated[SimulateRequest, Body()] = SimulateRequest(),
) -> SimulationResult:
    device = await DeviceService.get_device(db, auth.organization_id, device_id)
    if device is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Device not found")

    ttn = await TTNSettingsService.get_settings(db, auth.organization_id)
    if ttn is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="TTN settings not configured"
        )

    return await simulator.simulate(db, device, ttn, body.payload, body.options)
