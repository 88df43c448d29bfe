"""
schemas/gateway.py
------------------
Request/response models for gateways.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from lorasim.models.gateway import DEFAULT_FREQUENCY_PLAN, GatewayStatus
from lorasim.schemas.device import validate_eui
from lorasim.schemas.ttn import validate_ttn_id


class _Location(BaseModel):
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    altitude: Optional[float] = None


class GatewayCreate(_Location):
    gateway_id: str = Field(..., examples=["cold-store-gw-1"])
    gateway_eui: str = Field(..., examples=["B827EBFFFE000001"])
    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    frequency_plan: str = Field(default=DEFAULT_FREQUENCY_PLAN, max_length=32)
    status: GatewayStatus = GatewayStatus.active

    @field_validator("gateway_id")
    @classmethod
    def check_gateway_id(cls, v: str) -> str:
        return validate_ttn_id(v)

    @field_validator("gateway_eui")
    @classmethod
    def check_gateway_eui(cls, v: str) -> str:
        return validate_eui(v)


class GatewayUpdate(_Location):
    """gateway_id and gateway_eui identify the gateway and cannot change."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    frequency_plan: Optional[str] = Field(default=None, max_length=32)
    status: Optional[GatewayStatus] = None

    def to_patch(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude_none=True, mode="json")


class GatewayRead(BaseModel):
    id: str
    organization_id: str
    gateway_id: str
    gateway_eui: str
    name: str
    description: str
    frequency_plan: str
    latitude: Optional[float]
    longitude: Optional[float]
    altitude: Optional[float]
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
