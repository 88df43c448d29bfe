"""
schemas/device.py
-----------------
Pydantic request/response models for devices.

Naming convention:
  DeviceCreate → inbound request body
  DeviceUpdate → partial update; only the fields declared here can ever be
                 written by PUT /api/devices/{id}
  DeviceRead   → outbound response body (app_key is never returned)
"""

import re
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from lorasim.models.device import DeviceStatus, DeviceType

_HEX16 = re.compile(r"^[0-9A-Fa-f]{16}$")
_HEX32 = re.compile(r"^[0-9A-Fa-f]{32}$")


def validate_eui(value: str) -> str:
    """DevEUI / AppEUI / gateway EUI: 8 bytes as 16 hex characters, stored upper case."""
    if not _HEX16.match(value):
        raise ValueError("must be 16 hexadecimal characters")
    return value.upper()


class SimulationParams(BaseModel):
    interval: int = Field(default=60, ge=1, description="Seconds between uplinks")
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    min_humidity: Optional[float] = None
    max_humidity: Optional[float] = None

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="after")
    def check_bounds(self) -> "SimulationParams":
        if (
            self.min_value is not None
            and self.max_value is not None
            and self.min_value > self.max_value
        ):
            raise ValueError("min_value must not exceed max_value")
        if (
            self.min_humidity is not None
            and self.max_humidity is not None
            and self.min_humidity > self.max_humidity
        ):
            raise ValueError("min_humidity must not exceed max_humidity")
        return self


class DeviceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    dev_eui: str = Field(..., examples=["70B3D57ED0000001"])
    app_eui: str = ""
    app_key: str = ""
    device_type: DeviceType
    application_id: Optional[str] = None
    simulation_params: SimulationParams = Field(default_factory=SimulationParams)

    @field_validator("dev_eui")
    @classmethod
    def check_dev_eui(cls, v: str) -> str:
        return validate_eui(v)

    @field_validator("app_eui")
    @classmethod
    def check_app_eui(cls, v: str) -> str:
        return validate_eui(v) if v else v

    @field_validator("app_key")
    @classmethod
    def check_app_key(cls, v: str) -> str:
        if v and not _HEX32.match(v):
            raise ValueError("must be 32 hexadecimal characters")
        return v.upper()


class DeviceUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    device_type: Optional[DeviceType] = None
    status: Optional[DeviceStatus] = None
    simulation_params: Optional[SimulationParams] = None
    app_eui: Optional[str] = None
    app_key: Optional[str] = None

    @field_validator("app_eui")
    @classmethod
    def check_app_eui(cls, v: Optional[str]) -> Optional[str]:
        return validate_eui(v) if v else v

    @field_validator("app_key")
    @classmethod
    def check_app_key(cls, v: Optional[str]) -> Optional[str]:
        if v and not _HEX32.match(v):
            raise ValueError("must be 32 hexadecimal characters")
        return v.upper() if v else v

    def to_patch(self) -> Dict[str, Any]:
        """Column → value for the fields the client actually sent."""
        return self.model_dump(exclude_unset=True, exclude_none=True, mode="json")


class DeviceRead(BaseModel):
    id: str
    organization_id: str
    application_id: Optional[str]
    dev_eui: str
    app_eui: str
    name: str
    device_type: str
    status: str
    simulation_params: Dict[str, Any]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
