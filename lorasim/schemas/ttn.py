"""
schemas/ttn.py
--------------
The Things Network settings, connection test, and uplink simulation models.

Every response model here that describes an outbound TTN call is returned
with HTTP 200 whether the call succeeded or not; `success` tells the client
which.
"""

import re
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from lorasim.schemas.reading import SensorReading

TTN_REGIONS = ("eu1", "nam1", "au1", "as1")
_TTN_ID = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$")


def validate_ttn_id(value: str) -> str:
    """TTN application / gateway id: lowercase alphanumerics and inner hyphens."""
    if len(value) > 36 or not _TTN_ID.match(value):
        raise ValueError("must be lowercase alphanumeric with hyphens, at most 36 characters")
    return value


class TTNCredentials(BaseModel):
    app_id: str
    api_key: str = Field(..., min_length=1)
    region: str

    @field_validator("app_id")
    @classmethod
    def check_app_id(cls, v: str) -> str:
        return validate_ttn_id(v)

    @field_validator("region")
    @classmethod
    def check_region(cls, v: str) -> str:
        if v not in TTN_REGIONS:
            raise ValueError(f"must be one of: {', '.join(TTN_REGIONS)}")
        return v


class TTNSettingsWrite(TTNCredentials):
    webhook_url: Optional[str] = None

    @field_validator("webhook_url")
    @classmethod
    def check_webhook_url(cls, v: Optional[str]) -> Optional[str]:
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("must use HTTP or HTTPS")
        return v or None


class TTNSettingsRead(BaseModel):
    id: str
    organization_id: str
    app_id: str
    region: str
    webhook_url: Optional[str]
    api_key_last4: str
    updated_at: datetime

    @classmethod
    def from_model(cls, row) -> "TTNSettingsRead":
        return cls(
            id=row.id,
            organization_id=row.organization_id,
            app_id=row.app_id,
            region=row.region,
            webhook_url=row.webhook_url,
            api_key_last4=row.api_key[-4:],
            updated_at=row.updated_at,
        )


class ConnectionTestResult(BaseModel):
    success: bool
    application: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    details: Optional[str] = None
    status: Optional[int] = None


# ── Uplink simulation ─────────────────────────────────────────────────────────

class RadioOptions(BaseModel):
    """Overrides for the synthesised radio metadata; camelCase accepted."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    f_port: Optional[int] = Field(default=None, ge=1, le=223)
    f_cnt: Optional[int] = Field(default=None, ge=0)
    rssi: Optional[float] = None
    snr: Optional[float] = None
    frequency: Optional[str] = None
    spreading_factor: Optional[int] = Field(default=None, ge=7, le=12)
    bandwidth: Optional[int] = None


class SimulateRequest(BaseModel):
    payload: Optional[SensorReading] = None
    options: RadioOptions = Field(default_factory=RadioOptions)


class SimulationResult(BaseModel):
    success: bool
    message: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    details: Optional[str] = None
    status: Optional[int] = None
