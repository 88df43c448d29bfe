"""
schemas/webhook.py
------------------
FrostGuard webhook envelope, per-event data models, and responses.

The envelope is parsed from the raw body only after the signature has been
checked against those same bytes.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from lorasim.models.profile import Role


class WebhookEnvelope(BaseModel):
    model_config = ConfigDict(extra="allow")

    event_type: str
    event_id: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: Optional[str] = None

    @field_validator("event_id", mode="before")
    @classmethod
    def coerce_event_id(cls, v: Any) -> Any:
        # Some senders use numeric ids
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class WebhookAck(BaseModel):
    success: bool = True
    event_id: str
    event_type: str
    timestamp: str


class WebhookFailure(BaseModel):
    success: bool = False
    error: str
    event_id: Optional[str] = None


# ── Event data ────────────────────────────────────────────────────────────────

class _EventData(BaseModel):
    model_config = ConfigDict(extra="ignore")


class OrganizationSyncData(_EventData):
    id: str
    name: str
    slug: Optional[str] = None
    ttn_application_id: Optional[str] = None


class UserAddedData(_EventData):
    user_id: str
    org_id: str
    frostguard_user_id: Optional[str] = None
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: Optional[Role] = None


class UserRemovedData(_EventData):
    user_id: str
    org_id: Optional[str] = None


class ApplicationSyncData(_EventData):
    org_id: str
    app_id: str
    name: str
    description: Optional[str] = None
