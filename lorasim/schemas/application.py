"""
schemas/application.py
----------------------
Request/response models for TTN applications.

Applications arrive either from FrostGuard sync or through the API; both
paths share the (organization_id, app_id) natural key.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from lorasim.schemas.ttn import validate_ttn_id


class ApplicationCreate(BaseModel):
    app_id: str = Field(..., examples=["acme-sensors"])
    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""

    @field_validator("app_id")
    @classmethod
    def check_app_id(cls, v: str) -> str:
        return validate_ttn_id(v)


class ApplicationUpdate(BaseModel):
    """app_id is immutable: it is the key FrostGuard syncs against."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None

    def to_patch(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class ApplicationRead(BaseModel):
    id: str
    organization_id: str
    app_id: str
    name: str
    description: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
