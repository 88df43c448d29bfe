"""
schemas/organization.py
-----------------------
Read model for organisations mirrored from FrostGuard.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class OrganizationRead(BaseModel):
    id: str
    frostguard_org_id: Optional[str]
    name: str
    slug: Optional[str]
    ttn_application_id: Optional[str]
    sync_source: str
    synced_at: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}
