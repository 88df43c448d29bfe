"""
models/__init__.py
------------------
Re-export all models so create_tables.py (and Alembic, if added) can import
Base and discover all tables via a single import:

    from lorasim.models import Base
"""

from lorasim.db.base import Base
from lorasim.models.organization import Organization
from lorasim.models.profile import Profile, Role
from lorasim.models.application import Application
from lorasim.models.device import Device, DeviceStatus, DeviceType
from lorasim.models.gateway import Gateway, GatewayStatus
from lorasim.models.telemetry import Telemetry
from lorasim.models.ttn_settings import TTNSettings
from lorasim.models.webhook_event import WebhookEvent

__all__ = [
    "Base",
    "Organization",
    "Profile",
    "Role",
    "Application",
    "Device",
    "DeviceStatus",
    "DeviceType",
    "Gateway",
    "GatewayStatus",
    "Telemetry",
    "TTNSettings",
    "WebhookEvent",
]
