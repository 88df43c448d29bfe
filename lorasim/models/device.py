"""
models/device.py
----------------
Simulated LoRaWAN end device.

organization_id is the caller's AuthContext organisation. It is deliberately
not a foreign key: unaffiliated users act as their own single-member
organisation and have no organizations row.

dev_eui is unique across the whole system, not just per organisation, since
uplinks arriving from TTN are matched to devices by DevEUI alone.
"""

from enum import Enum as PyEnum
from typing import Any, Dict, Optional

from sqlalchemy import JSON, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lorasim.db.base import Base, TimestampMixin, generate_uuid


class DeviceType(str, PyEnum):
    temperature = "temperature"
    humidity = "humidity"
    door = "door"


class DeviceStatus(str, PyEnum):
    active = "active"
    inactive = "inactive"
    error = "error"


class Device(Base, TimestampMixin):
    __tablename__ = "devices"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    application_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("applications.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    dev_eui: Mapped[str] = mapped_column(String(16), unique=True, nullable=False, index=True)
    app_eui: Mapped[str] = mapped_column(String(16), nullable=False, default="")
    app_key: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    device_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DeviceStatus.active.value
    )
    simulation_params: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    telemetry: Mapped[list["Telemetry"]] = relationship(  # noqa: F821
        "Telemetry", back_populates="device", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Device id={self.id} dev_eui={self.dev_eui} type={self.device_type}>"
