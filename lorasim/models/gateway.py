"""
models/gateway.py
-----------------
LoRaWAN gateway registered by an organisation.

Like devices, organization_id is the caller's AuthContext organisation and
not a foreign key. Both the TTN gateway id and the EUI are unique within an
organisation.
"""

from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import Float, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from lorasim.db.base import Base, TimestampMixin, generate_uuid

DEFAULT_FREQUENCY_PLAN = "EU_863_870"


class GatewayStatus(str, PyEnum):
    active = "active"
    inactive = "inactive"


class Gateway(Base, TimestampMixin):
    __tablename__ = "gateways"
    __table_args__ = (
        UniqueConstraint("organization_id", "gateway_eui", name="uq_gateways_org_eui"),
        UniqueConstraint("organization_id", "gateway_id", name="uq_gateways_org_gateway_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    gateway_id: Mapped[str] = mapped_column(String(36), nullable=False)
    gateway_eui: Mapped[str] = mapped_column(String(16), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    frequency_plan: Mapped[str] = mapped_column(
        String(32), nullable=False, default=DEFAULT_FREQUENCY_PLAN
    )
    latitude: Mapped[Optional[float]] = mapped_column(Float)
    longitude: Mapped[Optional[float]] = mapped_column(Float)
    altitude: Mapped[Optional[float]] = mapped_column(Float)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=GatewayStatus.active.value
    )

    def __repr__(self) -> str:
        return f"<Gateway id={self.id} gateway_id={self.gateway_id} eui={self.gateway_eui}>"
