"""
models/telemetry.py
-------------------
One stored uplink per row: the decoded reading as JSON, the base64 wire frame
when known, and the receiving gateway's radio metadata.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lorasim.db.base import Base, generate_uuid


class Telemetry(Base):
    __tablename__ = "telemetry"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    device_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("devices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    frm_payload: Mapped[Optional[str]] = mapped_column(String(64))
    rssi: Mapped[Optional[float]] = mapped_column(Float)
    snr: Mapped[Optional[float]] = mapped_column(Float)
    f_cnt: Mapped[Optional[int]] = mapped_column(Integer)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    device: Mapped["Device"] = relationship("Device", back_populates="telemetry")  # noqa: F821

    def __repr__(self) -> str:
        return f"<Telemetry id={self.id} device_id={self.device_id}>"
