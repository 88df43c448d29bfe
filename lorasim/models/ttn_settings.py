"""
models/ttn_settings.py
----------------------
The Things Network credentials, one row per organisation.
"""

from typing import Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from lorasim.db.base import Base, TimestampMixin, generate_uuid


class TTNSettings(Base, TimestampMixin):
    __tablename__ = "ttn_settings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    organization_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    app_id: Mapped[str] = mapped_column(String(64), nullable=False)
    api_key: Mapped[str] = mapped_column(String(255), nullable=False)
    region: Mapped[str] = mapped_column(String(16), nullable=False, default="eu1")
    webhook_url: Mapped[Optional[str]] = mapped_column(String(2048))

    def __repr__(self) -> str:
        return f"<TTNSettings org={self.organization_id} app_id={self.app_id}>"
