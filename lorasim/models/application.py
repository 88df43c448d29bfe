"""
models/application.py
---------------------
TTN application ORM model, mirrored from FrostGuard.
(organization_id, app_id) is the natural key for sync upserts.
"""

from typing import Optional

from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lorasim.db.base import Base, TimestampMixin, generate_uuid


class Application(Base, TimestampMixin):
    __tablename__ = "applications"
    __table_args__ = (
        UniqueConstraint("organization_id", "app_id", name="uq_applications_org_app"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    organization_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    app_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    organization: Mapped["Organization"] = relationship(  # noqa: F821
        "Organization", back_populates="applications"
    )

    def __repr__(self) -> str:
        return f"<Application id={self.id} app_id={self.app_id}>"
