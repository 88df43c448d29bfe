"""
models/organization.py
----------------------
Organisation ORM model.

Organisations are mirrored from FrostGuard by webhook. The FrostGuard UUID is
used both as the local primary key (so the organizationId claim carried in
identity tokens matches a row directly) and as frostguard_org_id, the natural
key every sync upsert conflicts on.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lorasim.db.base import Base, TimestampMixin, generate_uuid


class Organization(Base, TimestampMixin):
    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_uuid)
    frostguard_org_id: Mapped[Optional[str]] = mapped_column(
        String(64), unique=True, nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    ttn_application_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    sync_source: Mapped[str] = mapped_column(String(20), nullable=False, default="manual")
    synced_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Relationships
    profiles: Mapped[list["Profile"]] = relationship(  # noqa: F821
        "Profile", back_populates="organization"
    )
    applications: Mapped[list["Application"]] = relationship(  # noqa: F821
        "Application", back_populates="organization", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Organization id={self.id} name={self.name}>"
