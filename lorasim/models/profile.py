"""
models/profile.py
-----------------
User profile ORM model with roles and organisation binding.

The primary key is the identity provider's user id (the token `sub`), so the
role lookup performed on every authenticated request is a primary-key read.

Role design:
  - 'admin':   Everything, including destructive operations.
  - 'manager': Create / update / simulate, but no deletes.
  - 'viewer':  Read-only.

organization_id is nullable: removing a user from an organisation clears it
instead of deleting the profile.
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lorasim.db.base import Base, TimestampMixin


class Role(str, PyEnum):
    admin = "admin"
    manager = "manager"
    viewer = "viewer"


class Profile(Base, TimestampMixin):
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    frostguard_user_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    organization_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        ForeignKey("organizations.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    email: Mapped[Optional[str]] = mapped_column(String(320))
    full_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=Role.viewer.value)
    synced_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Relationships
    organization: Mapped[Optional["Organization"]] = relationship(  # noqa: F821
        "Organization", back_populates="profiles"
    )

    def __repr__(self) -> str:
        return f"<Profile id={self.id} role={self.role}>"
