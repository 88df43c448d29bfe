"""
schemas/auth.py
---------------
Per-request caller identity, built by dependencies.get_auth_context and
discarded when the request ends.
"""

from pydantic import BaseModel, ConfigDict

from lorasim.models.profile import Role


class AuthContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    organization_id: str
    role: Role

    @property
    def can_write(self) -> bool:
        return self.role != Role.viewer

    @property
    def is_admin(self) -> bool:
        return self.role == Role.admin
