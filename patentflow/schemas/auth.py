from typing import List, Optional

from pydantic import BaseModel, Field

from patentflow.models.user import Role, highest_role


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class SessionUser(BaseModel):
    """
    Identity carried inside a verified session token.

    Every server-side authorization decision is made against this object;
    role values coming from query strings or form fields are never trusted.
    """
    id: str
    email: str
    name: Optional[str] = None
    roles: List[Role] = Field(min_length=1)

    def has_role(self, *roles: Role) -> bool:
        return any(role in self.roles for role in roles)

    @property
    def is_admin(self) -> bool:
        return Role.ADMIN in self.roles

    @property
    def is_privileged(self) -> bool:
        """Managers and admins see and edit every project."""
        return self.has_role(Role.ADMIN, Role.MANAGER)

    @property
    def highest_role(self) -> Role:
        return highest_role(self.roles)

    def active_role(self, requested: Optional[str] = None) -> Role:
        """
        Resolve the dashboard role: the requested one if this session holds it,
        otherwise the highest role by precedence.
        """
        if requested:
            for role in self.roles:
                if role.value == requested:
                    return role
        return self.highest_role
