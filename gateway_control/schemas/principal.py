"""
The authenticated identity of a request.

A Principal is created once per request by the authentication resolver or
the session service and passed explicitly to every operation that needs
it. It is never persisted.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict

from ..enums import PrincipalKind, UserRole


class Principal(BaseModel):
    """Immutable result of credential resolution."""

    kind: PrincipalKind
    tenant_id: Optional[str] = None
    instance_id: Optional[str] = None
    is_global_admin: bool = False
    role: Optional[UserRole] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def global_admin(cls) -> "Principal":
        return cls(kind=PrincipalKind.GLOBAL_ADMIN, is_global_admin=True)

    @classmethod
    def tenant_user(
        cls, tenant_id: str, role: UserRole, instance_id: Optional[str] = None
    ) -> "Principal":
        return cls(
            kind=PrincipalKind.TENANT_USER,
            tenant_id=tenant_id,
            instance_id=instance_id,
            role=UserRole(role),
            is_global_admin=UserRole(role) == UserRole.SUPER_ADMIN,
        )

    @classmethod
    def instance_token(cls, instance_id: str, tenant_id: Optional[str] = None) -> "Principal":
        return cls(kind=PrincipalKind.INSTANCE_TOKEN, instance_id=instance_id, tenant_id=tenant_id)

    @classmethod
    def anonymous(cls) -> "Principal":
        return cls(kind=PrincipalKind.ANONYMOUS)

    def bound_to(self, instance_id: str) -> "Principal":
        """Return a copy scoped to one instance."""
        return self.model_copy(update={"instance_id": instance_id})

    @property
    def is_admin(self) -> bool:
        """Global admins and tenant accounts with ADMIN or SUPER_ADMIN role."""
        return self.is_global_admin or self.role in (UserRole.ADMIN, UserRole.SUPER_ADMIN)
