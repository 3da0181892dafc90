"""
Role checks applied to resolved principals.

Each check returns None on success and raises AuthorizationDeniedError
otherwise.
"""

from typing import Optional

from ..enums import PrincipalKind, UserRole
from ..exceptions import AuthorizationDeniedError, permission_denied
from ..schemas.principal import Principal


def require_admin(principal: Principal, action: str = "administer") -> None:
    """Allow global admins and tenant accounts with ADMIN or SUPER_ADMIN role."""
    if not principal.is_admin:
        raise permission_denied(action, "control plane", required_role=UserRole.ADMIN.value)


def require_super_admin(principal: Principal, action: str = "administer accounts") -> None:
    """Allow global admins and SUPER_ADMIN tenant accounts."""
    if not principal.is_global_admin:
        raise permission_denied(action, "accounts", required_role=UserRole.SUPER_ADMIN.value)


def forbid_self_action(principal: Principal, target_tenant_id: str, action: str) -> None:
    """Reject role changes and deletions an operator aims at their own account."""
    if principal.tenant_id is not None and principal.tenant_id == target_tenant_id:
        raise AuthorizationDeniedError(
            f"Cannot {action} your own account", action=action, tenant_id=target_tenant_id
        )


def require_tenant(principal: Principal) -> str:
    """Return the principal's tenant id, denying principals without one."""
    if principal.kind != PrincipalKind.TENANT_USER or not principal.tenant_id:
        raise AuthorizationDeniedError(
            "A tenant account is required", principal_kind=principal.kind.value
        )
    return principal.tenant_id


def can_access_instance(
    principal: Principal, instance_id: str, owner_tenant_id: Optional[str]
) -> bool:
    """Whether a principal may act on an instance."""
    if principal.is_global_admin:
        return True
    if principal.kind == PrincipalKind.INSTANCE_TOKEN:
        return principal.instance_id == instance_id
    if principal.kind == PrincipalKind.TENANT_USER:
        return owner_tenant_id is not None and owner_tenant_id == principal.tenant_id
    return False
