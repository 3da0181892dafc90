"""
Request-scoped tenant context.

After a request resolves to a Principal, its tenant and instance are stored
in thread-local storage so every log line written while serving the request
carries them. The context is for log enrichment only; authorization always
reads the explicit Principal.
"""

import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Generator, Optional

from ..exceptions import ErrorCode, ValidationError

if TYPE_CHECKING:
    from ..schemas.principal import Principal


class TenantContext:
    """Manages the current tenant and instance using thread-local storage."""

    _thread_local = threading.local()

    @classmethod
    def set_current_tenant(cls, tenant_id: str) -> None:
        """
        Set the current tenant ID for the execution context.

        Raises:
            ValidationError: If tenant_id is empty
        """
        if not tenant_id or not isinstance(tenant_id, str) or not tenant_id.strip():
            raise ValidationError(
                "tenant_id must be a non-empty string",
                error_code=ErrorCode.MISSING_REQUIRED,
                field="tenant_id",
                value=tenant_id,
            )
        cls._thread_local.tenant_id = tenant_id.strip()

    @classmethod
    def get_current_tenant_id(cls) -> Optional[str]:
        return getattr(cls._thread_local, "tenant_id", None)

    @classmethod
    def set_current_instance(cls, instance_id: Optional[str]) -> None:
        cls._thread_local.instance_id = instance_id

    @classmethod
    def get_current_instance_id(cls) -> Optional[str]:
        return getattr(cls._thread_local, "instance_id", None)

    @classmethod
    def clear(cls) -> None:
        """Clear tenant and instance from the execution context."""
        for attr in ("tenant_id", "instance_id"):
            if hasattr(cls._thread_local, attr):
                delattr(cls._thread_local, attr)


@contextmanager
def tenant_context(tenant_id: str) -> Generator[None, None, None]:
    """
    Set the current tenant for the duration of the block and restore afterwards.

    Args:
        tenant_id: ID of the tenant
    """
    previous_tenant = TenantContext.get_current_tenant_id()
    TenantContext.set_current_tenant(tenant_id)
    try:
        yield
    finally:
        if previous_tenant:
            TenantContext.set_current_tenant(previous_tenant)
        else:
            TenantContext.clear()


@contextmanager
def principal_context(principal: "Principal") -> Generator[None, None, None]:
    """Stamp a resolved principal's tenant and instance onto the context."""
    previous_tenant = TenantContext.get_current_tenant_id()
    previous_instance = TenantContext.get_current_instance_id()
    if principal.tenant_id:
        TenantContext.set_current_tenant(principal.tenant_id)
    TenantContext.set_current_instance(principal.instance_id)
    try:
        yield
    finally:
        TenantContext.clear()
        if previous_tenant:
            TenantContext.set_current_tenant(previous_tenant)
        if previous_instance:
            TenantContext.set_current_instance(previous_instance)
