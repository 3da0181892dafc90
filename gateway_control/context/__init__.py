"""Context management for operations and tenant log enrichment."""

from .operation_context import OperationContext, OperationHandler, operation
from .tenant_context import TenantContext, principal_context, tenant_context

__all__ = [
    "operation",
    "OperationContext",
    "OperationHandler",
    "TenantContext",
    "principal_context",
    "tenant_context",
]
