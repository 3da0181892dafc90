"""Pydantic schemas for requests, responses and the resolved principal."""

from .account_schemas import (
    AccountRead,
    EmailRequest,
    ExternalIdentityClaims,
    LoginRequest,
    LoginResult,
    RegisterRequest,
    RegistrationResult,
    ResetPasswordRequest,
    RoleUpdateRequest,
    SessionUser,
    SubscriptionSummary,
)
from .audit_schemas import AuditLogFilter, AuditLogRead, AuditStats
from .instance_schemas import InstanceCreate, InstanceCreated, InstanceRead, PlatformStats
from .principal import Principal
from .subscription_schemas import QuotaStatus, RenewRequest, SubscriptionRead, SubscriptionStats

__all__ = [
    "AccountRead",
    "AuditLogFilter",
    "AuditLogRead",
    "AuditStats",
    "EmailRequest",
    "ExternalIdentityClaims",
    "InstanceCreate",
    "InstanceCreated",
    "InstanceRead",
    "LoginRequest",
    "LoginResult",
    "PlatformStats",
    "Principal",
    "QuotaStatus",
    "RegisterRequest",
    "RegistrationResult",
    "RenewRequest",
    "ResetPasswordRequest",
    "RoleUpdateRequest",
    "SessionUser",
    "SubscriptionRead",
    "SubscriptionStats",
    "SubscriptionSummary",
]
