"""
Enums used across the gateway_control package.

This module contains enum definitions shared by the models, schemas and
services, kept here to avoid circular import issues.
"""

from enum import Enum
from typing import Dict


class SubscriptionStatus(str, Enum):
    """Lifecycle status of a tenant subscription."""

    TRIAL = "TRIAL"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class SubscriptionPlan(str, Enum):
    """Commercial plan tiers."""

    FREE = "FREE"
    BASIC = "BASIC"
    PRO = "PRO"
    ENTERPRISE = "ENTERPRISE"


class SubscriptionDuration(str, Enum):
    """Renewal periods an administrator can grant."""

    ONE_MONTH = "1_month"
    TWO_MONTHS = "2_months"
    ONE_YEAR = "1_year"
    THREE_YEARS = "3_years"

    @property
    def days(self) -> int:
        return DURATION_DAYS[self]


class UserRole(str, Enum):
    """Operator role attached to a tenant account."""

    USER = "USER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


class PrincipalKind(str, Enum):
    """Kinds of authenticated identity a request can resolve to."""

    GLOBAL_ADMIN = "GLOBAL_ADMIN"
    TENANT_USER = "TENANT_USER"
    INSTANCE_TOKEN = "INSTANCE_TOKEN"
    ANONYMOUS = "ANONYMOUS"


class RequestOperation(str, Enum):
    """Operations the resolver treats specially while resolving credentials."""

    INSTANCE_CREATE = "instance.create"
    INSTANCE_FETCH = "instance.fetch"
    INSTANCE_SCOPED = "instance.scoped"
    OTHER = "other"


class InstanceConnectionStatus(str, Enum):
    """Connection state reported by a gateway instance."""

    OPEN = "open"
    CONNECTING = "connecting"
    CLOSE = "close"


class AuditAction(str, Enum):
    """Actions recorded in the audit log."""

    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    REGISTER = "REGISTER"
    EMAIL_VERIFIED = "EMAIL_VERIFIED"
    PASSWORD_RESET = "PASSWORD_RESET"
    INSTANCE_CREATE = "INSTANCE_CREATE"
    INSTANCE_DELETE = "INSTANCE_DELETE"
    ROLE_UPDATE = "ROLE_UPDATE"
    ACCOUNT_DELETE = "ACCOUNT_DELETE"
    API_SECRET_REGENERATE = "API_SECRET_REGENERATE"
    SUBSCRIPTION_RENEW = "SUBSCRIPTION_RENEW"
    SUBSCRIPTION_CANCEL = "SUBSCRIPTION_CANCEL"
    ERROR = "ERROR"


class AuditSeverity(str, Enum):
    """Severity attached to audit records."""

    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# Single source of truth for instance quotas; total over SubscriptionPlan.
PLAN_INSTANCE_QUOTAS: Dict[SubscriptionPlan, int] = {
    SubscriptionPlan.FREE: 1,
    SubscriptionPlan.BASIC: 5,
    SubscriptionPlan.PRO: 20,
    SubscriptionPlan.ENTERPRISE: 100,
}

DURATION_DAYS: Dict[SubscriptionDuration, int] = {
    SubscriptionDuration.ONE_MONTH: 30,
    SubscriptionDuration.TWO_MONTHS: 60,
    SubscriptionDuration.ONE_YEAR: 365,
    SubscriptionDuration.THREE_YEARS: 1095,
}


def max_instances_for(plan: SubscriptionPlan) -> int:
    """Return the instance quota granted by a plan."""
    return PLAN_INSTANCE_QUOTAS[SubscriptionPlan(plan)]
