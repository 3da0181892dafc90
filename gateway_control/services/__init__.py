"""Service layer for business logic."""

from .account_service import AccountService
from .audit_service import AuditService, AuditSink
from .base_service import SessionManagedService
from .instance_service import InstanceService
from .notification_service import EmailNotificationService, NotificationSink
from .session_service import SessionService
from .subscription_service import ALLOWED_TRANSITIONS, SubscriptionService

__all__ = [
    "ALLOWED_TRANSITIONS",
    "AccountService",
    "AuditService",
    "AuditSink",
    "EmailNotificationService",
    "InstanceService",
    "NotificationSink",
    "SessionManagedService",
    "SessionService",
    "SubscriptionService",
]
