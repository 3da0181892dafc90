"""
Composition root.

Builds every collaborator once from an AppConfig and a DatabaseManager.
Services share the manager's scoped session, which the HTTP layer removes
at the end of each request.
"""

from datetime import datetime
from typing import Callable, Dict, Optional

from .auth.passwords import PasswordHasher
from .auth.resolver import AuthenticationResolver
from .auth.tokens import TokenCodec
from .config import AppConfig
from .constants import Limits
from .db.db_base import utc_now
from .db.db_config import DatabaseManager
from .services.account_service import AccountService
from .services.audit_service import AuditService
from .services.instance_service import InstanceService
from .services.notification_service import EmailNotificationService, NotificationSink
from .services.session_service import SessionService
from .services.subscription_service import SubscriptionService
from .utils.logger import get_logger


class ControlPlane:
    """Wires configuration, store and services together."""

    def __init__(
        self,
        config: AppConfig,
        db_manager: DatabaseManager,
        notifier: Optional[NotificationSink] = None,
        clock: Optional[Callable[[], datetime]] = None,
        logger=None,
    ):
        self.config = config
        self.db_manager = db_manager
        self.logger = logger or get_logger()
        self.clock = clock or utc_now

        session = db_manager.scoped_session
        auth = config.auth

        self.codec = TokenCodec(
            auth.resolve_session_secret(), auth.session_ttl_seconds, clock=self.clock
        )
        self.passwords = PasswordHasher(rounds=auth.password_hash_rounds)
        self.notifier = notifier or EmailNotificationService(config.email, logger=self.logger)

        self.audit = AuditService(
            session=session,
            features=config.features,
            queue_config=config.queue,
            logger=self.logger,
            clock=self.clock,
        )
        self.subscriptions = SubscriptionService(
            session=session,
            notifier=self.notifier,
            trial_days=auth.trial_days,
            logger=self.logger,
            clock=self.clock,
        )
        self.sessions = SessionService(
            self.codec, session=session, audit=self.audit, logger=self.logger, clock=self.clock
        )
        self.accounts = AccountService(
            auth_config=auth,
            passwords=self.passwords,
            subscriptions=self.subscriptions,
            sessions=self.sessions,
            notifier=self.notifier,
            audit=self.audit,
            session=session,
            logger=self.logger,
            clock=self.clock,
        )
        self.instances = InstanceService(
            self.subscriptions,
            audit=self.audit,
            session=session,
            logger=self.logger,
            clock=self.clock,
        )
        self.resolver = AuthenticationResolver(
            session,
            auth,
            config.features,
            session_service=self.sessions,
            logger=self.logger,
        )

    def run_maintenance(self, warning_days: int = Limits.DEFAULT_EXPIRING_WINDOW_DAYS) -> Dict[str, int]:
        """Expire elapsed subscriptions, send expiry warnings and prune old audit entries."""
        try:
            result = {
                "expired": self.subscriptions.expire_elapsed(),
                "warned": self.subscriptions.send_expiry_warnings(warning_days),
                "audit_deleted": self.audit.delete_old_logs(),
            }
        finally:
            self.close_request()
        self.logger.info("Maintenance run completed", extra=result)
        return result

    def close_request(self) -> None:
        """Release the request-scoped session."""
        self.db_manager.close_session()
