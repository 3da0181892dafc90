"""
Shared test fixtures.

Provides an in-memory SQLite database (tables created and dropped per
test), a controllable clock, test configuration and every service wired
the way the ControlPlane wires them.
"""

from datetime import timedelta
from unittest.mock import Mock

import pytest
from sqlalchemy.orm import Session

from gateway_control.auth.passwords import PasswordHasher
from gateway_control.auth.resolver import AuthenticationResolver
from gateway_control.auth.tokens import TokenCodec
from gateway_control.config import (
    AppConfig,
    AuthConfig,
    EmailConfig,
    FeatureFlags,
    QueueConfig,
    reset_config,
    set_config,
)
from gateway_control.context.tenant_context import TenantContext
from gateway_control.db import DatabaseConfig, DatabaseManager, import_all_models, utc_now
from gateway_control.db.db_config import Base, initialize_db
from gateway_control.exceptions import clear_correlation_id
from gateway_control.services.account_service import AccountService
from gateway_control.services.audit_service import AuditService
from gateway_control.services.instance_service import InstanceService
from gateway_control.services.notification_service import EmailNotificationService
from gateway_control.services.session_service import SessionService
from gateway_control.services.subscription_service import SubscriptionService
from tests.fixtures.factories import set_factory_session

MASTER_KEY = "master-key-for-tests"
SESSION_SECRET = "session-secret-for-tests"


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now):
        self.current = now

    def __call__(self):
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)


# ==================== DATABASE FIXTURES ====================


@pytest.fixture(scope="session")
def db_config() -> DatabaseConfig:
    """Create SQLite in-memory database configuration for testing."""
    return DatabaseConfig(
        db_type="sqlite",
        database=":memory:",
        echo=False,
        development_mode=True,
    )


@pytest.fixture(scope="session")
def db_manager(db_config: DatabaseConfig) -> DatabaseManager:
    """Create and initialize database manager with all models."""
    import_all_models()
    return initialize_db(db_config)


@pytest.fixture(scope="function")
def db_session(db_manager: DatabaseManager) -> Session:
    """
    Request-scoped session for each test.

    Tables are created before and dropped after every test so no state
    leaks between tests.
    """
    Base.metadata.create_all(db_manager.engine)
    session = db_manager.get_session()
    set_factory_session(session)

    yield session

    session.rollback()
    db_manager.close_session()
    Base.metadata.drop_all(db_manager.engine)


@pytest.fixture(autouse=True)
def clean_request_context():
    """Clear thread-local request state after every test."""
    yield
    TenantContext.clear()
    clear_correlation_id()


# ==================== CONFIGURATION FIXTURES ====================


@pytest.fixture
def clock() -> FrozenClock:
    """
    Clock frozen at the real current second.

    Session tokens are checked against wall-clock time by PyJWT, so the
    clock starts at real time rather than at a fixed date.
    """
    return FrozenClock(utc_now().replace(microsecond=0))


@pytest.fixture
def auth_config() -> AuthConfig:
    return AuthConfig(
        master_api_key=MASTER_KEY,
        session_secret=SESSION_SECRET,
        password_hash_rounds=4,
    )


@pytest.fixture
def features() -> FeatureFlags:
    return FeatureFlags(
        persist_instance_data=True, enable_logs_queue=False, enable_audit_queue=False
    )


@pytest.fixture
def app_config(auth_config, features) -> AppConfig:
    config = AppConfig(
        environment="test",
        debug=False,
        auth=auth_config,
        features=features,
        email=EmailConfig(api_key=None, app_url="http://localhost:7071"),
        queue=QueueConfig(connection_string=""),
    )
    set_config(config)
    yield config
    reset_config()


# ==================== SERVICE FIXTURES ====================


@pytest.fixture
def notifier():
    """Notification sink that records calls and reports success."""
    sink = Mock(spec=EmailNotificationService)
    sink.send_verification.return_value = True
    sink.send_password_reset.return_value = True
    sink.send_expiry_warning.return_value = True
    return sink


@pytest.fixture
def password_hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def token_codec(auth_config, clock) -> TokenCodec:
    return TokenCodec(auth_config.session_secret, auth_config.session_ttl_seconds, clock=clock)


@pytest.fixture
def audit_service(db_session, features, clock) -> AuditService:
    return AuditService(session=db_session, features=features, clock=clock)


@pytest.fixture
def subscription_service(db_session, notifier, auth_config, clock) -> SubscriptionService:
    return SubscriptionService(
        session=db_session, notifier=notifier, trial_days=auth_config.trial_days, clock=clock
    )


@pytest.fixture
def session_service(db_session, token_codec, audit_service, clock) -> SessionService:
    return SessionService(token_codec, session=db_session, audit=audit_service, clock=clock)


@pytest.fixture
def account_service(
    db_session,
    auth_config,
    password_hasher,
    subscription_service,
    session_service,
    notifier,
    audit_service,
    clock,
) -> AccountService:
    return AccountService(
        auth_config=auth_config,
        passwords=password_hasher,
        subscriptions=subscription_service,
        sessions=session_service,
        notifier=notifier,
        audit=audit_service,
        session=db_session,
        clock=clock,
    )


@pytest.fixture
def instance_service(db_session, subscription_service, audit_service, clock) -> InstanceService:
    return InstanceService(
        subscription_service, audit=audit_service, session=db_session, clock=clock
    )


@pytest.fixture
def resolver(db_session, auth_config, features, session_service) -> AuthenticationResolver:
    return AuthenticationResolver(
        db_session, auth_config, features, session_service=session_service
    )
