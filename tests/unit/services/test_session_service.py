"""Tests for session issue, introspection and logout."""

from datetime import timedelta

import pytest

from gateway_control.auth.tokens import TokenCodec
from gateway_control.db import AuditLog, ensure_utc
from gateway_control.enums import AuditAction, SubscriptionPlan, SubscriptionStatus, UserRole
from gateway_control.exceptions import SessionInvalidError
from gateway_control.services.session_service import SessionService
from tests.fixtures.factories import ActiveSubscriptionFactory, TenantAccountFactory


class TestIntrospect:
    """Test that introspection reflects the live account."""

    def test_round_trip(self, db_session, session_service):
        account = TenantAccountFactory()

        user = session_service.introspect(session_service.issue(account))

        assert user.id == account.id
        assert user.email == account.email
        assert user.handle == account.handle
        assert user.role == UserRole.USER
        assert user.api_secret == account.api_secret
        assert user.subscription is None

    def test_role_change_applies_without_new_login(self, db_session, session_service):
        account = TenantAccountFactory()
        token = session_service.issue(account)

        account.role = UserRole.ADMIN.value
        db_session.commit()

        assert session_service.introspect(token).role == UserRole.ADMIN

    def test_subscription_summary(self, db_session, session_service, clock):
        subscription = ActiveSubscriptionFactory(
            period_start=clock(), period_end=clock() + timedelta(days=30)
        )

        user = session_service.introspect(session_service.issue(subscription.account))

        assert user.subscription.plan == SubscriptionPlan.BASIC
        assert user.subscription.status == SubscriptionStatus.ACTIVE
        assert user.subscription.expires_at == ensure_utc(subscription.period_end)

    def test_deleted_account_invalidates_session(self, db_session, session_service):
        account = TenantAccountFactory()
        token = session_service.issue(account)

        db_session.delete(account)
        db_session.commit()

        with pytest.raises(SessionInvalidError):
            session_service.introspect(token)

    def test_expired_token(self, db_session, auth_config, clock):
        account = TenantAccountFactory()
        codec = TokenCodec(auth_config.session_secret, -1, clock=clock)
        service = SessionService(codec, session=db_session, clock=clock)

        with pytest.raises(SessionInvalidError):
            service.introspect(service.issue(account))


class TestLogout:
    """Test logout auditing."""

    def test_logout_records_audit_entry(self, db_session, session_service):
        account = TenantAccountFactory()

        session_service.logout(session_service.issue(account))

        entry = db_session.query(AuditLog).one()
        assert entry.action == AuditAction.LOGOUT.value
        assert entry.actor_id == account.id

    @pytest.mark.parametrize("token", [None, "", "garbage-token"])
    def test_logout_never_fails(self, db_session, session_service, token):
        session_service.logout(token)

        assert db_session.query(AuditLog).count() == 0
