"""
Tests for the authentication resolution chain.

Covers privilege ordering of the steps, the bootstrap guard on instance
create/fetch, tenant ownership of instances and degradation of store
errors to "no match".
"""

from unittest.mock import Mock

import pytest
from sqlalchemy.exc import OperationalError

from gateway_control.auth.resolver import AuthenticationResolver, CredentialMaterial
from gateway_control.enums import PrincipalKind, RequestOperation, UserRole
from gateway_control.exceptions import (
    AuthenticationInvalidError,
    AuthenticationMissingError,
    AuthorizationDeniedError,
    ConfigurationError,
    SessionInvalidError,
)
from tests.conftest import MASTER_KEY
from tests.fixtures.factories import (
    AdminAccountFactory,
    GatewayInstanceFactory,
    SuperAdminAccountFactory,
    TenantAccountFactory,
)


def material(api_key=None, instance_name=None, operation=RequestOperation.OTHER, bearer=None):
    return CredentialMaterial(
        api_key=api_key,
        bearer_token=bearer,
        instance_name=instance_name,
        operation=operation,
    )


class TestMissingCredentials:
    """Requests that present no api key."""

    @pytest.mark.parametrize(
        "operation", [RequestOperation.INSTANCE_CREATE, RequestOperation.INSTANCE_FETCH]
    )
    def test_bootstrap_operations_require_configured_global_key(self, resolver, operation):
        with pytest.raises(ConfigurationError):
            resolver.resolve(material(operation=operation))

    def test_other_operations_report_missing_credentials(self, resolver):
        with pytest.raises(AuthenticationMissingError) as exc_info:
            resolver.resolve(material(operation=RequestOperation.INSTANCE_SCOPED))

        assert exc_info.value.status_code == 401

    def test_whitespace_key_counts_as_missing(self, resolver):
        with pytest.raises(AuthenticationMissingError):
            resolver.resolve(material(api_key="   "))


class TestGlobalKey:
    """The master secret outranks every other step."""

    @pytest.mark.parametrize("operation", list(RequestOperation))
    def test_master_key_always_resolves_global_admin(self, db_session, resolver, operation):
        instance = GatewayInstanceFactory(name="shop-1")

        principal = resolver.resolve(
            material(api_key=MASTER_KEY, instance_name=instance.name, operation=operation)
        )

        assert principal.kind == PrincipalKind.GLOBAL_ADMIN
        assert principal.is_global_admin
        assert principal.tenant_id is None

    def test_master_key_wins_even_if_an_instance_reuses_it(self, db_session, resolver):
        GatewayInstanceFactory(name="shop-1", token=MASTER_KEY)

        principal = resolver.resolve(material(api_key=MASTER_KEY, instance_name="shop-1"))

        assert principal.kind == PrincipalKind.GLOBAL_ADMIN

    def test_unconfigured_master_key_never_matches(self, db_session, auth_config, features):
        auth_config.master_api_key = None
        resolver = AuthenticationResolver(db_session, auth_config, features)

        with pytest.raises(AuthenticationInvalidError):
            resolver.resolve(material(api_key="anything"))


class TestTenantSecret:
    """Tenant API secrets resolve to the owning account."""

    def test_secret_resolves_tenant_principal_with_role(self, db_session, resolver):
        account = AdminAccountFactory()

        principal = resolver.resolve(material(api_key=account.api_secret))

        assert principal.kind == PrincipalKind.TENANT_USER
        assert principal.tenant_id == account.id
        assert principal.role == UserRole.ADMIN
        assert principal.instance_id is None
        assert not principal.is_global_admin

    def test_unknown_secret_is_invalid_not_a_crash(self, db_session, resolver):
        with pytest.raises(AuthenticationInvalidError) as exc_info:
            resolver.resolve(material(api_key="gw_" + "0" * 48))

        assert exc_info.value.message == "Invalid credentials"

    def test_value_without_prefix_skips_account_lookup(self, db_session, auth_config, features):
        session = Mock(wraps=db_session)
        resolver = AuthenticationResolver(session, auth_config, features)

        with pytest.raises(AuthenticationInvalidError):
            resolver.resolve(material(api_key="not-a-tenant-secret"))

        session.query.assert_not_called()


class TestInstanceStep:
    """Requests addressed to one instance by name."""

    def test_instance_token_works_without_any_account(self, db_session, resolver):
        instance = GatewayInstanceFactory(name="unowned", token="instance-secret-token")

        principal = resolver.resolve(
            material(
                api_key="instance-secret-token",
                instance_name="unowned",
                operation=RequestOperation.INSTANCE_SCOPED,
            )
        )

        assert principal.kind == PrincipalKind.INSTANCE_TOKEN
        assert principal.instance_id == instance.id
        assert principal.tenant_id is None

    def test_instance_token_carries_owner(self, db_session, resolver):
        owner = TenantAccountFactory()
        instance = GatewayInstanceFactory(owner=owner, token="owned-instance-token")

        principal = resolver.resolve(
            material(api_key="owned-instance-token", instance_name=instance.name)
        )

        assert principal.kind == PrincipalKind.INSTANCE_TOKEN
        assert principal.tenant_id == owner.id

    def test_tenant_secret_on_own_instance_binds_instance(self, db_session, resolver):
        owner = TenantAccountFactory()
        instance = GatewayInstanceFactory(owner=owner)

        principal = resolver.resolve(
            material(api_key=owner.api_secret, instance_name=instance.name)
        )

        assert principal.kind == PrincipalKind.TENANT_USER
        assert principal.tenant_id == owner.id
        assert principal.instance_id == instance.id

    def test_tenant_secret_on_foreign_instance_is_denied(self, db_session, resolver):
        owner = TenantAccountFactory()
        intruder = TenantAccountFactory()
        instance = GatewayInstanceFactory(owner=owner)

        with pytest.raises(AuthorizationDeniedError) as exc_info:
            resolver.resolve(material(api_key=intruder.api_secret, instance_name=instance.name))

        assert exc_info.value.status_code == 403

    def test_tenant_secret_on_unowned_instance_is_denied(self, db_session, resolver):
        account = TenantAccountFactory()
        instance = GatewayInstanceFactory()

        with pytest.raises(AuthorizationDeniedError):
            resolver.resolve(material(api_key=account.api_secret, instance_name=instance.name))

    @pytest.mark.parametrize("owned_by_other", [True, False])
    def test_super_admin_secret_binds_any_instance(self, db_session, resolver, owned_by_other):
        admin = SuperAdminAccountFactory()
        instance = GatewayInstanceFactory(owner=TenantAccountFactory() if owned_by_other else None)

        principal = resolver.resolve(
            material(api_key=admin.api_secret, instance_name=instance.name)
        )

        assert principal.kind == PrincipalKind.TENANT_USER
        assert principal.is_global_admin is True
        assert principal.instance_id == instance.id

    def test_unknown_instance_falls_back_to_tenant(self, db_session, resolver):
        account = TenantAccountFactory()

        principal = resolver.resolve(
            material(api_key=account.api_secret, instance_name="does-not-exist")
        )

        assert principal.kind == PrincipalKind.TENANT_USER
        assert principal.instance_id is None

    def test_wrong_token_for_instance_is_invalid(self, db_session, resolver):
        GatewayInstanceFactory(name="shop-1", token="right-token-value")

        with pytest.raises(AuthenticationInvalidError):
            resolver.resolve(material(api_key="wrong-token-value", instance_name="shop-1"))


class TestReverseTokenLookup:
    """Listing instances with nothing but an instance token."""

    def test_fetch_resolves_instance_by_token(self, db_session, resolver):
        instance = GatewayInstanceFactory(token="listing-token-1")

        principal = resolver.resolve(
            material(api_key="listing-token-1", operation=RequestOperation.INSTANCE_FETCH)
        )

        assert principal.kind == PrincipalKind.INSTANCE_TOKEN
        assert principal.instance_id == instance.id

    def test_lookup_disabled_without_persisted_instance_data(
        self, db_session, auth_config, features
    ):
        features.persist_instance_data = False
        resolver = AuthenticationResolver(db_session, auth_config, features)
        GatewayInstanceFactory(token="listing-token-1")

        with pytest.raises(AuthenticationInvalidError):
            resolver.resolve(
                material(api_key="listing-token-1", operation=RequestOperation.INSTANCE_FETCH)
            )

    def test_lookup_only_applies_to_fetch(self, db_session, resolver):
        GatewayInstanceFactory(token="listing-token-1")

        with pytest.raises(AuthenticationInvalidError):
            resolver.resolve(material(api_key="listing-token-1"))


class TestStoreErrors:
    """Store failures while probing degrade to no match."""

    def test_failing_lookup_is_treated_as_no_match(self, auth_config, features):
        session = Mock()
        session.query.side_effect = OperationalError("SELECT", {}, Exception("db down"))
        resolver = AuthenticationResolver(session, auth_config, features)

        with pytest.raises(AuthenticationInvalidError):
            resolver.resolve(material(api_key="gw_" + "a" * 48, instance_name="shop-1"))

        assert session.rollback.call_count == 2

    def test_master_key_needs_no_store(self, auth_config, features):
        session = Mock()
        session.query.side_effect = OperationalError("SELECT", {}, Exception("db down"))
        resolver = AuthenticationResolver(session, auth_config, features)

        principal = resolver.resolve(material(api_key=MASTER_KEY))

        assert principal.is_global_admin


class TestSessionResolution:
    """Bearer session tokens resolve through the session service."""

    def test_valid_session_resolves_tenant(self, db_session, resolver, session_service):
        account = TenantAccountFactory()
        token = session_service.issue(account)

        principal = resolver.resolve_session(token)

        assert principal.kind == PrincipalKind.TENANT_USER
        assert principal.tenant_id == account.id
        assert principal.role == UserRole.USER

    def test_missing_bearer_is_missing_credentials(self, resolver):
        with pytest.raises(AuthenticationMissingError):
            resolver.resolve_session(None)

    def test_garbage_bearer_is_invalid_session(self, db_session, resolver):
        with pytest.raises(SessionInvalidError):
            resolver.resolve_session("not.a.token")

    def test_without_session_service_is_configuration_error(
        self, db_session, auth_config, features
    ):
        resolver = AuthenticationResolver(db_session, auth_config, features)

        with pytest.raises(ConfigurationError):
            resolver.resolve_session("some-token")
