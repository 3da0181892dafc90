"""
Authentication resolution chain.

Turns the credential material of one request into exactly one Principal,
or raises. Steps run in privilege order (global key, tenant API secret,
instance token) and each returns an explicit Matched, NoMatch or HardError
result; only HardError, or exhausting the chain, stops a request.

Store errors raised while probing are logged and treated as NoMatch, so a
database hiccup degrades to "unauthorized" rather than a crash.
"""

from typing import TYPE_CHECKING, Optional, Union

from pydantic import BaseModel, ConfigDict
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import AuthConfig, FeatureFlags
from ..context.operation_context import operation
from ..db.db_account_models import TenantAccount
from ..db.db_instance_models import GatewayInstance
from ..enums import RequestOperation, UserRole
from ..exceptions import (
    AuthenticationInvalidError,
    AuthenticationMissingError,
    AuthorizationDeniedError,
    BaseError,
    ConfigurationError,
)
from ..schemas.account_schemas import SessionUser
from ..schemas.principal import Principal
from ..utils.crud_helpers import get_record
from ..utils.logger import get_logger
from .api_secrets import constant_time_equals, has_secret_format

if TYPE_CHECKING:
    from ..services.session_service import SessionService

BOOTSTRAP_OPERATIONS = (RequestOperation.INSTANCE_CREATE, RequestOperation.INSTANCE_FETCH)


class CredentialMaterial(BaseModel):
    """Credential-bearing parts of an inbound request."""

    api_key: Optional[str] = None
    bearer_token: Optional[str] = None
    instance_name: Optional[str] = None
    operation: RequestOperation = RequestOperation.OTHER

    model_config = ConfigDict(frozen=True)


class Matched(BaseModel):
    principal: Principal

    model_config = ConfigDict(frozen=True)


class NoMatch(BaseModel):
    reason: str = ""

    model_config = ConfigDict(frozen=True)


class HardError(BaseModel):
    error: BaseError

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


StepResult = Union[Matched, NoMatch, HardError]


class AuthenticationResolver:
    """Resolve api-key and bearer credentials into a Principal."""

    def __init__(
        self,
        session: Session,
        auth_config: AuthConfig,
        features: FeatureFlags,
        session_service: Optional["SessionService"] = None,
        logger=None,
    ):
        self.session = session
        self.auth_config = auth_config
        self.features = features
        self.session_service = session_service
        self.logger = logger or get_logger()

    @operation()
    def resolve(self, material: CredentialMaterial) -> Principal:
        """
        Run the api-key chain.

        Raises:
            ConfigurationError: no key presented on instance create/fetch
            AuthenticationMissingError: no key presented elsewhere
            AuthorizationDeniedError: a non-admin tenant targeted an instance it does not own
            AuthenticationInvalidError: a key was presented but nothing matched
        """
        api_key = (material.api_key or "").strip()
        if not api_key:
            if material.operation in BOOTSTRAP_OPERATIONS:
                raise ConfigurationError(
                    "The global API key must be presented for this operation",
                    operation=material.operation.value,
                )
            raise AuthenticationMissingError()

        result = self._match_global_key(api_key)
        if isinstance(result, Matched):
            return result.principal

        tenant_result = self._match_tenant_secret(api_key)
        tenant_principal = tenant_result.principal if isinstance(tenant_result, Matched) else None

        if material.instance_name:
            result = self._match_instance(api_key, material.instance_name, tenant_principal)
        elif tenant_principal is None and material.operation == RequestOperation.INSTANCE_FETCH:
            result = self._match_instance_token_reverse(api_key)
        else:
            result = NoMatch(reason="no instance step applies")

        if isinstance(result, HardError):
            raise result.error
        if isinstance(result, Matched):
            return result.principal
        if tenant_principal is not None:
            return tenant_principal

        raise AuthenticationInvalidError(operation=material.operation.value)

    def introspect_session(self, bearer_token: Optional[str]) -> SessionUser:
        """Verify a bearer session token and return the live account behind it."""
        if not bearer_token:
            raise AuthenticationMissingError("Session token required")
        if self.session_service is None:
            raise ConfigurationError("Session resolution is not configured")
        return self.session_service.introspect(bearer_token)

    def resolve_session(self, bearer_token: Optional[str]) -> Principal:
        """Resolve a bearer session token into a tenant principal."""
        user = self.introspect_session(bearer_token)
        return Principal.tenant_user(user.id, user.role)

    # Steps

    def _match_global_key(self, api_key: str) -> StepResult:
        master = self.auth_config.master_api_key
        if master and constant_time_equals(api_key, master):
            self.logger.info("Resolved global administrator key")
            return Matched(principal=Principal.global_admin())
        return NoMatch(reason="not the global key")

    def _match_tenant_secret(self, api_key: str) -> StepResult:
        if not has_secret_format(api_key, self.auth_config.api_secret_prefix):
            return NoMatch(reason="not a tenant secret")
        try:
            account = get_record(self.session, TenantAccount, {"api_secret": api_key})
        except SQLAlchemyError as e:
            self._discard_failed_lookup("tenant secret lookup", e)
            return NoMatch(reason="store error")
        if account is None:
            return NoMatch(reason="unknown tenant secret")
        return Matched(principal=Principal.tenant_user(account.id, UserRole(account.role)))

    def _match_instance(
        self, api_key: str, instance_name: str, tenant_principal: Optional[Principal]
    ) -> StepResult:
        try:
            instance = get_record(self.session, GatewayInstance, {"name": instance_name})
        except SQLAlchemyError as e:
            self._discard_failed_lookup("instance lookup", e)
            return NoMatch(reason="store error")

        if instance is None:
            return NoMatch(reason="unknown instance")

        if constant_time_equals(api_key, instance.token):
            return Matched(principal=Principal.instance_token(instance.id, instance.tenant_id))

        if tenant_principal is not None:
            owns = instance.tenant_id == tenant_principal.tenant_id
            if owns or tenant_principal.is_global_admin:
                return Matched(principal=tenant_principal.bound_to(instance.id))
            return HardError(
                error=AuthorizationDeniedError(
                    "Instance does not belong to this account",
                    instance_name=instance_name,
                )
            )
        return NoMatch(reason="instance token mismatch")

    def _match_instance_token_reverse(self, api_key: str) -> StepResult:
        if not self.features.persist_instance_data:
            return NoMatch(reason="instance data is not persisted")
        try:
            instance = get_record(self.session, GatewayInstance, {"token": api_key})
        except SQLAlchemyError as e:
            self._discard_failed_lookup("instance token lookup", e)
            return NoMatch(reason="store error")
        if instance is None:
            return NoMatch(reason="unknown instance token")
        return Matched(principal=Principal.instance_token(instance.id, instance.tenant_id))

    def _discard_failed_lookup(self, step: str, error: Exception) -> None:
        self.logger.warning(
            f"Credential store error during {step}; treating as no match",
            extra={"step": step, "error_type": type(error).__name__, "error": str(error)},
        )
        self.session.rollback()
