"""
HTTP handlers for the control plane routes.

Every handler resolves the caller into a Principal first (session bearer
token or api-key chain), runs under that principal's log context, and
renders either its payload or the BaseError it raised as JSON.
"""

import uuid
from functools import wraps
from typing import Any, Callable, Optional

import azure.functions as func

from ..auth.authorization import require_admin, require_super_admin, require_tenant
from ..auth.resolver import CredentialMaterial
from ..constants import HeaderName, Limits
from ..context.tenant_context import TenantContext, principal_context
from ..control_plane import ControlPlane
from ..enums import AuditAction, RequestOperation, UserRole
from ..exceptions import (
    BaseError,
    ServiceError,
    ValidationError,
    clear_correlation_id,
    set_correlation_id,
)
from ..schemas.account_schemas import (
    EmailRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    RoleUpdateRequest,
)
from ..schemas.audit_schemas import AuditLogFilter
from ..schemas.instance_schemas import InstanceCreate
from ..schemas.principal import Principal
from ..schemas.subscription_schemas import RenewRequest
from .http_utils import (
    error_response,
    get_api_key,
    get_bearer_token,
    get_client_ip,
    get_int_param,
    json_response,
    parse_body,
    parse_params,
)

Handler = Callable[["ControlPlaneHandlers", func.HttpRequest], Any]


def endpoint(status_code: int = 200) -> Callable[[Handler], Callable[..., func.HttpResponse]]:
    """Wrap a handler with correlation id, error rendering and session cleanup."""

    def decorator(method: Handler):
        @wraps(method)
        def wrapper(self: "ControlPlaneHandlers", req: func.HttpRequest) -> func.HttpResponse:
            set_correlation_id(req.headers.get(HeaderName.CORRELATION_ID.value) or str(uuid.uuid4()))
            try:
                return json_response(method(self, req), status_code)
            except BaseError as e:
                return error_response(e, debug=self.debug)
            except Exception as e:
                error = ServiceError(
                    "Internal server error", operation=method.__name__, cause=e
                )
                self.control_plane.db_manager.get_session().rollback()
                self.control_plane.audit.log_error(
                    None, str(e), {"operation": method.__name__, "error_id": error.error_id}
                )
                return error_response(error, debug=self.debug)
            finally:
                TenantContext.clear()
                clear_correlation_id()
                self.control_plane.close_request()

        return wrapper

    return decorator


class ControlPlaneHandlers:
    """One method per HTTP route."""

    def __init__(self, control_plane: ControlPlane):
        self.control_plane = control_plane
        self.debug = control_plane.config.debug

    # Principal resolution

    def _session_principal(self, req: func.HttpRequest) -> Principal:
        return self.control_plane.resolver.resolve_session(get_bearer_token(req))

    def _api_key_principal(
        self, req: func.HttpRequest, operation: RequestOperation, instance_name: Optional[str] = None
    ) -> Principal:
        return self.control_plane.resolver.resolve(
            CredentialMaterial(
                api_key=get_api_key(req),
                bearer_token=get_bearer_token(req),
                instance_name=instance_name,
                operation=operation,
            )
        )

    @staticmethod
    def _route_param(req: func.HttpRequest, name: str) -> str:
        value = (req.route_params.get(name) or "").strip()
        if not value:
            raise ValidationError(f"{name} is required", field=name)
        return value

    # auth/*

    @endpoint(status_code=201)
    def register(self, req: func.HttpRequest):
        return self.control_plane.accounts.register(parse_body(req, RegisterRequest))

    @endpoint()
    def verify_email(self, req: func.HttpRequest):
        account = self.control_plane.accounts.verify_email(req.params.get("token") or "")
        return {"message": "Email verified", "user": account}

    @endpoint()
    def login(self, req: func.HttpRequest):
        body = parse_body(req, LoginRequest)
        return self.control_plane.accounts.login(
            body.identifier, body.password, ip_address=get_client_ip(req)
        )

    @endpoint()
    def logout(self, req: func.HttpRequest):
        self.control_plane.sessions.logout(get_bearer_token(req))
        return {"message": "Logged out"}

    @endpoint()
    def resend_verification(self, req: func.HttpRequest):
        body = parse_body(req, EmailRequest)
        return {"email_sent": self.control_plane.accounts.resend_verification(body.email)}

    @endpoint()
    def forgot_password(self, req: func.HttpRequest):
        body = parse_body(req, EmailRequest)
        self.control_plane.accounts.forgot_password(body.email)
        return {"message": "If the email is registered, a reset link has been sent"}

    @endpoint()
    def reset_password(self, req: func.HttpRequest):
        body = parse_body(req, ResetPasswordRequest)
        self.control_plane.accounts.reset_password(body.token, body.password)
        return {"message": "Password updated"}

    @endpoint()
    def me(self, req: func.HttpRequest):
        user = self.control_plane.resolver.introspect_session(get_bearer_token(req))
        with principal_context(Principal.tenant_user(user.id, user.role)):
            return user

    # account/*

    @endpoint()
    def regenerate_api_key(self, req: func.HttpRequest):
        principal = self._session_principal(req)
        with principal_context(principal):
            tenant_id = require_tenant(principal)
            return {"api_secret": self.control_plane.accounts.regenerate_api_secret(tenant_id)}

    # user/*

    @endpoint()
    def my_instances(self, req: func.HttpRequest):
        principal = self._session_principal(req)
        with principal_context(principal):
            tenant_id = require_tenant(principal)
            return self.control_plane.instances.list_owned_instances(tenant_id)

    # subscription/*

    @endpoint()
    def my_subscription(self, req: func.HttpRequest):
        principal = self._session_principal(req)
        with principal_context(principal):
            tenant_id = require_tenant(principal)
            return {
                "subscription": self.control_plane.subscriptions.get_subscription(tenant_id),
                "quota": self.control_plane.subscriptions.get_quota(tenant_id),
            }

    @endpoint()
    def list_subscriptions(self, req: func.HttpRequest):
        principal = self._session_principal(req)
        with principal_context(principal):
            require_admin(principal, "list subscriptions")
            return self.control_plane.subscriptions.list_subscriptions()

    @endpoint()
    def subscription_stats(self, req: func.HttpRequest):
        principal = self._session_principal(req)
        with principal_context(principal):
            require_admin(principal, "view subscription statistics")
            return self.control_plane.subscriptions.get_stats()

    @endpoint()
    def expiring_subscriptions(self, req: func.HttpRequest):
        principal = self._session_principal(req)
        with principal_context(principal):
            require_admin(principal, "list expiring subscriptions")
            days = get_int_param(req, "days", Limits.DEFAULT_EXPIRING_WINDOW_DAYS)
            return self.control_plane.subscriptions.get_expiring(days)

    @endpoint()
    def renew_subscription(self, req: func.HttpRequest):
        principal = self._session_principal(req)
        with principal_context(principal):
            require_admin(principal, "renew subscriptions")
            tenant_id = self._route_param(req, "tenantId")
            body = parse_body(req, RenewRequest)
            subscription = self.control_plane.subscriptions.renew(
                tenant_id, body.duration, body.plan
            )
            self.control_plane.audit.log_subscription_change(
                AuditAction.SUBSCRIPTION_RENEW,
                principal.tenant_id,
                tenant_id,
                {"plan": body.plan.value, "duration": body.duration.value},
            )
            return subscription

    @endpoint()
    def cancel_subscription(self, req: func.HttpRequest):
        principal = self._session_principal(req)
        with principal_context(principal):
            require_admin(principal, "cancel subscriptions")
            tenant_id = self._route_param(req, "tenantId")
            subscription = self.control_plane.subscriptions.cancel(tenant_id)
            self.control_plane.audit.log_subscription_change(
                AuditAction.SUBSCRIPTION_CANCEL, principal.tenant_id, tenant_id, {}
            )
            return subscription

    @endpoint()
    def update_expired(self, req: func.HttpRequest):
        principal = self._session_principal(req)
        with principal_context(principal):
            require_admin(principal, "expire subscriptions")
            return {"expired": self.control_plane.subscriptions.expire_elapsed()}

    # admin/*

    @endpoint()
    def list_users(self, req: func.HttpRequest):
        principal = self._session_principal(req)
        with principal_context(principal):
            require_super_admin(principal, "list accounts")
            return self.control_plane.accounts.list_accounts()

    @endpoint()
    def update_user_role(self, req: func.HttpRequest):
        principal = self._session_principal(req)
        with principal_context(principal):
            require_super_admin(principal, "change roles")
            body = parse_body(req, RoleUpdateRequest)
            return self.control_plane.accounts.update_role(
                principal, self._route_param(req, "tenantId"), body.role
            )

    @endpoint()
    def delete_user(self, req: func.HttpRequest):
        principal = self._session_principal(req)
        with principal_context(principal):
            tenant_id = self._route_param(req, "tenantId")
            self.control_plane.accounts.delete_account(principal, tenant_id)
            return {"message": "Account deleted", "id": tenant_id}

    @endpoint()
    def platform_stats(self, req: func.HttpRequest):
        principal = self._session_principal(req)
        with principal_context(principal):
            require_admin(principal, "view platform statistics")
            return self.control_plane.accounts.get_platform_stats()

    @endpoint()
    def admin_instances(self, req: func.HttpRequest):
        principal = self._session_principal(req)
        with principal_context(principal):
            require_admin(principal, "list instances")
            return self.control_plane.instances.list_instances(principal)

    @endpoint()
    def admin_role(self, req: func.HttpRequest):
        principal = self._session_principal(req)
        with principal_context(principal):
            require_admin(principal, "view role")
            return {
                "role": principal.role,
                "is_super_admin": principal.role == UserRole.SUPER_ADMIN,
            }

    @endpoint()
    def audit_logs(self, req: func.HttpRequest):
        principal = self._session_principal(req)
        with principal_context(principal):
            require_super_admin(principal, "read the audit log")
            return self.control_plane.audit.get_logs(parse_params(req, AuditLogFilter))

    @endpoint()
    def audit_stats(self, req: func.HttpRequest):
        principal = self._session_principal(req)
        with principal_context(principal):
            require_super_admin(principal, "read the audit log")
            return self.control_plane.audit.get_stats()

    # instance/*

    @endpoint()
    def fetch_instances(self, req: func.HttpRequest):
        principal = self._api_key_principal(req, RequestOperation.INSTANCE_FETCH)
        with principal_context(principal):
            return self.control_plane.instances.list_instances(principal)

    @endpoint(status_code=201)
    def create_instance(self, req: func.HttpRequest):
        principal = self._api_key_principal(req, RequestOperation.INSTANCE_CREATE)
        with principal_context(principal):
            body = parse_body(req, InstanceCreate)
            return self.control_plane.instances.create_instance(principal, body)

    @endpoint()
    def get_instance(self, req: func.HttpRequest):
        name = self._route_param(req, "instanceName")
        principal = self._api_key_principal(req, RequestOperation.INSTANCE_SCOPED, name)
        with principal_context(principal):
            return self.control_plane.instances.get_instance(principal, name)

    @endpoint()
    def delete_instance(self, req: func.HttpRequest):
        name = self._route_param(req, "instanceName")
        principal = self._api_key_principal(req, RequestOperation.INSTANCE_SCOPED, name)
        with principal_context(principal):
            self.control_plane.instances.delete_instance(principal, name)
            return {"message": "Instance deleted", "name": name}
