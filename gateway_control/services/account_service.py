"""
Tenant account lifecycle.

Registration, email verification, login, password reset, API secret
rotation, identity-provider upserts and account administration. Writes
that must land together (verification plus trial activation, external
account plus its subscription) share one transaction.

Notifications and audit entries are sent after the primary commit and
never fail the operation.
"""

from datetime import timedelta
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from ..auth.api_secrets import generate_api_secret, generate_opaque_token
from ..auth.authorization import forbid_self_action, require_super_admin
from ..auth.passwords import PasswordHasher
from ..config import AuthConfig
from ..context.operation_context import operation
from ..db.db_account_models import TenantAccount
from ..db.db_base import ensure_utc
from ..db.db_instance_models import GatewayInstance
from ..db.db_subscription_models import Subscription
from ..enums import (
    AuditAction,
    InstanceConnectionStatus,
    SubscriptionPlan,
    SubscriptionStatus,
    UserRole,
    max_instances_for,
)
from ..exceptions import (
    AuthenticationInvalidError,
    AuthorizationDeniedError,
    ConflictError,
    ExpiredResourceError,
    ValidationError,
    not_found,
)
from ..schemas.account_schemas import (
    AccountRead,
    ExternalIdentityClaims,
    LoginResult,
    RegisterRequest,
    RegistrationResult,
)
from ..schemas.instance_schemas import PlatformStats
from ..schemas.principal import Principal
from ..utils.crud_helpers import count_records, record_exists
from .audit_service import AuditService
from .base_service import SessionManagedService
from .notification_service import NotificationSink
from .session_service import SessionService
from .subscription_service import SubscriptionService

INVALID_CREDENTIALS = "Invalid credentials"


class AccountService(SessionManagedService):
    """Manage tenant accounts and their credentials."""

    def __init__(
        self,
        auth_config: AuthConfig,
        passwords: PasswordHasher,
        subscriptions: SubscriptionService,
        sessions: SessionService,
        notifier: NotificationSink,
        audit: AuditService,
        session=None,
        logger=None,
        clock=None,
    ):
        super().__init__(session=session, logger=logger, clock=clock)
        self.auth_config = auth_config
        self.passwords = passwords
        self.subscriptions = subscriptions
        self.sessions = sessions
        self.notifier = notifier
        self.audit = audit

    # Lookups

    def _get_account(self, tenant_id: str) -> TenantAccount:
        account = self.session.get(TenantAccount, tenant_id)
        if account is None:
            raise not_found("TenantAccount", tenant_id=tenant_id)
        return account

    def _find_by_email(self, email: str) -> Optional[TenantAccount]:
        return (
            self.session.query(TenantAccount)
            .filter(TenantAccount.email == email.strip().lower())
            .first()
        )

    @operation()
    def list_accounts(self) -> List[AccountRead]:
        rows = self.session.query(TenantAccount).order_by(TenantAccount.created_at.desc()).all()
        return [AccountRead.model_validate(row) for row in rows]

    # Self-service

    @operation()
    def register(self, request: RegisterRequest) -> RegistrationResult:
        """
        Create an unverified account and email its verification link.

        Raises:
            ConflictError: if the email or handle is already taken; nothing is written
        """
        if self._find_by_email(request.email) is not None:
            raise ConflictError("Email is already registered", field="email")
        if record_exists(self.session, TenantAccount, {"handle": request.handle}):
            raise ConflictError("Handle is already taken", field="handle")

        now = self.now()
        account = TenantAccount(
            email=request.email,
            handle=request.handle,
            password_hash=self.passwords.hash(request.password),
            first_name=request.first_name,
            last_name=request.last_name,
            role=UserRole.USER.value,
            email_verified=False,
            verification_token=generate_opaque_token(),
            verification_token_expires_at=now
            + timedelta(seconds=self.auth_config.verification_token_ttl_seconds),
            api_secret=generate_api_secret(self.auth_config.api_secret_prefix),
        )
        try:
            with self.transaction():
                self.session.add(account)
        except IntegrityError as e:
            # Lost a race with a concurrent registration
            raise ConflictError("Email or handle is already registered", cause=e) from e

        self.logger.info("Account registered", extra={"tenant_id": account.id})
        email_sent = self.notifier.send_verification(
            account.email, account.verification_token, account.handle
        )
        self.audit.log_register(account.id, account.email)
        return RegistrationResult(
            id=account.id, email=account.email, handle=account.handle, email_sent=email_sent
        )

    @operation()
    def verify_email(self, token: str) -> AccountRead:
        """
        Mark an account verified and start its trial, atomically.

        Raises:
            ValidationError: unknown token
            ExpiredResourceError: token past its expiry
        """
        account = (
            self.session.query(TenantAccount)
            .filter(TenantAccount.verification_token == token)
            .first()
            if token
            else None
        )
        if account is None:
            raise ValidationError("Invalid verification token", field="token")
        if ensure_utc(account.verification_token_expires_at) < self.now():
            raise ExpiredResourceError("Verification link has expired", tenant_id=account.id)

        with self.transaction():
            account.email_verified = True
            account.verification_token = None
            account.verification_token_expires_at = None
            self.subscriptions.upsert_trial(account.id)

        self.logger.info("Email verified", extra={"tenant_id": account.id})
        self.audit.record(AuditAction.EMAIL_VERIFIED, actor_id=account.id)
        return AccountRead.model_validate(account)

    @operation()
    def login(self, identifier: str, password: str, ip_address: Optional[str] = None) -> LoginResult:
        """
        Check credentials and issue a session token.

        Raises:
            AuthenticationInvalidError: unknown account or wrong password (same message)
            AuthorizationDeniedError: email not verified yet
            ExpiredResourceError: subscription window elapsed (status is written first)
        """
        identifier = identifier.strip()
        account = (
            self.session.query(TenantAccount)
            .filter(
                or_(
                    TenantAccount.email == identifier.lower(),
                    TenantAccount.handle == identifier,
                )
            )
            .first()
        )
        if account is None or not self.passwords.verify(password, account.password_hash):
            raise AuthenticationInvalidError(INVALID_CREDENTIALS)

        if not account.email_verified:
            raise AuthorizationDeniedError(
                "Please verify your email before logging in",
                reason="email_not_verified",
                tenant_id=account.id,
            )

        self.subscriptions.enforce_login_expiry(account.id)

        with self.transaction():
            account.last_login_at = self.now()

        token = self.sessions.issue(account)
        self.audit.log_login(account.id, account.email, ip_address)
        return LoginResult(token=token, user=self.sessions.describe(account))

    @operation()
    def resend_verification(self, email: str) -> bool:
        """
        Issue a fresh verification token and email it.

        Raises:
            NotFoundError: no account for the email
            ValidationError: the email is already verified
        """
        account = self._find_by_email(email)
        if account is None:
            raise not_found("TenantAccount", email=email)
        if account.email_verified:
            raise ValidationError("Email is already verified", field="email")

        with self.transaction():
            account.verification_token = generate_opaque_token()
            account.verification_token_expires_at = self.now() + timedelta(
                seconds=self.auth_config.verification_token_ttl_seconds
            )

        return self.notifier.send_verification(
            account.email, account.verification_token, account.handle
        )

    @operation()
    def forgot_password(self, email: str) -> None:
        """Email a password reset link. Silent for unknown addresses."""
        account = self._find_by_email(email)
        if account is None:
            self.logger.info("Password reset requested for unknown email")
            return

        with self.transaction():
            account.reset_token = generate_opaque_token()
            account.reset_token_expires_at = self.now() + timedelta(
                seconds=self.auth_config.password_reset_ttl_seconds
            )

        self.notifier.send_password_reset(account.email, account.reset_token, account.handle)

    @operation()
    def reset_password(self, token: str, new_password: str) -> None:
        """
        Replace the password of the account holding a valid reset token.

        Raises:
            ValidationError: unknown token
            ExpiredResourceError: token past its expiry
        """
        account = (
            self.session.query(TenantAccount).filter(TenantAccount.reset_token == token).first()
            if token
            else None
        )
        if account is None:
            raise ValidationError("Invalid or expired reset token", field="token")
        if ensure_utc(account.reset_token_expires_at) < self.now():
            raise ExpiredResourceError("Password reset link has expired", tenant_id=account.id)

        with self.transaction():
            account.password_hash = self.passwords.hash(new_password)
            account.reset_token = None
            account.reset_token_expires_at = None

        self.audit.record(AuditAction.PASSWORD_RESET, actor_id=account.id)

    @operation()
    def regenerate_api_secret(self, tenant_id: str) -> str:
        """Replace a tenant's API secret; the previous one stops resolving immediately."""
        account = self._get_account(tenant_id)
        with self.transaction():
            account.api_secret = generate_api_secret(self.auth_config.api_secret_prefix)
        self.audit.log_api_secret_regenerate(tenant_id)
        return account.api_secret

    # Identity provider

    @operation()
    def upsert_external_account(self, claims: ExternalIdentityClaims) -> AccountRead:
        """
        Create or refresh an account from identity-provider claims.

        A new account is created verified, together with an open-ended
        ACTIVE subscription on the FREE plan, in one transaction.

        Raises:
            ConflictError: the email belongs to a different account
        """
        try:
            with self.transaction():
                account = self.session.get(TenantAccount, claims.sub)
                if account is None:
                    account = TenantAccount(
                        id=claims.sub,
                        email=claims.email,
                        role=UserRole.USER.value,
                        email_verified=True,
                        api_secret=generate_api_secret(self.auth_config.api_secret_prefix),
                    )
                    self.session.add(account)
                    self.session.add(
                        Subscription(
                            tenant_id=claims.sub,
                            status=SubscriptionStatus.ACTIVE.value,
                            plan=SubscriptionPlan.FREE.value,
                            max_instances=max_instances_for(SubscriptionPlan.FREE),
                            period_start=self.now(),
                            period_end=None,
                        )
                    )
                account.email = claims.email
                account.first_name = claims.first_name
                account.last_name = claims.last_name
                account.profile_image_url = claims.profile_image_url
                self.session.flush()
        except IntegrityError as e:
            raise ConflictError(
                "Email is already registered to another account", field="email", cause=e
            ) from e

        return AccountRead.model_validate(account)

    # Administration

    @operation()
    def update_role(self, actor: Principal, tenant_id: str, role: UserRole) -> AccountRead:
        """Change an account's role. Super admins only, never on themselves."""
        require_super_admin(actor, "change roles")
        forbid_self_action(actor, tenant_id, "change the role of")

        account = self._get_account(tenant_id)
        old_role = account.role
        with self.transaction():
            account.role = UserRole(role).value

        self.audit.log_role_update(actor.tenant_id, tenant_id, old_role, account.role)
        return AccountRead.model_validate(account)

    @operation()
    def delete_account(self, actor: Principal, tenant_id: str) -> None:
        """
        Delete an account and its subscription. Super admins only, never themselves.

        Instances the account owned are kept and become unowned.
        """
        require_super_admin(actor, "delete accounts")
        forbid_self_action(actor, tenant_id, "delete")

        account = self._get_account(tenant_id)
        email = account.email
        try:
            with self.transaction():
                self.session.delete(account)
        except Exception as e:
            self._handle_service_exception("delete_account", e, tenant_id)

        self.audit.log_account_delete(actor.tenant_id, tenant_id, email)

    @operation()
    def get_platform_stats(self) -> PlatformStats:
        by_plan = (
            self.session.query(Subscription.plan, func.count(Subscription.id))
            .group_by(Subscription.plan)
            .all()
        )
        return PlatformStats(
            total_accounts=count_records(self.session, TenantAccount),
            total_instances=count_records(self.session, GatewayInstance),
            open_instances=count_records(
                self.session,
                GatewayInstance,
                {"connection_status": InstanceConnectionStatus.OPEN.value},
            ),
            subscriptions_by_plan={SubscriptionPlan(plan): count for plan, count in by_plan},
        )
