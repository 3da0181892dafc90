"""
Interactive sessions.

A login yields a signed, time-boxed claim bundle that the client presents
as a bearer token. Introspection checks only the signature and the
token's own expiry, then re-reads the live account so role and
subscription changes apply without a new login.
"""

from typing import Optional

from ..auth.tokens import TokenCodec
from ..context.operation_context import operation
from ..db.db_account_models import TenantAccount
from ..db.db_base import ensure_utc
from ..enums import AuditAction, SubscriptionPlan, SubscriptionStatus, UserRole
from ..exceptions import SessionInvalidError
from ..schemas.account_schemas import SessionUser, SubscriptionSummary
from .audit_service import AuditSink
from .base_service import SessionManagedService


class SessionService(SessionManagedService):
    def __init__(
        self,
        codec: TokenCodec,
        session=None,
        audit: Optional[AuditSink] = None,
        logger=None,
        clock=None,
    ):
        super().__init__(session=session, logger=logger, clock=clock)
        self.codec = codec
        self.audit = audit

    def issue(self, account: TenantAccount) -> str:
        """Sign a session token for an account."""
        return self.codec.sign(
            {
                "sub": account.id,
                "email": account.email,
                "handle": account.handle,
                "role": account.role,
            }
        )

    @staticmethod
    def describe(account: TenantAccount) -> SessionUser:
        """Project an account and its subscription into the session view."""
        summary = None
        if account.subscription is not None:
            summary = SubscriptionSummary(
                plan=SubscriptionPlan(account.subscription.plan),
                status=SubscriptionStatus(account.subscription.status),
                expires_at=ensure_utc(account.subscription.period_end),
            )
        return SessionUser(
            id=account.id,
            email=account.email,
            handle=account.handle,
            role=UserRole(account.role),
            api_secret=account.api_secret,
            subscription=summary,
        )

    @operation()
    def introspect(self, token: str) -> SessionUser:
        """
        Return the live account behind a session token.

        Raises:
            SessionInvalidError: for a bad signature, an expired token, a
                malformed payload or an account that no longer exists
        """
        claims = self.codec.verify(token)
        subject = claims.get("sub")
        account = self.session.get(TenantAccount, subject) if isinstance(subject, str) else None
        if account is None:
            raise SessionInvalidError()
        return self.describe(account)

    def logout(self, token: Optional[str]) -> None:
        """Record a logout when the token is still valid. Never fails."""
        if not token:
            return
        try:
            user = self.introspect(token)
        except SessionInvalidError:
            return
        if self.audit is not None:
            self.audit.record(AuditAction.LOGOUT, actor_id=user.id, details={"email": user.email})
