"""
Subscription lifecycle manager.

Owns every write to Subscription.status. The status moves along

    TRIAL -> ACTIVE -> EXPIRED
    TRIAL | ACTIVE -> CANCELLED
    EXPIRED | CANCELLED -> ACTIVE   (renewal)

and the instance quota is always recomputed from PLAN_INSTANCE_QUOTAS on a
plan-affecting write, never taken from the caller.
"""

import math
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, List, Optional

from sqlalchemy import func

from ..context.operation_context import operation
from ..db.db_account_models import TenantAccount
from ..db.db_base import ensure_utc
from ..db.db_instance_models import GatewayInstance
from ..db.db_subscription_models import Subscription
from ..enums import (
    SubscriptionDuration,
    SubscriptionPlan,
    SubscriptionStatus,
    max_instances_for,
)
from ..exceptions import (
    ExpiredResourceError,
    InvalidStateTransitionError,
    QuotaExceededError,
    not_found,
)
from ..schemas.subscription_schemas import QuotaStatus, SubscriptionRead, SubscriptionStats
from .base_service import SessionManagedService
from .notification_service import NotificationSink

ALLOWED_TRANSITIONS: Dict[SubscriptionStatus, FrozenSet[SubscriptionStatus]] = {
    SubscriptionStatus.TRIAL: frozenset(
        {
            SubscriptionStatus.TRIAL,
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.EXPIRED,
            SubscriptionStatus.CANCELLED,
        }
    ),
    SubscriptionStatus.ACTIVE: frozenset(
        {SubscriptionStatus.ACTIVE, SubscriptionStatus.EXPIRED, SubscriptionStatus.CANCELLED}
    ),
    SubscriptionStatus.EXPIRED: frozenset({SubscriptionStatus.ACTIVE}),
    # A cancelled subscription whose window elapses is marked expired when first observed
    SubscriptionStatus.CANCELLED: frozenset(
        {SubscriptionStatus.ACTIVE, SubscriptionStatus.EXPIRED}
    ),
}

LIVE_STATUSES = (SubscriptionStatus.TRIAL.value, SubscriptionStatus.ACTIVE.value)


def days_until(moment: datetime, now: datetime) -> int:
    """Whole days from now until moment, rounded up."""
    return math.ceil((ensure_utc(moment) - now) / timedelta(days=1))


class SubscriptionService(SessionManagedService):
    """Manage subscription state, renewals and quotas."""

    def __init__(
        self,
        session=None,
        notifier: Optional[NotificationSink] = None,
        trial_days: int = 4,
        logger=None,
        clock=None,
    ):
        super().__init__(session=session, logger=logger, clock=clock)
        self.notifier = notifier
        self.trial_days = trial_days

    # State machine

    @staticmethod
    def can_transition(current: SubscriptionStatus, target: SubscriptionStatus) -> bool:
        return SubscriptionStatus(target) in ALLOWED_TRANSITIONS[SubscriptionStatus(current)]

    def _transition(self, subscription: Subscription, target: SubscriptionStatus) -> None:
        current = SubscriptionStatus(subscription.status)
        if not self.can_transition(current, target):
            raise InvalidStateTransitionError(
                f"Cannot move subscription from {current.value} to {target.value}",
                from_status=current.value,
                to_status=target.value,
                tenant_id=subscription.tenant_id,
            )
        subscription.status = target.value

    def _get(self, tenant_id: str) -> Optional[Subscription]:
        return self.session.query(Subscription).filter(Subscription.tenant_id == tenant_id).first()

    # Lifecycle operations

    def upsert_trial(self, tenant_id: str) -> Subscription:
        """
        Put a tenant on the post-verification trial, inside the caller's transaction.

        Creates the row when absent and refreshes an existing TRIAL row. A row
        in any other status is left as it is, so re-verification never
        downgrades a paid or lapsed subscription.
        """
        now = self.now()
        subscription = self._get(tenant_id)
        if subscription is None:
            subscription = Subscription(tenant_id=tenant_id)
            self.session.add(subscription)
            subscription.status = SubscriptionStatus.TRIAL.value
        elif subscription.status != SubscriptionStatus.TRIAL.value:
            self.logger.info(
                "Subscription already past trial; leaving it unchanged",
                extra={"tenant_id": tenant_id, "status": subscription.status},
            )
            return subscription

        subscription.plan = SubscriptionPlan.FREE.value
        subscription.max_instances = max_instances_for(SubscriptionPlan.FREE)
        subscription.period_start = now
        subscription.period_end = now + timedelta(days=self.trial_days)
        self.session.flush()
        return subscription

    @operation()
    def activate_trial(self, tenant_id: str) -> SubscriptionRead:
        """Start (or refresh) the trial for a tenant in its own transaction."""
        with self.transaction():
            subscription = self.upsert_trial(tenant_id)
        return SubscriptionRead.model_validate(subscription)

    def enforce_login_expiry(self, tenant_id: str) -> None:
        """
        Deny a login whose subscription window has elapsed.

        The EXPIRED status is committed before the error is raised, so the
        expiry is recorded on first observation. Tenants without a
        subscription row pass.

        Raises:
            ExpiredResourceError: if period_end is in the past
        """
        subscription = self._get(tenant_id)
        if subscription is None or subscription.period_end is None:
            return

        period_end = ensure_utc(subscription.period_end)
        if period_end >= self.now():
            return

        if subscription.status != SubscriptionStatus.EXPIRED.value:
            previous = subscription.status
            with self.transaction():
                self._transition(subscription, SubscriptionStatus.EXPIRED)
            self.logger.info(
                "Subscription expired at login",
                extra={"tenant_id": tenant_id, "from_status": previous},
            )

        raise ExpiredResourceError(
            "Your subscription has expired. Please contact an administrator to renew it.",
            tenant_id=tenant_id,
            expired_at=period_end.isoformat(),
        )

    @operation()
    def renew(
        self,
        tenant_id: str,
        duration: SubscriptionDuration,
        plan: SubscriptionPlan = SubscriptionPlan.BASIC,
    ) -> SubscriptionRead:
        """
        Activate a subscription for `duration` from now on `plan`.

        The window always restarts at now; time left on a still-valid
        period is not carried over.

        Raises:
            NotFoundError: if the tenant account does not exist
        """
        duration = SubscriptionDuration(duration)
        plan = SubscriptionPlan(plan)
        now = self.now()

        try:
            with self.transaction():
                if self.session.get(TenantAccount, tenant_id) is None:
                    raise not_found("TenantAccount", tenant_id=tenant_id)

                subscription = self._get(tenant_id)
                if subscription is None:
                    subscription = Subscription(
                        tenant_id=tenant_id, status=SubscriptionStatus.ACTIVE.value
                    )
                    self.session.add(subscription)
                else:
                    self._transition(subscription, SubscriptionStatus.ACTIVE)

                subscription.plan = plan.value
                subscription.max_instances = max_instances_for(plan)
                subscription.period_start = now
                subscription.period_end = now + timedelta(days=duration.days)
        except Exception as e:
            self._handle_service_exception("renew", e, tenant_id)

        self.logger.info(
            "Subscription renewed",
            extra={
                "tenant_id": tenant_id,
                "plan": plan.value,
                "duration": duration.value,
                "period_end": subscription.period_end,
            },
        )
        return SubscriptionRead.model_validate(subscription)

    @operation()
    def cancel(self, tenant_id: str) -> SubscriptionRead:
        """
        Cancel a live subscription; its window and quota are kept for history.

        Raises:
            NotFoundError: if the tenant has no subscription
            InvalidStateTransitionError: if it is already EXPIRED or CANCELLED
        """
        try:
            with self.transaction():
                subscription = self._get(tenant_id)
                if subscription is None:
                    raise not_found("Subscription", tenant_id=tenant_id)
                if subscription.status not in LIVE_STATUSES:
                    raise InvalidStateTransitionError(
                        f"Cannot cancel a subscription in status {subscription.status}",
                        from_status=subscription.status,
                        to_status=SubscriptionStatus.CANCELLED.value,
                        tenant_id=tenant_id,
                    )
                self._transition(subscription, SubscriptionStatus.CANCELLED)
        except Exception as e:
            self._handle_service_exception("cancel", e, tenant_id)

        self.logger.info("Subscription cancelled", extra={"tenant_id": tenant_id})
        return SubscriptionRead.model_validate(subscription)

    @operation()
    def expire_elapsed(self) -> int:
        """Mark every live subscription whose window has elapsed as EXPIRED; return the count."""
        now = self.now()
        try:
            with self.transaction():
                count = (
                    self.session.query(Subscription)
                    .filter(
                        Subscription.status.in_(LIVE_STATUSES),
                        Subscription.period_end.isnot(None),
                        Subscription.period_end < now,
                    )
                    .update(
                        {Subscription.status: SubscriptionStatus.EXPIRED.value},
                        synchronize_session=False,
                    )
                )
        except Exception as e:
            self._handle_service_exception("expire_elapsed", e)

        self.logger.info("Expired elapsed subscriptions", extra={"expired_count": count})
        return count

    # Quota

    @operation()
    def get_quota(self, tenant_id: str) -> QuotaStatus:
        """Instance usage of a tenant against its plan quota (0 without a subscription)."""
        subscription = self._get(tenant_id)
        current = (
            self.session.query(func.count(GatewayInstance.id))
            .filter(GatewayInstance.tenant_id == tenant_id)
            .scalar()
        )
        if subscription is None:
            return QuotaStatus(current=current, maximum=0, status=None)
        return QuotaStatus(
            current=current,
            maximum=subscription.max_instances,
            status=SubscriptionStatus(subscription.status),
        )

    def assert_can_create_instance(self, tenant_id: str) -> QuotaStatus:
        """
        Raise unless the tenant may add one more instance.

        Raises:
            ExpiredResourceError: the subscription is not live or its window elapsed
            QuotaExceededError: the tenant is at or above its quota
        """
        quota = self.get_quota(tenant_id)
        subscription = self._get(tenant_id)
        if subscription is not None:
            period_end = ensure_utc(subscription.period_end)
            elapsed = period_end is not None and period_end < self.now()
            if subscription.status not in LIVE_STATUSES or elapsed:
                raise ExpiredResourceError(
                    "Your subscription is not active", tenant_id=tenant_id, status=subscription.status
                )
        if not quota.can_create:
            raise QuotaExceededError(
                f"Instance limit reached ({quota.current}/{quota.maximum})",
                tenant_id=tenant_id,
                current=quota.current,
                maximum=quota.maximum,
            )
        return quota

    # Queries

    def get_subscription(self, tenant_id: str) -> Optional[SubscriptionRead]:
        subscription = self._get(tenant_id)
        return SubscriptionRead.model_validate(subscription) if subscription else None

    @operation()
    def list_subscriptions(self) -> List[SubscriptionRead]:
        rows = self.session.query(Subscription).order_by(Subscription.created_at.desc()).all()
        return [SubscriptionRead.model_validate(row) for row in rows]

    def _expiring_query(self, days: int):
        now = self.now()
        return (
            self.session.query(Subscription)
            .filter(
                Subscription.status.in_(LIVE_STATUSES),
                Subscription.period_end >= now,
                Subscription.period_end <= now + timedelta(days=days),
            )
            .order_by(Subscription.period_end.asc())
        )

    @operation()
    def get_expiring(self, days: int = 7) -> List[SubscriptionRead]:
        """Live subscriptions ending within `days` days, soonest first."""
        return [SubscriptionRead.model_validate(row) for row in self._expiring_query(days).all()]

    @operation()
    def get_stats(self) -> SubscriptionStats:
        by_status = dict(
            self.session.query(Subscription.status, func.count(Subscription.id))
            .group_by(Subscription.status)
            .all()
        )
        by_plan = (
            self.session.query(Subscription.plan, func.count(Subscription.id))
            .group_by(Subscription.plan)
            .all()
        )
        return SubscriptionStats(
            total=sum(by_status.values()),
            trial=by_status.get(SubscriptionStatus.TRIAL.value, 0),
            active=by_status.get(SubscriptionStatus.ACTIVE.value, 0),
            expired=by_status.get(SubscriptionStatus.EXPIRED.value, 0),
            cancelled=by_status.get(SubscriptionStatus.CANCELLED.value, 0),
            by_plan={SubscriptionPlan(plan): count for plan, count in by_plan},
        )

    @operation()
    def send_expiry_warnings(self, days: int = 7) -> int:
        """Email every tenant whose live subscription ends within `days` days."""
        if self.notifier is None:
            self.logger.warning("No notification sink configured; skipping expiry warnings")
            return 0

        now = self.now()
        sent = 0
        for subscription in self._expiring_query(days).all():
            account = subscription.account
            days_left = max(1, days_until(subscription.period_end, now))
            if self.notifier.send_expiry_warning(account.email, account.handle, days_left):
                sent += 1
        self.logger.info("Sent expiry warnings", extra={"sent": sent, "window_days": days})
        return sent
