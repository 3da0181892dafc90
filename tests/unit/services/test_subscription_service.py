"""
Tests for the subscription lifecycle manager.

Covers the transition table, trial activation, login-time expiry,
renewal, cancellation, the expiry sweep and quota enforcement.
"""

from datetime import timedelta

import pytest

from gateway_control.db import Subscription, ensure_utc
from gateway_control.enums import (
    SubscriptionDuration,
    SubscriptionPlan,
    SubscriptionStatus,
)
from gateway_control.exceptions import (
    ExpiredResourceError,
    InvalidStateTransitionError,
    NotFoundError,
    QuotaExceededError,
)
from gateway_control.services.subscription_service import (
    ALLOWED_TRANSITIONS,
    SubscriptionService,
    days_until,
)
from tests.fixtures.factories import (
    ActiveSubscriptionFactory,
    GatewayInstanceFactory,
    SubscriptionFactory,
    TenantAccountFactory,
)

TRIAL = SubscriptionStatus.TRIAL
ACTIVE = SubscriptionStatus.ACTIVE
EXPIRED = SubscriptionStatus.EXPIRED
CANCELLED = SubscriptionStatus.CANCELLED


def reload(db_session, subscription_id) -> Subscription:
    db_session.expire_all()
    return db_session.get(Subscription, subscription_id)


class TestTransitionTable:
    """Test the allowed status moves."""

    def test_table_is_total_over_statuses(self):
        assert set(ALLOWED_TRANSITIONS) == set(SubscriptionStatus)

    @pytest.mark.parametrize(
        "current,target",
        [
            (TRIAL, ACTIVE),
            (TRIAL, EXPIRED),
            (TRIAL, CANCELLED),
            (ACTIVE, EXPIRED),
            (ACTIVE, CANCELLED),
            (EXPIRED, ACTIVE),
            (CANCELLED, ACTIVE),
            (CANCELLED, EXPIRED),
        ],
    )
    def test_allowed(self, current, target):
        assert SubscriptionService.can_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (ACTIVE, TRIAL),
            (EXPIRED, TRIAL),
            (EXPIRED, CANCELLED),
            (CANCELLED, TRIAL),
            (CANCELLED, CANCELLED),
        ],
    )
    def test_forbidden(self, current, target):
        assert not SubscriptionService.can_transition(current, target)


class TestTrial:
    """Test trial activation."""

    def test_activate_trial_creates_free_trial(self, db_session, subscription_service, clock):
        account = TenantAccountFactory()

        result = subscription_service.activate_trial(account.id)

        assert result.status == TRIAL
        assert result.plan == SubscriptionPlan.FREE
        assert result.max_instances == 1
        assert result.period_start == clock()
        assert result.period_end == clock() + timedelta(days=4)

    def test_trial_length_is_configurable(self, db_session, notifier, clock):
        service = SubscriptionService(
            session=db_session, notifier=notifier, trial_days=10, clock=clock
        )
        account = TenantAccountFactory()

        result = service.activate_trial(account.id)

        assert result.period_end == clock() + timedelta(days=10)

    def test_existing_trial_is_refreshed(self, db_session, subscription_service, clock):
        subscription = SubscriptionFactory(
            period_start=clock() - timedelta(days=3), period_end=clock() + timedelta(days=1)
        )

        result = subscription_service.activate_trial(subscription.tenant_id)

        assert result.id == subscription.id
        assert result.period_end == clock() + timedelta(days=4)

    def test_paid_subscription_is_not_downgraded(self, db_session, subscription_service, clock):
        subscription = ActiveSubscriptionFactory(
            plan=SubscriptionPlan.PRO.value,
            period_start=clock(),
            period_end=clock() + timedelta(days=365),
        )

        result = subscription_service.activate_trial(subscription.tenant_id)

        assert result.status == ACTIVE
        assert result.plan == SubscriptionPlan.PRO
        assert result.max_instances == 20


class TestLoginExpiry:
    """Test enforce_login_expiry."""

    def test_no_subscription_passes(self, db_session, subscription_service):
        account = TenantAccountFactory()

        subscription_service.enforce_login_expiry(account.id)

    def test_open_ended_subscription_passes(self, db_session, subscription_service):
        subscription = ActiveSubscriptionFactory(period_end=None)

        subscription_service.enforce_login_expiry(subscription.tenant_id)

    def test_running_subscription_passes(self, db_session, subscription_service, clock):
        subscription = SubscriptionFactory(period_start=clock(), period_end=clock())

        subscription_service.enforce_login_expiry(subscription.tenant_id)

        assert reload(db_session, subscription.id).status == TRIAL.value

    def test_trial_elapsed_by_one_second_is_expired_then_denied(
        self, db_session, subscription_service, clock
    ):
        subscription = SubscriptionFactory(
            period_start=clock() - timedelta(days=4),
            period_end=clock() - timedelta(seconds=1),
        )

        with pytest.raises(ExpiredResourceError) as exc_info:
            subscription_service.enforce_login_expiry(subscription.tenant_id)

        assert exc_info.value.status_code == 403
        assert reload(db_session, subscription.id).status == EXPIRED.value

    def test_elapsed_cancelled_subscription_becomes_expired(
        self, db_session, subscription_service, clock
    ):
        subscription = SubscriptionFactory(
            status=CANCELLED.value,
            period_start=clock() - timedelta(days=30),
            period_end=clock() - timedelta(days=1),
        )

        with pytest.raises(ExpiredResourceError):
            subscription_service.enforce_login_expiry(subscription.tenant_id)

        assert reload(db_session, subscription.id).status == EXPIRED.value

    def test_already_expired_is_denied(self, db_session, subscription_service, clock):
        subscription = SubscriptionFactory(
            status=EXPIRED.value,
            period_start=clock() - timedelta(days=30),
            period_end=clock() - timedelta(days=1),
        )

        with pytest.raises(ExpiredResourceError):
            subscription_service.enforce_login_expiry(subscription.tenant_id)


class TestRenew:
    """Test administrator renewals."""

    def test_renewing_cancelled_subscription(self, db_session, subscription_service, clock):
        subscription = SubscriptionFactory(
            status=CANCELLED.value,
            period_start=clock() - timedelta(days=10),
            period_end=clock() + timedelta(days=5),
        )

        result = subscription_service.renew(
            subscription.tenant_id, SubscriptionDuration.ONE_YEAR, SubscriptionPlan.PRO
        )

        assert result.status == ACTIVE
        assert result.plan == SubscriptionPlan.PRO
        assert result.max_instances == 20
        assert result.period_start == clock()
        assert result.period_end == clock() + timedelta(days=365)

    @pytest.mark.parametrize(
        "duration,days",
        [
            (SubscriptionDuration.ONE_MONTH, 30),
            (SubscriptionDuration.TWO_MONTHS, 60),
            (SubscriptionDuration.ONE_YEAR, 365),
            (SubscriptionDuration.THREE_YEARS, 1095),
        ],
    )
    def test_duration_table(self, db_session, subscription_service, clock, duration, days):
        subscription = SubscriptionFactory(status=EXPIRED.value)

        result = subscription_service.renew(subscription.tenant_id, duration)

        assert result.period_end - result.period_start == timedelta(days=days)
        assert result.plan == SubscriptionPlan.BASIC
        assert result.max_instances == 5

    def test_renewal_restarts_window_at_now(self, db_session, subscription_service, clock):
        subscription = ActiveSubscriptionFactory(
            period_start=clock() - timedelta(days=1), period_end=clock() + timedelta(days=29)
        )

        result = subscription_service.renew(
            subscription.tenant_id, SubscriptionDuration.ONE_MONTH
        )

        assert result.period_end == clock() + timedelta(days=30)

    def test_renew_creates_missing_subscription(self, db_session, subscription_service, clock):
        account = TenantAccountFactory()

        result = subscription_service.renew(
            account.id, SubscriptionDuration.ONE_MONTH, SubscriptionPlan.ENTERPRISE
        )

        assert result.tenant_id == account.id
        assert result.status == ACTIVE
        assert result.max_instances == 100

    def test_renew_unknown_account(self, db_session, subscription_service):
        with pytest.raises(NotFoundError):
            subscription_service.renew("missing-tenant", SubscriptionDuration.ONE_MONTH)

        assert db_session.query(Subscription).count() == 0

    def test_renew_rejects_unknown_duration(self, db_session, subscription_service):
        account = TenantAccountFactory()

        with pytest.raises(ValueError):
            subscription_service.renew(account.id, "6_months")


class TestCancel:
    """Test cancellation."""

    @pytest.mark.parametrize("status", [TRIAL, ACTIVE])
    def test_live_subscription_is_cancelled(self, db_session, subscription_service, status):
        subscription = SubscriptionFactory(status=status.value)
        original_end = ensure_utc(subscription.period_end)

        result = subscription_service.cancel(subscription.tenant_id)

        assert result.status == CANCELLED
        assert result.period_end == original_end

    @pytest.mark.parametrize("status", [EXPIRED, CANCELLED])
    def test_dead_subscription_cannot_be_cancelled(
        self, db_session, subscription_service, status
    ):
        subscription = SubscriptionFactory(status=status.value)

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            subscription_service.cancel(subscription.tenant_id)

        assert exc_info.value.status_code == 409
        assert reload(db_session, subscription.id).status == status.value

    def test_cancel_without_subscription(self, db_session, subscription_service):
        account = TenantAccountFactory()

        with pytest.raises(NotFoundError):
            subscription_service.cancel(account.id)


class TestExpirySweep:
    """Test expire_elapsed."""

    def test_sweep_expires_only_elapsed_live_subscriptions(
        self, db_session, subscription_service, clock
    ):
        past = clock() - timedelta(hours=1)
        elapsed_trial = SubscriptionFactory(period_start=past, period_end=past)
        elapsed_active = ActiveSubscriptionFactory(period_start=past, period_end=past)
        running = ActiveSubscriptionFactory(
            period_start=past, period_end=clock() + timedelta(days=1)
        )
        open_ended = ActiveSubscriptionFactory(period_start=past, period_end=None)
        cancelled = SubscriptionFactory(
            status=CANCELLED.value, period_start=past, period_end=past
        )

        assert subscription_service.expire_elapsed() == 2

        assert reload(db_session, elapsed_trial.id).status == EXPIRED.value
        assert reload(db_session, elapsed_active.id).status == EXPIRED.value
        assert reload(db_session, running.id).status == ACTIVE.value
        assert reload(db_session, open_ended.id).status == ACTIVE.value
        assert reload(db_session, cancelled.id).status == CANCELLED.value

    def test_second_sweep_is_a_no_op(self, db_session, subscription_service, clock):
        past = clock() - timedelta(minutes=5)
        SubscriptionFactory(period_start=past, period_end=past)

        assert subscription_service.expire_elapsed() == 1
        assert subscription_service.expire_elapsed() == 0


class TestQuota:
    """Test quota reporting and enforcement."""

    def test_quota_counts_owned_instances(self, db_session, subscription_service):
        subscription = ActiveSubscriptionFactory()
        GatewayInstanceFactory.create_batch(2, owner=subscription.account)
        GatewayInstanceFactory()

        quota = subscription_service.get_quota(subscription.tenant_id)

        assert quota.current == 2
        assert quota.maximum == 5
        assert quota.can_create

    def test_no_subscription_means_no_quota(self, db_session, subscription_service):
        account = TenantAccountFactory()

        quota = subscription_service.get_quota(account.id)

        assert quota.maximum == 0
        assert quota.status is None
        with pytest.raises(QuotaExceededError):
            subscription_service.assert_can_create_instance(account.id)

    def test_at_limit_is_quota_exceeded(self, db_session, subscription_service):
        subscription = SubscriptionFactory()
        GatewayInstanceFactory(owner=subscription.account)

        with pytest.raises(QuotaExceededError) as exc_info:
            subscription_service.assert_can_create_instance(subscription.tenant_id)

        assert exc_info.value.status_code == 403

    def test_expired_status_blocks_creation(self, db_session, subscription_service):
        subscription = ActiveSubscriptionFactory(status=EXPIRED.value)

        with pytest.raises(ExpiredResourceError):
            subscription_service.assert_can_create_instance(subscription.tenant_id)

    def test_elapsed_window_blocks_creation(self, db_session, subscription_service, clock):
        subscription = ActiveSubscriptionFactory(
            period_start=clock() - timedelta(days=31), period_end=clock() - timedelta(days=1)
        )

        with pytest.raises(ExpiredResourceError):
            subscription_service.assert_can_create_instance(subscription.tenant_id)

    def test_room_left_passes(self, db_session, subscription_service, clock):
        subscription = ActiveSubscriptionFactory(
            period_start=clock(), period_end=clock() + timedelta(days=30)
        )

        quota = subscription_service.assert_can_create_instance(subscription.tenant_id)

        assert quota.current == 0


class TestQueries:
    """Test listings, statistics and expiry warnings."""

    def test_get_expiring_returns_soonest_first(self, db_session, subscription_service, clock):
        later = ActiveSubscriptionFactory(
            period_start=clock(), period_end=clock() + timedelta(days=6)
        )
        sooner = SubscriptionFactory(period_start=clock(), period_end=clock() + timedelta(days=2))
        ActiveSubscriptionFactory(period_start=clock(), period_end=clock() + timedelta(days=20))
        SubscriptionFactory(
            status=CANCELLED.value, period_start=clock(), period_end=clock() + timedelta(days=1)
        )

        expiring = subscription_service.get_expiring(days=7)

        assert [s.id for s in expiring] == [sooner.id, later.id]

    def test_stats(self, db_session, subscription_service):
        SubscriptionFactory()
        ActiveSubscriptionFactory()
        ActiveSubscriptionFactory(plan=SubscriptionPlan.PRO.value)
        SubscriptionFactory(status=EXPIRED.value)

        stats = subscription_service.get_stats()

        assert stats.total == 4
        assert stats.trial == 1
        assert stats.active == 2
        assert stats.expired == 1
        assert stats.cancelled == 0
        assert stats.by_plan == {
            SubscriptionPlan.FREE: 2,
            SubscriptionPlan.BASIC: 1,
            SubscriptionPlan.PRO: 1,
        }

    def test_get_subscription(self, db_session, subscription_service):
        subscription = SubscriptionFactory()
        account = TenantAccountFactory()

        assert subscription_service.get_subscription(subscription.tenant_id).id == subscription.id
        assert subscription_service.get_subscription(account.id) is None
        assert len(subscription_service.list_subscriptions()) == 1

    def test_send_expiry_warnings(self, db_session, subscription_service, notifier, clock):
        subscription = ActiveSubscriptionFactory(
            period_start=clock(), period_end=clock() + timedelta(days=2, hours=3)
        )
        ActiveSubscriptionFactory(period_start=clock(), period_end=clock() + timedelta(days=30))

        sent = subscription_service.send_expiry_warnings(days=7)

        assert sent == 1
        notifier.send_expiry_warning.assert_called_once_with(
            subscription.account.email, subscription.account.handle, 3
        )

    def test_failed_warning_is_not_counted(self, db_session, subscription_service, notifier, clock):
        ActiveSubscriptionFactory(period_start=clock(), period_end=clock() + timedelta(days=1))
        notifier.send_expiry_warning.return_value = False

        assert subscription_service.send_expiry_warnings() == 0

    def test_days_until_rounds_up(self, clock):
        assert days_until(clock() + timedelta(hours=1), clock()) == 1
        assert days_until(clock() + timedelta(days=2), clock()) == 2
