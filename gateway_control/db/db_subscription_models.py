"""Subscription model: one row per tenant account."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from ..enums import SubscriptionPlan, SubscriptionStatus
from .db_base import TimestampMixin, UUIDMixin, utc_now
from .db_config import Base


class Subscription(Base, UUIDMixin, TimestampMixin):
    """Plan, status and validity window of a tenant's entitlement."""

    __tablename__ = "subscriptions"

    tenant_id = Column(
        String(36),
        ForeignKey("tenant_accounts.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    status = Column(String(20), nullable=False, default=SubscriptionStatus.TRIAL.value, index=True)
    plan = Column(String(20), nullable=False, default=SubscriptionPlan.FREE.value)
    max_instances = Column(Integer, nullable=False, default=1)
    period_start = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    # NULL means open-ended
    period_end = Column(DateTime(timezone=True), nullable=True, index=True)

    account = relationship("TenantAccount", back_populates="subscription")

    def __repr__(self) -> str:
        return (
            f"<Subscription(tenant_id={self.tenant_id}, status={self.status}, "
            f"plan={self.plan}, period_end={self.period_end})>"
        )
