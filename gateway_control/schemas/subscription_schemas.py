"""
Pydantic schemas for subscriptions and quotas.
"""

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..db.db_base import ensure_utc
from ..enums import SubscriptionDuration, SubscriptionPlan, SubscriptionStatus


class SubscriptionRead(BaseModel):
    id: str
    tenant_id: str
    status: SubscriptionStatus
    plan: SubscriptionPlan
    max_instances: int
    period_start: datetime
    period_end: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("period_start", "period_end", "created_at", "updated_at")
    def attach_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)


class RenewRequest(BaseModel):
    """Administrator renewal payload. Unknown durations or plans are rejected."""

    duration: SubscriptionDuration
    plan: SubscriptionPlan = SubscriptionPlan.BASIC

    model_config = ConfigDict(extra="ignore")


class SubscriptionStats(BaseModel):
    total: int = 0
    trial: int = 0
    active: int = 0
    expired: int = 0
    cancelled: int = 0
    by_plan: Dict[SubscriptionPlan, int] = Field(default_factory=dict)


class QuotaStatus(BaseModel):
    """Instance usage against the subscription quota."""

    current: int
    maximum: int
    status: Optional[SubscriptionStatus] = None

    @property
    def can_create(self) -> bool:
        if self.status not in (SubscriptionStatus.TRIAL, SubscriptionStatus.ACTIVE):
            return False
        return self.current < self.maximum
