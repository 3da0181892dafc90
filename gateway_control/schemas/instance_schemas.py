"""
Pydantic schemas for gateway instances and platform statistics.
"""

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..enums import InstanceConnectionStatus, SubscriptionPlan


class InstanceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100, pattern=r"^[A-Za-z0-9_.-]+$")
    # Generated when omitted
    token: Optional[str] = Field(default=None, min_length=8, max_length=100)
    tenant_id: Optional[str] = None

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


class InstanceRead(BaseModel):
    id: str
    name: str
    tenant_id: Optional[str] = None
    connection_status: InstanceConnectionStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InstanceCreated(InstanceRead):
    """Returned once, at creation; the only response that carries the token."""

    token: str


class PlatformStats(BaseModel):
    total_accounts: int
    total_instances: int
    open_instances: int
    subscriptions_by_plan: Dict[SubscriptionPlan, int] = Field(default_factory=dict)
