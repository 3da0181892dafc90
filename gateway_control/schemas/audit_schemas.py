"""
Pydantic schemas for audit log queries.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..constants import Limits
from ..enums import AuditAction, AuditSeverity


class AuditLogRead(BaseModel):
    id: str
    action: AuditAction
    severity: AuditSeverity
    actor_id: Optional[str] = None
    subject_id: Optional[str] = None
    instance_id: Optional[str] = None
    ip_address: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuditLogFilter(BaseModel):
    actor_id: Optional[str] = None
    instance_id: Optional[str] = None
    action: Optional[AuditAction] = None
    severity: Optional[AuditSeverity] = None
    since: Optional[datetime] = None
    until: Optional[datetime] = None
    limit: int = Field(default=Limits.DEFAULT_AUDIT_PAGE_SIZE, ge=1, le=1000)
    offset: int = Field(default=0, ge=0)


class AuditStats(BaseModel):
    total: int = 0
    today: int = 0
    errors: int = 0
    warnings: int = 0
    # Ten most frequent actions
    by_action: Dict[str, int] = Field(default_factory=dict)
