"""Audit log model."""

from sqlalchemy import Column, DateTime, Index, String

from ..enums import AuditSeverity
from .db_base import JSON, UUIDMixin, utc_now
from .db_config import Base


class AuditLog(Base, UUIDMixin):
    """Append-only record of security-relevant actions."""

    __tablename__ = "audit_logs"

    action = Column(String(50), nullable=False, index=True)
    severity = Column(String(20), nullable=False, default=AuditSeverity.INFO.value)
    # Not foreign keys: records outlive the accounts they mention
    actor_id = Column(String(36), nullable=True, index=True)
    subject_id = Column(String(36), nullable=True)
    instance_id = Column(String(36), nullable=True, index=True)
    ip_address = Column(String(64), nullable=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)

    __table_args__ = (Index("ix_audit_actor_created", "actor_id", "created_at"),)
