"""
Audit log service.

Recording is best effort: `record` is called after the primary operation
has committed, and a failure to store or ship an audit entry is logged and
swallowed so it can never undo or fail the operation it describes.
"""

from datetime import datetime, time, timedelta
from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..config import FeatureFlags, QueueConfig
from ..constants import Limits
from ..context.operation_context import operation
from ..db.db_audit_models import AuditLog
from ..enums import AuditAction, AuditSeverity
from ..schemas.audit_schemas import AuditLogFilter, AuditLogRead, AuditStats
from ..utils.queue_utils import send_message_to_queue_direct
from .base_service import SessionManagedService


class AuditSink(Protocol):
    def record(
        self,
        action: AuditAction,
        severity: AuditSeverity = AuditSeverity.INFO,
        actor_id: Optional[str] = None,
        subject_id: Optional[str] = None,
        instance_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
    ) -> Optional[AuditLogRead]: ...


class AuditService(SessionManagedService):
    """Stores audit entries and optionally ships them to an Azure Storage Queue."""

    def __init__(
        self,
        session=None,
        features: Optional[FeatureFlags] = None,
        queue_config: Optional[QueueConfig] = None,
        logger=None,
        clock=None,
    ):
        super().__init__(session=session, logger=logger, clock=clock)
        self.features = features or FeatureFlags()
        self.queue_config = queue_config or QueueConfig()

    def record(
        self,
        action: AuditAction,
        severity: AuditSeverity = AuditSeverity.INFO,
        actor_id: Optional[str] = None,
        subject_id: Optional[str] = None,
        instance_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
    ) -> Optional[AuditLogRead]:
        """Write one audit entry. Returns None when it could not be stored."""
        entry = AuditLog(
            action=AuditAction(action).value,
            severity=AuditSeverity(severity).value,
            actor_id=actor_id,
            subject_id=subject_id,
            instance_id=instance_id,
            details=details,
            ip_address=ip_address,
            created_at=self.now(),
        )
        try:
            with self.transaction():
                self.session.add(entry)
        except SQLAlchemyError as e:
            self.logger.error(
                "Failed to write audit entry",
                extra={"action": AuditAction(action).value, "actor_id": actor_id, "error": str(e)},
            )
            return None

        result = AuditLogRead.model_validate(entry)
        self._ship(result)
        return result

    def _ship(self, entry: AuditLogRead) -> None:
        if not self.features.enable_audit_queue or not self.queue_config.connection_string:
            return
        try:
            send_message_to_queue_direct(
                self.queue_config.connection_string,
                self.queue_config.audit_queue_name,
                entry.model_dump(mode="json"),
            )
        except Exception as e:
            self.logger.warning(
                "Failed to ship audit entry to queue",
                extra={"audit_id": entry.id, "error_type": type(e).__name__, "error": str(e)},
            )

    @operation()
    def get_logs(self, filters: Optional[AuditLogFilter] = None) -> List[AuditLogRead]:
        filters = filters or AuditLogFilter()
        query = self.session.query(AuditLog)
        if filters.actor_id:
            query = query.filter(AuditLog.actor_id == filters.actor_id)
        if filters.instance_id:
            query = query.filter(AuditLog.instance_id == filters.instance_id)
        if filters.action:
            query = query.filter(AuditLog.action == filters.action.value)
        if filters.severity:
            query = query.filter(AuditLog.severity == filters.severity.value)
        if filters.since:
            query = query.filter(AuditLog.created_at >= filters.since)
        if filters.until:
            query = query.filter(AuditLog.created_at <= filters.until)

        rows = (
            query.order_by(AuditLog.created_at.desc())
            .offset(filters.offset)
            .limit(filters.limit)
            .all()
        )
        return [AuditLogRead.model_validate(row) for row in rows]

    @operation()
    def get_stats(self) -> AuditStats:
        start_of_day = datetime.combine(self.now().date(), time.min, tzinfo=self.now().tzinfo)
        query = self.session.query(AuditLog)
        by_action = (
            self.session.query(AuditLog.action, func.count(AuditLog.id))
            .group_by(AuditLog.action)
            .order_by(func.count(AuditLog.id).desc())
            .limit(10)
            .all()
        )
        return AuditStats(
            total=query.count(),
            today=query.filter(AuditLog.created_at >= start_of_day).count(),
            errors=query.filter(
                AuditLog.severity.in_([AuditSeverity.ERROR.value, AuditSeverity.CRITICAL.value])
            ).count(),
            warnings=query.filter(AuditLog.severity == AuditSeverity.WARNING.value).count(),
            by_action={action: count for action, count in by_action},
        )

    @operation()
    def delete_old_logs(self, days_old: int = Limits.AUDIT_RETENTION_DAYS) -> int:
        """Delete entries older than `days_old` days and return how many went."""
        cutoff = self.now() - timedelta(days=days_old)
        try:
            with self.transaction():
                deleted = (
                    self.session.query(AuditLog)
                    .filter(AuditLog.created_at < cutoff)
                    .delete(synchronize_session=False)
                )
        except Exception as e:
            self._handle_service_exception("delete_old_logs", e)

        self.logger.info("Deleted old audit entries", extra={"deleted": deleted, "days_old": days_old})
        return deleted

    # Helpers for the actions the control plane records

    def log_login(self, tenant_id: str, email: str, ip_address: Optional[str] = None):
        return self.record(
            AuditAction.LOGIN,
            actor_id=tenant_id,
            details={"email": email},
            ip_address=ip_address,
        )

    def log_register(self, tenant_id: str, email: str):
        return self.record(AuditAction.REGISTER, actor_id=tenant_id, details={"email": email})

    def log_instance_create(self, actor_id: Optional[str], instance_id: str, instance_name: str):
        return self.record(
            AuditAction.INSTANCE_CREATE,
            actor_id=actor_id,
            instance_id=instance_id,
            details={"instance_name": instance_name},
        )

    def log_instance_delete(self, actor_id: Optional[str], instance_id: str, instance_name: str):
        return self.record(
            AuditAction.INSTANCE_DELETE,
            severity=AuditSeverity.WARNING,
            actor_id=actor_id,
            instance_id=instance_id,
            details={"instance_name": instance_name},
        )

    def log_role_update(
        self, actor_id: Optional[str], target_id: str, old_role: str, new_role: str
    ):
        return self.record(
            AuditAction.ROLE_UPDATE,
            severity=AuditSeverity.WARNING,
            actor_id=actor_id,
            subject_id=target_id,
            details={"old_role": old_role, "new_role": new_role},
        )

    def log_account_delete(self, actor_id: Optional[str], target_id: str, email: str):
        return self.record(
            AuditAction.ACCOUNT_DELETE,
            severity=AuditSeverity.CRITICAL,
            actor_id=actor_id,
            subject_id=target_id,
            details={"email": email},
        )

    def log_api_secret_regenerate(self, tenant_id: str):
        return self.record(
            AuditAction.API_SECRET_REGENERATE, severity=AuditSeverity.WARNING, actor_id=tenant_id
        )

    def log_subscription_change(
        self, action: AuditAction, actor_id: Optional[str], tenant_id: str, details: Dict[str, Any]
    ):
        return self.record(action, actor_id=actor_id, subject_id=tenant_id, details=details)

    def log_error(self, actor_id: Optional[str], message: str, details: Optional[dict] = None):
        return self.record(
            AuditAction.ERROR,
            severity=AuditSeverity.ERROR,
            actor_id=actor_id,
            details={"message": message, **(details or {})},
        )
