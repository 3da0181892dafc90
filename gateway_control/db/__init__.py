"""
SQLAlchemy models for the control plane.

This module provides a common entry point for all models.
"""

from .db_account_models import TenantAccount
from .db_audit_models import AuditLog
from .db_base import JSON, TimestampMixin, UUIDMixin, ensure_utc, utc_now
from .db_config import (
    Base,
    DatabaseConfig,
    DatabaseManager,
    close_db,
    get_db_manager,
    get_development_config,
    get_production_config,
    import_all_models,
    initialize_db,
    set_db_manager,
)
from .db_instance_models import GatewayInstance
from .db_subscription_models import Subscription

__all__ = [
    # Base definitions
    "Base",
    "JSON",
    "TimestampMixin",
    "UUIDMixin",
    "ensure_utc",
    "utc_now",
    # Configuration
    "DatabaseConfig",
    "DatabaseManager",
    "close_db",
    "get_db_manager",
    "get_development_config",
    "get_production_config",
    "import_all_models",
    "initialize_db",
    "set_db_manager",
    # Models
    "AuditLog",
    "GatewayInstance",
    "Subscription",
    "TenantAccount",
]
