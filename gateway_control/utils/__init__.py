"""Utility modules for the gateway control plane."""

from .crud_helpers import count_records, get_record, record_exists
from .json_utils import dumps, loads
from .logger import (
    AzureQueueHandler,
    ContextAwareLogger,
    TenantContextFilter,
    configure_logging,
    get_logger,
)
from .queue_utils import send_message_to_queue_direct

__all__ = [
    "count_records",
    "get_record",
    "record_exists",
    "dumps",
    "loads",
    "AzureQueueHandler",
    "ContextAwareLogger",
    "TenantContextFilter",
    "configure_logging",
    "get_logger",
    "send_message_to_queue_direct",
]
