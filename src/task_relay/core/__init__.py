# Task Relay: Core Module - Shared Utilities
#
# Core module provides functionality shared by the relay components:
# - Immutable settings
# - Async config store
# - Audit logging

from .audit_log import (
    AuditLogger,
    EventSeverity,
    EventType,
    get_audit_logger,
    log_relay_event,
)
from .config_store import (
    MISSING,
    ConfigSnapshot,
    ConfigStore,
    MemoryConfigStore,
    SqliteConfigStore,
)
from .settings import RelaySettings

__all__ = [
    # Settings
    "RelaySettings",
    # Config store
    "MISSING",
    "ConfigSnapshot",
    "ConfigStore",
    "MemoryConfigStore",
    "SqliteConfigStore",
    # Audit Logging
    "AuditLogger",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
    "log_relay_event",
]
