# Task Relay - Main Package
#
# Signed-request relay for the JD task API: HMAC request signing, the
# URL_CHECK / REQUEST_TASK message protocol and the navigation risk
# monitor that switches the relay off when a session looks flagged.

__version__ = "0.4.0"
__author__ = "Task Relay Team"
__description__ = "HMAC-signed task relay with navigation risk self-disable"

from .core import (
    EventSeverity,
    EventType,
    MemoryConfigStore,
    RelaySettings,
    SqliteConfigStore,
    get_audit_logger,
)
from .guardian import RiskMonitor, is_risk_url
from .relay import Message, MessageDispatcher, MessageType, Response

__all__ = [
    "__version__",
    "RelaySettings",
    "MemoryConfigStore",
    "SqliteConfigStore",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
    "RiskMonitor",
    "is_risk_url",
    "Message",
    "MessageDispatcher",
    "MessageType",
    "Response",
]
