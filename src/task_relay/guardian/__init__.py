# Task Relay: Guardian Module
#
# Self-protection: the navigation risk monitor that switches the relay
# off when a page indicates the session has been flagged.

from .risk_monitor import (
    NavigationEvent,
    NavigationPhase,
    RiskMonitor,
    is_risk_url,
)

__all__ = [
    "NavigationEvent",
    "NavigationPhase",
    "RiskMonitor",
    "is_risk_url",
]
