# Task Relay: Guardian - Navigation Risk Monitor
#
# Watches navigation events on marketplace hosts and switches the relay
# off when a page suggests the session has been flagged.
#
# Detection rules (either is enough):
#   A. query parameter isvObfuscator == "1", on any host
#   B. host is exactly item.jd.com and the path is empty or "/"
#
# Effect: store.set({"enabled": False}). Repeated detections re-assert
# False. This module has no code path that writes True.

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import parse_qs, urlsplit

from ..core.audit_log import EventSeverity, EventType, log_relay_event
from ..core.config_store import ConfigStore
from ..core.settings import ENABLED_KEY, RelaySettings

logger = logging.getLogger(__name__)

_DEFAULT_SETTINGS = RelaySettings()


class NavigationPhase(str, Enum):
    """Navigation lifecycle hooks the monitor listens on."""
    BEFORE_NAVIGATE = "before_navigate"
    COMPLETED = "completed"


@dataclass(frozen=True)
class NavigationEvent:
    url: str
    phase: NavigationPhase = NavigationPhase.COMPLETED


def _hostname(url: str) -> Optional[str]:
    """Lower-cased host of an absolute URL, None if unparseable."""
    try:
        parts = urlsplit(url)
        host = parts.hostname
        # Accessing .port validates the authority (raises on junk ports)
        parts.port
    except ValueError:
        return None
    if not parts.scheme or not host:
        return None
    return host


def is_risk_url(url: Optional[str], settings: Optional[RelaySettings] = None) -> bool:
    """True when ``url`` matches a detection rule.

    Rule A only needs an absolute URL (any scheme, host optional); Rule B
    needs a host. Relative paths, empty strings and other unparseable
    input are not risky. Never raises.
    """
    if not url or not isinstance(url, str):
        return False

    settings = settings or _DEFAULT_SETTINGS
    try:
        parts = urlsplit(url)
        if parts.netloc:
            parts.port
    except ValueError:
        return False
    if not parts.scheme:
        return False

    # First occurrence wins, matching URLSearchParams.get()
    values = parse_qs(parts.query, keep_blank_values=True).get(settings.risk_param)
    if values and values[0] == settings.risk_value:
        return True

    host = _hostname(url)
    if host is not None and host == settings.risk_host.lower() and parts.path in ("", "/"):
        return True

    return False


class RiskMonitor:
    """Evaluates navigation URLs and performs the one-way disable.

    Args:
        settings: Supplies the marketplace filter and detection constants.
        store: Config store receiving ``enabled = False``.
    """

    def __init__(self, settings: RelaySettings, store: ConfigStore):
        self._settings = settings
        self._store = store
        self.detections = 0

    def matches_filter(self, url: str) -> bool:
        """Event filter: host contains the marketplace domain."""
        host = _hostname(url) if url else None
        return host is not None and self._settings.marketplace_domain.lower() in host

    def is_risk(self, url: str) -> bool:
        return is_risk_url(url, self._settings)

    async def on_navigation(self, event: NavigationEvent) -> bool:
        """Handle one navigation event.

        Returns:
            True if the relay was disabled by this event.
        """
        if not self.matches_filter(event.url):
            return False
        if not self.is_risk(event.url):
            return False

        self.detections += 1
        logger.warning(
            "Risk page detected on %s: %s, disabling relay",
            event.phase.value, event.url,
        )
        details = {"url": event.url, "phase": event.phase.value}
        self._audit(
            EventType.RISK_DETECTED,
            EventSeverity.INVESTIGATE,
            "Risk page detected",
            details,
        )
        await self._store.set({ENABLED_KEY: False})
        self._audit(
            EventType.RELAY_DISABLED,
            EventSeverity.ALERT,
            "Risk page detected, relay disabled",
            details,
        )
        return True

    async def on_before_navigate(self, url: str) -> bool:
        return await self.on_navigation(
            NavigationEvent(url=url, phase=NavigationPhase.BEFORE_NAVIGATE)
        )

    async def on_completed(self, url: str) -> bool:
        return await self.on_navigation(
            NavigationEvent(url=url, phase=NavigationPhase.COMPLETED)
        )

    def _audit(self, event_type, severity, message, details):
        # An audit failure must not undo or skip the disable
        try:
            log_relay_event(event_type, severity, message, details=dict(details))
        except Exception:
            logger.exception("Audit write failed for %s", event_type.value)
