# Task Relay: Core Settings
#
# Immutable settings value built once at startup and handed to every
# component explicitly. Nothing reads module-level globals at call time.
#
# Sources (later wins):
#   1. Built-in defaults below
#   2. .env file in the working directory (python-dotenv)
#   3. TASK_RELAY_* environment variables

import logging
import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# ── Wire / storage constants ─────────────────────────────────────────

USERNAME_KEY = "username"
TYPE_KEY = "type"
RENWU_KEY = "renwu"
NICK_KEY = "nick"
ENABLED_KEY = "enabled"

TASK_CONFIG_KEYS = (USERNAME_KEY, TYPE_KEY, RENWU_KEY, NICK_KEY)
CHECK_CONFIG_KEYS = (TYPE_KEY, RENWU_KEY, NICK_KEY)

# Task submission always advertises this type, whatever is stored.
TASK_TYPE_LITERAL = "jd"

# renwu value that is recognised but left untouched
RENWU_SENTINEL = "default_value"

# ── Defaults ─────────────────────────────────────────────────────────

DEFAULT_API_BASE_URL = "https://111.231.77.4:8888/cjtaskjd1"
DEFAULT_SIGNING_SECRET = "jd_plugin_secret_2024"
DEFAULT_REQUEST_TIMEOUT = 15.0
DEFAULT_MARKETPLACE_DOMAIN = "jd.com"
DEFAULT_RISK_HOST = "item.jd.com"
DEFAULT_RISK_PARAM = "isvObfuscator"
DEFAULT_RISK_VALUE = "1"
DEFAULT_STORE_PATH = "data/task_relay.db"

ENV_PREFIX = "TASK_RELAY_"


@dataclass(frozen=True)
class RelaySettings:
    """Process-wide relay configuration.

    Attributes:
        api_base_url: Task API endpoint (query string is appended).
        signing_secret: Shared HMAC secret for the ``ras`` parameter.
        request_timeout: Deadline in seconds for one outbound call.
        marketplace_domain: Navigation events outside hosts containing
            this fragment are ignored by the risk monitor.
        risk_host: Host whose bare root page counts as a risk page.
        risk_param / risk_value: Query parameter marking a risk page.
        verify_tls: Verify the task API certificate.
        store_path: SQLite file backing the config store.
    """

    api_base_url: str = DEFAULT_API_BASE_URL
    signing_secret: str = DEFAULT_SIGNING_SECRET
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    marketplace_domain: str = DEFAULT_MARKETPLACE_DOMAIN
    risk_host: str = DEFAULT_RISK_HOST
    risk_param: str = DEFAULT_RISK_PARAM
    risk_value: str = DEFAULT_RISK_VALUE
    verify_tls: bool = True
    store_path: str = DEFAULT_STORE_PATH

    def __post_init__(self):
        if not self.api_base_url:
            raise ValueError("api_base_url must not be empty")
        if not self.signing_secret:
            raise ValueError("signing_secret must not be empty")
        if self.request_timeout <= 0:
            raise ValueError(
                f"request_timeout must be positive; got {self.request_timeout}"
            )

    def with_overrides(self, **changes) -> "RelaySettings":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self, redact: bool = True) -> dict:
        """Settings as a plain dict. The secret is masked unless redact=False."""
        return {
            "api_base_url": self.api_base_url,
            "signing_secret": "***" if redact else self.signing_secret,
            "request_timeout": self.request_timeout,
            "marketplace_domain": self.marketplace_domain,
            "risk_host": self.risk_host,
            "risk_param": self.risk_param,
            "risk_value": self.risk_value,
            "verify_tls": self.verify_tls,
            "store_path": self.store_path,
        }

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[str] = None,
    ) -> "RelaySettings":
        """Build settings from TASK_RELAY_* variables.

        When ``environ`` is None the process environment is used, after
        loading ``.env`` (or ``dotenv_path``) without overriding variables
        that are already set.
        """
        if environ is None:
            load_dotenv(dotenv_path=dotenv_path, override=False)
            environ = os.environ

        def _get(name: str, default: str) -> str:
            return environ.get(ENV_PREFIX + name, "") or default

        timeout_raw = _get("REQUEST_TIMEOUT", str(DEFAULT_REQUEST_TIMEOUT))
        try:
            timeout = float(timeout_raw)
            if timeout <= 0:
                raise ValueError(timeout_raw)
        except ValueError:
            logger.warning(
                "Invalid %sREQUEST_TIMEOUT %r, using %.1fs",
                ENV_PREFIX, timeout_raw, DEFAULT_REQUEST_TIMEOUT,
            )
            timeout = DEFAULT_REQUEST_TIMEOUT

        verify_raw = _get("VERIFY_TLS", "true").strip().lower()

        return cls(
            api_base_url=_get("API_BASE_URL", DEFAULT_API_BASE_URL),
            signing_secret=_get("SIGNING_SECRET", DEFAULT_SIGNING_SECRET),
            request_timeout=timeout,
            marketplace_domain=_get("MARKETPLACE_DOMAIN", DEFAULT_MARKETPLACE_DOMAIN),
            risk_host=_get("RISK_HOST", DEFAULT_RISK_HOST),
            risk_param=_get("RISK_PARAM", DEFAULT_RISK_PARAM),
            risk_value=_get("RISK_VALUE", DEFAULT_RISK_VALUE),
            verify_tls=verify_raw not in ("0", "false", "no", "off"),
            store_path=_get("STORE_PATH", DEFAULT_STORE_PATH),
        )
