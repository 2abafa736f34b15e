# Task Relay: Request Builder
#
# Assembles the two signed request variants sent to the task API:
#
#   Task submission  POST <base>?username&type=jd&renwu&nick&t&ras
#                    body = caller payload, Content-Type: application/json
#   URL check        GET  <base>?type&renwu&nick&t&ras
#                    signed with an empty username
#
# Query keys and their order are the wire contract with the remote API.
# Values are percent-encoded with urllib.parse.urlencode. Nothing built
# here is cached; every call gets a fresh timestamp unless one is given.

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
from urllib.parse import urlencode

from ..core.settings import TASK_TYPE_LITERAL, RelaySettings
from .signature import current_timestamp, sign

TASK_QUERY_KEYS = ("username", "type", "renwu", "nick", "t", "ras")
CHECK_QUERY_KEYS = ("type", "renwu", "nick", "t", "ras")

JSON_HEADERS = {"Content-Type": "application/json"}


@dataclass(frozen=True)
class UserIdentity:
    """Stored account the relay acts for."""
    username: str
    nick: str


@dataclass(frozen=True)
class TaskConfig:
    """Which remote task to request.

    ``type`` is only a signing input; task submission always sends ``jd``.
    """
    type: str
    renwu: str


@dataclass(frozen=True)
class SignedRequest:
    """A fully built outbound request."""
    method: str
    url: str
    params: Tuple[Tuple[str, str], ...]
    timestamp: str
    signature: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None

    @property
    def query(self) -> Dict[str, str]:
        return dict(self.params)


def _join(base_url: str, params: Tuple[Tuple[str, str], ...]) -> str:
    separator = "&" if "?" in base_url else "?"
    return f"{base_url}{separator}{urlencode(params)}"


def build_task_request(
    settings: RelaySettings,
    identity: UserIdentity,
    task: TaskConfig,
    payload: Optional[str],
    timestamp: Optional[str] = None,
) -> SignedRequest:
    """Build the POST that submits a captured payload for a task.

    The signature covers the *stored* type; the query always says ``jd``.
    """
    ts = timestamp or current_timestamp()
    signature = sign(task.type, identity.username, ts, settings.signing_secret)
    params = (
        ("username", identity.username),
        ("type", TASK_TYPE_LITERAL),
        ("renwu", task.renwu),
        ("nick", identity.nick),
        ("t", ts),
        ("ras", signature),
    )
    return SignedRequest(
        method="POST",
        url=_join(settings.api_base_url, params),
        params=params,
        timestamp=ts,
        signature=signature,
        headers=dict(JSON_HEADERS),
        body=payload,
    )


def build_check_request(
    settings: RelaySettings,
    task: TaskConfig,
    nick: str,
    timestamp: Optional[str] = None,
) -> SignedRequest:
    """Build the lightweight GET check. No username is sent or signed."""
    ts = timestamp or current_timestamp()
    signature = sign(task.type, "", ts, settings.signing_secret)
    params = (
        ("type", task.type),
        ("renwu", task.renwu),
        ("nick", nick),
        ("t", ts),
        ("ras", signature),
    )
    return SignedRequest(
        method="GET",
        url=_join(settings.api_base_url, params),
        params=params,
        timestamp=ts,
        signature=signature,
    )
