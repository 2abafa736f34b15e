"""Inbound message protocol: request and response envelopes.

Messages arrive as ``{"type": ..., "data": ...}``. Only ``URL_CHECK`` and
``REQUEST_TASK`` are understood; any other type is kept verbatim so the
dispatcher can recognise and ignore it. ``data`` is an opaque JSON string
forwarded untouched as the task submission body.

Responses are ``{"success": true, "data": ...}`` or
``{"success": false, "error": "..."}``.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

MISSING_PARAMETERS_ERROR = "Missing required parameters"
CONFIGURATION_INCOMPLETE_ERROR = "Configuration incomplete"


class MessageType(str, Enum):
    URL_CHECK = "URL_CHECK"
    REQUEST_TASK = "REQUEST_TASK"

    @classmethod
    def parse(cls, raw: Any) -> Optional["MessageType"]:
        """Return the matching member, or None for unknown types."""
        try:
            return cls(raw)
        except ValueError:
            return None


@dataclass(frozen=True)
class Message:
    """One inbound protocol message."""
    type: Union[MessageType, str]
    data: Optional[str] = None

    @property
    def known_type(self) -> Optional[MessageType]:
        return MessageType.parse(self.type)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Message":
        """Build from a decoded envelope.

        Non-string ``data`` (an already decoded object) is re-serialised
        so the payload is always forwarded as a JSON string.
        """
        msg_type = raw.get("type", "")
        parsed = MessageType.parse(msg_type)
        data = raw.get("data")
        if data is not None and not isinstance(data, str):
            data = json.dumps(data, ensure_ascii=False)
        return cls(type=parsed or str(msg_type), data=data)


@dataclass(frozen=True)
class Response:
    """Result envelope, exactly one per known message."""
    success: bool
    data: Any = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Any) -> "Response":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "Response":
        return cls(success=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True, "data": self.data}
        return {"success": False, "error": self.error}
