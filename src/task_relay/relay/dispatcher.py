# Task Relay: Message Dispatcher
#
# Entry point for inbound protocol messages. For every known message:
#
#   1. Read identity/task settings fresh from the config store
#   2. Validate required fields (configuration error -> envelope, no call)
#   3. Sign and build the request
#   4. Send it through TaskApiClient
#   5. Produce exactly one Response
#
# Unknown message types produce nothing. ``dispatch`` never raises: every
# failure path ends in a ``success: false`` envelope.

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set, Union

from ..api.client import TaskApiClient
from ..api.request_builder import (
    SignedRequest,
    TaskConfig,
    UserIdentity,
    build_check_request,
    build_task_request,
)
from ..core.audit_log import EventSeverity, EventType, log_relay_event, redact_signature
from ..core.config_store import ConfigStore
from ..core.settings import (
    CHECK_CONFIG_KEYS,
    NICK_KEY,
    RENWU_KEY,
    RENWU_SENTINEL,
    TASK_CONFIG_KEYS,
    TYPE_KEY,
    USERNAME_KEY,
    RelaySettings,
)
from .protocol import (
    CONFIGURATION_INCOMPLETE_ERROR,
    MISSING_PARAMETERS_ERROR,
    Message,
    MessageType,
    Response,
)

logger = logging.getLogger(__name__)

ResponseCallback = Callable[[Response], Union[None, Awaitable[None]]]


def normalize_renwu(renwu: str) -> str:
    """Task id as sent on the wire.

    The sentinel value is recognised but no rewrite is defined for it or
    for any other value, so this is an identity function.
    """
    if renwu != RENWU_SENTINEL:
        return renwu
    return renwu


class MessageDispatcher:
    """Turns protocol messages into signed task API calls.

    Args:
        settings: Relay settings (endpoint, secret, timeout).
        store: Config store holding username/type/renwu/nick.
        client: Transport. One is created from ``settings`` if omitted.
    """

    def __init__(
        self,
        settings: RelaySettings,
        store: ConfigStore,
        client: Optional[TaskApiClient] = None,
    ):
        self._settings = settings
        self._store = store
        self._client = client or TaskApiClient(settings)
        self._pending: Set[asyncio.Task] = set()

    @property
    def pending_count(self) -> int:
        """Messages accepted by ``handle`` whose response is not out yet."""
        return len(self._pending)

    async def aclose(self) -> None:
        """Wait for in-flight messages, then close the transport."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        await self._client.aclose()

    # ── Public interface ─────────────────────────────────────────────

    async def dispatch(self, message: Message) -> Optional[Response]:
        """Process one message.

        Returns:
            The response envelope, or None for an unknown message type.
        """
        msg_type = message.known_type
        if msg_type is None:
            logger.debug("Ignoring unknown message type %r", message.type)
            return None

        try:
            if msg_type is MessageType.REQUEST_TASK:
                return await self._process_task_request(message)
            return await self._process_url_check()
        except Exception as exc:
            # TaskApiError and anything unexpected end up here
            logger.warning("%s failed: %s", msg_type.value, exc)
            self._audit(
                EventType.DISPATCH_FAILED,
                EventSeverity.INVESTIGATE,
                f"{msg_type.value} failed",
                details={"message_type": msg_type.value, "error": str(exc)},
            )
            return Response.fail(str(exc) or exc.__class__.__name__)

    def handle(
        self,
        message: Message,
        send_response: Optional[ResponseCallback] = None,
    ) -> Optional["asyncio.Task[Optional[Response]]"]:
        """Schedule ``message`` on the running loop.

        Returns a task resolving to the response, or None when the type is
        unknown (nothing will be sent). ``send_response`` is invoked exactly
        once, with the same response the task resolves to.
        """
        if message.known_type is None:
            logger.debug("Ignoring unknown message type %r", message.type)
            return None

        task = asyncio.get_running_loop().create_task(
            self._dispatch_and_reply(message, send_response)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    # ── Message handlers ─────────────────────────────────────────────

    async def _dispatch_and_reply(
        self,
        message: Message,
        send_response: Optional[ResponseCallback],
    ) -> Optional[Response]:
        response = await self.dispatch(message)
        if send_response is not None and response is not None:
            try:
                result = send_response(response)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception("Response callback raised for %s", message.type)
        return response

    async def _process_task_request(self, message: Message) -> Response:
        config = await self._store.get(TASK_CONFIG_KEYS)
        username = config.text(USERNAME_KEY)
        type_ = config.text(TYPE_KEY)
        renwu = config.text(RENWU_KEY)
        nick = config.text(NICK_KEY)

        if not username or not nick or not renwu:
            return Response.fail(MISSING_PARAMETERS_ERROR)

        request = build_task_request(
            self._settings,
            UserIdentity(username=username, nick=nick),
            TaskConfig(type=type_, renwu=normalize_renwu(renwu)),
            message.data,
        )
        response = Response.ok(await self._send(request))
        self._audit(
            EventType.TASK_REQUESTED,
            EventSeverity.INFO,
            "Task submitted",
            details={
                "renwu": renwu,
                "nick": nick,
                "t": request.timestamp,
                "ras": redact_signature(request.signature),
            },
        )
        return response

    async def _process_url_check(self) -> Response:
        config = await self._store.get(CHECK_CONFIG_KEYS)
        type_ = config.text(TYPE_KEY)
        renwu = normalize_renwu(config.text(RENWU_KEY))
        nick = config.text(NICK_KEY)

        if not type_ or not renwu:
            return Response.fail(CONFIGURATION_INCOMPLETE_ERROR)

        request = build_check_request(
            self._settings, TaskConfig(type=type_, renwu=renwu), nick
        )
        response = Response.ok(await self._send(request))
        self._audit(
            EventType.URL_CHECKED,
            EventSeverity.INFO,
            "URL check completed",
            details={
                "type": type_,
                "renwu": renwu,
                "t": request.timestamp,
                "ras": redact_signature(request.signature),
            },
        )
        return response

    def _audit(self, event_type, severity, message, details):
        """Write an audit event. A failing audit write never changes the response."""
        try:
            log_relay_event(event_type, severity, message, details=details)
        except Exception:
            logger.exception("Audit write failed for %s", event_type.value)

    async def _send(self, request: SignedRequest):
        logger.debug("Sending %s to task API (t=%s)", request.method, request.timestamp)
        return await self._client.send(request)
