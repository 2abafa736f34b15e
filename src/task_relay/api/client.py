# Task Relay: Task API Client
#
# Sends a SignedRequest over httpx.AsyncClient and returns the decoded
# JSON body. One attempt per call, no retries, no backoff.
#
# Every failure surfaces as TaskApiError:
#   - deadline exceeded (httpx timeout or the outer asyncio deadline)
#   - connection / protocol errors
#   - non-2xx status        -> "HTTP <status>"
#   - body that is not JSON

import asyncio
import json
import logging
from typing import Any, Optional

import httpx

from ..core.settings import RelaySettings
from .request_builder import SignedRequest

logger = logging.getLogger(__name__)

USER_AGENT = "TaskRelay/0.4"


class TaskApiError(Exception):
    """Raised when a task API call does not yield a usable JSON body."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TaskApiClient:
    """Async transport for signed task API requests.

    Usage::

        async with TaskApiClient(settings) as client:
            data = await client.send(build_check_request(settings, task, nick))

    Args:
        settings: Relay settings (timeout, TLS verification).
        http_client: Optional pre-built ``httpx.AsyncClient``. The caller
            keeps ownership and is responsible for closing it.
    """

    def __init__(
        self,
        settings: RelaySettings,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings
        self._timeout = settings.request_timeout
        self._owns_client = http_client is None
        self._client = http_client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                verify=self._settings.verify_tls,
                headers={"Accept": "application/json", "User-Agent": USER_AGENT},
            )
            self._owns_client = True
        return self._client

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "TaskApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def send(self, request: SignedRequest) -> Any:
        """Issue ``request`` under the configured deadline.

        Returns:
            The decoded JSON response body.

        Raises:
            TaskApiError: On timeout, transport failure, non-2xx status or
                an undecodable body.
        """
        client = self._get_client()
        try:
            response = await asyncio.wait_for(
                client.request(
                    request.method,
                    request.url,
                    headers=request.headers or None,
                    content=request.body.encode("utf-8") if request.body is not None else None,
                ),
                timeout=self._timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(
                "Task API %s timed out after %.1fs", request.method, self._timeout
            )
            raise TaskApiError(f"Request timed out after {self._timeout:g}s")
        except httpx.HTTPError as exc:
            logger.warning("Task API %s failed: %s", request.method, exc)
            raise TaskApiError(str(exc) or exc.__class__.__name__) from exc

        if not response.is_success:
            logger.warning(
                "Task API %s returned HTTP %d", request.method, response.status_code
            )
            raise TaskApiError(
                f"HTTP {response.status_code}", status_code=response.status_code
            )

        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise TaskApiError(
                f"Invalid JSON response: {exc}", status_code=response.status_code
            ) from exc
