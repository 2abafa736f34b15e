"""Tests for the async task API transport.

All HTTP goes through httpx.MockTransport, no network access required.
Covers: success decoding, non-2xx mapping, network failures, deadline,
invalid JSON, client ownership.
"""

import asyncio
import json

import httpx
import pytest

from task_relay.api.client import TaskApiClient, TaskApiError
from task_relay.api.request_builder import (
    TaskConfig,
    UserIdentity,
    build_check_request,
    build_task_request,
)
from task_relay.core.settings import RelaySettings

TS = "1700000000000"


def _client(handler, **overrides):
    settings = RelaySettings(**overrides)
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TaskApiClient(settings, http_client=http), http, settings


class TestSend:
    @pytest.mark.asyncio
    async def test_post_sends_body_and_header(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["method"] = request.method
            seen["content_type"] = request.headers.get("content-type")
            seen["body"] = request.content.decode()
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"task": "ok"})

        client, http, settings = _client(handler)
        req = build_task_request(
            settings, UserIdentity("alice", "Alice"), TaskConfig("jd", "42"),
            '{"sku": "100"}', TS,
        )
        data = await client.send(req)
        await http.aclose()

        assert data == {"task": "ok"}
        assert seen["method"] == "POST"
        assert seen["content_type"] == "application/json"
        assert json.loads(seen["body"]) == {"sku": "100"}
        assert seen["params"]["type"] == "jd"
        assert seen["params"]["t"] == TS

    @pytest.mark.asyncio
    async def test_get_check(self):
        def handler(request):
            assert request.method == "GET"
            assert "username" not in request.url.params
            return httpx.Response(200, json=[1, 2, 3])

        client, http, settings = _client(handler)
        data = await client.send(build_check_request(settings, TaskConfig("jd", "42"), "n", TS))
        await http.aclose()
        assert data == [1, 2, 3]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 403, 404, 500, 503])
    async def test_non_2xx_raises(self, status):
        client, http, settings = _client(lambda r: httpx.Response(status, json={}))
        req = build_check_request(settings, TaskConfig("jd", "42"), "n", TS)
        with pytest.raises(TaskApiError, match=f"HTTP {status}") as exc_info:
            await client.send(req)
        await http.aclose()
        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_network_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client, http, settings = _client(handler)
        req = build_check_request(settings, TaskConfig("jd", "42"), "n", TS)
        with pytest.raises(TaskApiError, match="connection refused"):
            await client.send(req)
        await http.aclose()

    @pytest.mark.asyncio
    async def test_hung_request_times_out(self):
        async def handler(request):
            await asyncio.sleep(5)
            return httpx.Response(200, json={})

        client, http, settings = _client(handler, request_timeout=0.05)
        req = build_check_request(settings, TaskConfig("jd", "42"), "n", TS)
        with pytest.raises(TaskApiError, match="timed out"):
            await client.send(req)
        await http.aclose()

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self):
        client, http, settings = _client(lambda r: httpx.Response(200, text="<html>"))
        req = build_check_request(settings, TaskConfig("jd", "42"), "n", TS)
        with pytest.raises(TaskApiError, match="Invalid JSON"):
            await client.send(req)
        await http.aclose()


class TestOwnership:
    @pytest.mark.asyncio
    async def test_external_client_not_closed(self):
        client, http, _ = _client(lambda r: httpx.Response(200, json={}))
        await client.aclose()
        assert http.is_closed is False
        await http.aclose()

    @pytest.mark.asyncio
    async def test_own_client_closed(self):
        client = TaskApiClient(RelaySettings())
        http = client._get_client()
        assert isinstance(http, httpx.AsyncClient)
        await client.aclose()
        assert http.is_closed is True

    @pytest.mark.asyncio
    async def test_context_manager(self):
        async with TaskApiClient(RelaySettings()) as client:
            http = client._get_client()
        assert http.is_closed is True
