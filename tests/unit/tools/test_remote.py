"""
Unit tests for RemoteToolClient.

The tool server is simulated with httpx.MockTransport handlers.
"""

import json

import httpx
import pytest

from gamesage.tools.errors import ConfigurationError, ToolNotFound, UpstreamError
from gamesage.tools.remote import AUTH_HEADER, RemoteToolClient
from gamesage.tools.statistics import EXECUTE_CALCULATION_TOOL


def _client(handler, shared_secret: str = "") -> RemoteToolClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RemoteToolClient("http://tools.test", shared_secret=shared_secret, http_client=http_client)


def _content(text: str, is_error: bool = False) -> dict:
    body = {"content": [{"type": "text", "text": text}]}
    if is_error:
        body["isError"] = True
    return body


class TestRemoteToolClientConfig:
    """Tests for initialization."""

    @pytest.mark.asyncio
    async def test_missing_url_is_configuration_error(self):
        client = RemoteToolClient(None)
        with pytest.raises(ConfigurationError, match="Tool server URL not configured"):
            await client.initialize()


class TestListTools:
    """Tests for list_tools and load_registry."""

    @pytest.mark.asyncio
    async def test_sends_shared_secret_header(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"tools": []})

        async with _client(handler, shared_secret="s3cret") as client:
            await client.list_tools()

        assert seen[0].headers[AUTH_HEADER] == "s3cret"
        assert seen[0].url.path == "/v1/tools"

    @pytest.mark.asyncio
    async def test_no_header_without_secret(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"tools": []})

        async with _client(handler) as client:
            await client.list_tools()

        assert AUTH_HEADER not in seen[0].headers

    @pytest.mark.asyncio
    async def test_unauthorized_is_configuration_error(self):
        async with _client(lambda request: httpx.Response(401, json={"error": "Unauthorized"})) as client:
            with pytest.raises(ConfigurationError):
                await client.list_tools()

    @pytest.mark.asyncio
    async def test_non_json_listing_is_upstream_error(self):
        async with _client(lambda request: httpx.Response(200, text="<html>oops</html>")) as client:
            with pytest.raises(UpstreamError, match="malformed tool list"):
                await client.list_tools()

    @pytest.mark.asyncio
    async def test_listing_without_tools_key_is_upstream_error(self):
        async with _client(lambda request: httpx.Response(200, json={"items": []})) as client:
            with pytest.raises(UpstreamError, match="malformed tool list"):
                await client.load_registry()

    @pytest.mark.asyncio
    async def test_load_registry_forwards_calls(self):
        def handler(request):
            if request.method == "GET":
                return httpx.Response(200, json={"tools": [EXECUTE_CALCULATION_TOOL.to_listing()]})
            payload = json.loads(request.content)
            assert payload == {"name": "execute_calculation", "arguments": {"numbers": [1, 2]}}
            return httpx.Response(200, json=_content(json.dumps({"results": {"sum": 3}})))

        async with _client(handler) as client:
            registry = await client.load_registry()
            tool = registry.get("execute_calculation")
            result = await tool.function({"numbers": [1, 2]})

        assert registry.names == ["execute_calculation"]
        assert tool.schema == EXECUTE_CALCULATION_TOOL
        assert result == {"results": {"sum": 3}}


class TestCall:
    """Tests for call."""

    @pytest.mark.asyncio
    async def test_not_found(self):
        async with _client(lambda request: httpx.Response(404, json={"error": "Unknown tool: x"})) as client:
            with pytest.raises(ToolNotFound):
                await client.call("x", {})

    @pytest.mark.asyncio
    async def test_error_content_becomes_upstream_error(self):
        def handler(request):
            return httpx.Response(500, json=_content("Error: RAWG API returned 503", is_error=True))

        async with _client(handler) as client:
            with pytest.raises(UpstreamError, match="RAWG API returned 503") as exc_info:
                await client.call("fetch_game_data", {"action": "genres"})

        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_non_json_text_returned_raw(self):
        async with _client(lambda request: httpx.Response(200, json=_content("plain text"))) as client:
            assert await client.call("echo", {}) == "plain text"

    @pytest.mark.asyncio
    async def test_unexpected_body_is_upstream_error(self):
        async with _client(lambda request: httpx.Response(502, text="bad gateway")) as client:
            with pytest.raises(UpstreamError):
                await client.call("echo", {})

    @pytest.mark.asyncio
    async def test_transport_failure_is_upstream_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(UpstreamError, match="Tool server request failed"):
                await client.call("echo", {})
