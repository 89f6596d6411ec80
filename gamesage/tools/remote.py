"""
HTTP client for a remote GameSage tool server.

In the split deployment the chat service does not hold the RAWG key; it
fetches tool schemas from the tool server's /v1/tools endpoint and forwards
each call to /v1/tools/execute. load_registry() wraps that in an ordinary
ToolRegistry, so the executor still validates arguments locally with the
same schemas before anything goes over the wire.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from gamesage.tools.errors import ConfigurationError, ToolNotFound, UpstreamError
from gamesage.tools.models import ToolSchema
from gamesage.tools.registry import RegisteredTool, ToolRegistry

logger = logging.getLogger(__name__)

AUTH_HEADER = "x-authentication-secret"


class RemoteToolClient:
    """
    Client for the tool-server HTTP API.

    Args:
        base_url: Tool server root, e.g. "http://localhost:8001"
        shared_secret: Sent as the x-authentication-secret header when non-empty
        timeout: Per-request timeout in seconds
        http_client: Optional pre-built client (not closed by shutdown())
    """

    def __init__(
        self,
        base_url: str | None,
        shared_secret: str = "",
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._base_url = (base_url or "").rstrip("/")
        self._shared_secret = shared_secret
        self._timeout = timeout
        self._client = http_client
        self._owns_client = http_client is None

    async def initialize(self) -> None:
        """Create the HTTP client."""
        if not self._base_url:
            raise ConfigurationError(
                "Tool server URL not configured. Set SERVER_TOOL_SERVER_URL in your environment."
            )
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True

    async def shutdown(self) -> None:
        """Close the HTTP client if we created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> RemoteToolClient:
        await self.initialize()
        return self

    async def __aexit__(self, *_args) -> None:
        await self.shutdown()

    def _headers(self) -> dict[str, str]:
        return {AUTH_HEADER: self._shared_secret} if self._shared_secret else {}

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        if self._client is None:
            raise RuntimeError("Remote tool client not initialized")
        try:
            return await self._client.request(
                method, f"{self._base_url}{path}", headers=self._headers(), **kwargs
            )
        except httpx.HTTPError as e:
            raise UpstreamError(f"Tool server request failed: {e}") from e

    async def list_tools(self) -> list[dict[str, Any]]:
        """Return the raw {name, description, inputSchema} listings."""
        response = await self._request("GET", "/v1/tools")
        if response.status_code == 401:
            raise ConfigurationError("Tool server rejected the shared secret")
        if response.is_error:
            raise UpstreamError(
                f"Failed to fetch tools: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        try:
            tools = response.json()["tools"]
        except (ValueError, KeyError, TypeError) as e:
            raise UpstreamError(
                f"Tool server returned a malformed tool list: {e}",
                status_code=response.status_code,
            ) from e
        if not isinstance(tools, list):
            raise UpstreamError(
                "Tool server returned a malformed tool list: tools is not an array",
                status_code=response.status_code,
            )
        return tools

    async def call(self, tool_name: str, arguments: dict[str, Any]) -> Any:
        """
        Execute a tool remotely and return its decoded result.

        The server answers with MCP-style content blocks; the first text
        block holds the JSON-serialised result.
        """
        response = await self._request(
            "POST", "/v1/tools/execute", json={"name": tool_name, "arguments": arguments}
        )
        if response.status_code == 404:
            raise ToolNotFound(tool_name)
        if response.status_code == 401:
            raise ConfigurationError("Tool server rejected the shared secret")

        try:
            body = response.json()
        except ValueError:
            body = None

        if not isinstance(body, dict) or "content" not in body:
            raise UpstreamError(
                f"Tool execution failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        text = "".join(
            block.get("text", "") for block in body["content"] if block.get("type") == "text"
        )
        if body.get("isError") or response.is_error:
            raise UpstreamError(text or "Tool execution failed", status_code=response.status_code)

        try:
            return json.loads(text)
        except ValueError:
            return text

    async def load_registry(self) -> ToolRegistry:
        """Fetch the tool list once and bind each schema to a remote call."""
        listings = await self.list_tools()
        tools = []
        for listing in listings:
            schema = ToolSchema.from_listing(listing)
            tools.append(RegisteredTool(schema, self._forwarder(schema.name)))
        logger.info(f"Remote tools loaded: {[tool.name for tool in tools]}")
        return ToolRegistry(tools)

    def _forwarder(self, tool_name: str):
        async def forward(arguments: dict[str, Any]) -> Any:
            return await self.call(tool_name, arguments)

        return forward
