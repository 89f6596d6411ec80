"""
Tool-server endpoints.

Exposes the tool registry over HTTP for a chat service running elsewhere:

    GET  /v1/tools           → {tools: [{name, description, inputSchema}]}
    POST /v1/tools/execute   → {content: [{type: "text", text: <json>}]}
                               or {content: [...], isError: true}
    GET  /.well-known/mcp    → discovery document
    GET  /health             → OK

Tool endpoints require the x-authentication-secret header to match
SERVER_SHARED_SECRET when one is configured; otherwise they are open.
"""

from __future__ import annotations

import json
import logging
import secrets
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from gamesage import __version__
from gamesage.tools.errors import ConfigurationError, InvalidArgument, ToolError, ToolNotFound
from gamesage.tools.executor import ToolExecutor
from gamesage.tools.mcp_server import SERVER_NAME
from gamesage.tools.models import ToolInvocationRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tools"])


def verify_shared_secret(
    request: Request,
    x_authentication_secret: str | None = Header(default=None, alias="x-authentication-secret"),
) -> None:
    """Reject the request unless the header matches the configured secret."""
    expected = request.app.state.settings.server.shared_secret
    if not expected:
        return
    if not secrets.compare_digest(x_authentication_secret or "", expected):
        raise HTTPException(status_code=401, detail="Unauthorized")


class ExecuteRequest(BaseModel):
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


def _text_content(text: str, is_error: bool = False) -> dict[str, Any]:
    body: dict[str, Any] = {"content": [{"type": "text", "text": text}]}
    if is_error:
        body["isError"] = True
    return body


def _get_executor(request: Request) -> ToolExecutor:
    return request.app.state.executor


@router.get("/v1/tools", dependencies=[Depends(verify_shared_secret)])
async def list_tools(request: Request):
    return {"tools": _get_executor(request).registry.listings()}


@router.post("/v1/tools/execute", dependencies=[Depends(verify_shared_secret)])
async def execute_tool(body: ExecuteRequest, request: Request):
    executor = _get_executor(request)
    logger.info(f"Executing tool: {body.name}")

    try:
        record = await executor.execute(
            ToolInvocationRequest(name=body.name, arguments=body.arguments)
        )
    except ToolNotFound as e:
        logger.error(f"Unknown tool requested: {body.name}")
        return JSONResponse({"error": str(e)}, status_code=404)
    except InvalidArgument as e:
        return JSONResponse(_text_content(f"Error: {e}", is_error=True), status_code=400)
    except (ToolError, ConfigurationError) as e:
        return JSONResponse(_text_content(f"Error: {e}", is_error=True), status_code=500)

    logger.info(f"Tool {body.name} executed successfully")
    return _text_content(json.dumps(record.result, indent=2))


@router.get("/.well-known/mcp")
async def well_known():
    return {
        "protocol": "mcp",
        "version": __version__,
        "server": {
            "name": SERVER_NAME,
            "version": __version__,
            "description": "GameSage tool server for RAWG video game data and statistics",
        },
        "capabilities": {"tools": True},
        "endpoints": {"tools": "/v1/tools", "execute": "/v1/tools/execute"},
    }


@router.get("/")
async def root():
    return {
        "name": "GameSage Tool Server",
        "version": __version__,
        "description": "Video game data and statistics tools",
        "discovery": "/.well-known/mcp",
    }
