"""
Chat endpoints.

POST /api/chat          → {message, toolExecutions, model, usage}
POST /api/chat/stream   → text/event-stream of tool_start / tool_complete /
                          response / done | error frames

Both take {message, history, clientToken?}. When SERVER_CLIENT_TOKEN is
configured, clientToken must match it. Errors detected before the stream
opens come back as a JSON error with a mapped status code; errors after
that arrive as the stream's terminal error frame.
"""

from __future__ import annotations

import logging
import secrets

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from gamesage.llm.models import LLMError, Message, ModelAuthError, ModelRateLimited
from gamesage.llm.orchestrator import LLMOrchestrator
from gamesage.server.streaming import sse_frames
from gamesage.tools.errors import ConfigurationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])


class ChatRequest(BaseModel):
    message: str = ""
    history: list[Message] = Field(default_factory=list)
    client_token: str | None = Field(default=None, alias="clientToken")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def status_for_error(error: Exception) -> int:
    """HTTP status for an orchestration failure: 429 rate limit, 401 auth, 400 input, else 500."""
    if isinstance(error, ModelRateLimited):
        return 429
    if isinstance(error, ModelAuthError):
        return 401
    if isinstance(error, ValueError):
        return 400
    return 500


def _get_orchestrator(request: Request) -> LLMOrchestrator:
    return request.app.state.orchestrator


def _reject(request: Request, body: ChatRequest) -> JSONResponse | None:
    """Return an error response if the request must not proceed."""
    expected = request.app.state.settings.server.client_token
    if expected and not secrets.compare_digest(body.client_token or "", expected):
        return error_response("Invalid or missing client token", 401)
    if not body.message.strip():
        return error_response("Message is required", 400)
    return None


@router.post("/chat")
async def chat(body: ChatRequest, request: Request):
    rejected = _reject(request, body)
    if rejected is not None:
        return rejected

    orchestrator = _get_orchestrator(request)
    try:
        response = await orchestrator.generate_response(body.message, body.history)
    except (LLMError, ConfigurationError, ValueError) as e:
        logger.error(f"Chat request failed: {e}")
        return error_response(str(e), status_for_error(e))

    return response.to_wire()


@router.post("/chat/stream")
async def chat_stream(body: ChatRequest, request: Request):
    rejected = _reject(request, body)
    if rejected is not None:
        return rejected

    orchestrator = _get_orchestrator(request)
    try:
        run = orchestrator.start(body.message, body.history)
    except (ConfigurationError, ValueError) as e:
        logger.error(f"Chat stream rejected: {e}")
        return error_response(str(e), status_for_error(e))

    return StreamingResponse(
        sse_frames(
            run,
            maxsize=request.app.state.settings.server.stream_queue_size,
            is_disconnected=request.is_disconnected,
        ),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
