"""
FastAPI application factories.

create_chat_app(): the chat service (orchestration loop behind /api/chat)
create_tool_app(): the tool server (/v1/tools)

Both build their dependencies in the lifespan from settings unless the
caller injects them, which is how tests supply a mocked orchestrator or a
registry backed by fake tools.
"""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from gamesage import __version__
from gamesage.components import AppComponents
from gamesage.config.settings import Settings, get_settings
from gamesage.llm.orchestrator import GENERIC_FAILURE_TEXT, LLMOrchestrator
from gamesage.server.chat import router as chat_router
from gamesage.server.tools import router as tools_router
from gamesage.tools.executor import ToolExecutor

logger = logging.getLogger(__name__)


def _install_common(app: FastAPI, settings: Settings) -> None:
    """Error handlers, health check, and CORS shared by both apps."""

    @app.exception_handler(HTTPException)
    async def http_error(_request: Request, exc: HTTPException):
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error(_request: Request, exc: RequestValidationError):
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'] if part != 'body')}: {err['msg']}"
            for err in exc.errors()
        )
        return JSONResponse({"error": f"Invalid request: {problems}"}, status_code=400)

    @app.exception_handler(Exception)
    async def unexpected_error(_request: Request, exc: Exception):
        logger.exception(f"Unhandled error: {exc}")
        return JSONResponse({"error": GENERIC_FAILURE_TEXT}, status_code=500)

    @app.get("/health", response_class=PlainTextResponse)
    async def health():
        return "OK"

    if settings.server.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.server.cors_origins,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type", "x-authentication-secret"],
        )


def create_chat_app(
    settings: Settings | None = None,
    orchestrator: LLMOrchestrator | None = None,
) -> FastAPI:
    """
    Build the chat service.

    Args:
        settings: Application settings (defaults to the global settings)
        orchestrator: Pre-built orchestrator; when None, one is built at startup
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with AsyncExitStack() as stack:
            if app.state.orchestrator is None:
                factory = AppComponents(settings)
                executor = await factory.create_executor(stack)
                app.state.orchestrator = factory.create_orchestrator(executor)
                logger.info(
                    f"Chat service ready (model: {settings.llm.model}, "
                    f"tools: {executor.registry.names})"
                )
            yield

    app = FastAPI(title="GameSage Chat", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.orchestrator = orchestrator
    _install_common(app, settings)
    app.include_router(chat_router)
    return app


def create_tool_app(
    settings: Settings | None = None,
    executor: ToolExecutor | None = None,
) -> FastAPI:
    """
    Build the tool server.

    Args:
        settings: Application settings (defaults to the global settings)
        executor: Pre-built executor; when None, the in-process tools are built at startup
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with AsyncExitStack() as stack:
            if app.state.executor is None:
                app.state.executor = await AppComponents(settings).create_executor(stack, local=True)
            if not settings.server.shared_secret:
                logger.warning("SERVER_SHARED_SECRET not configured; tool endpoints are open")
            yield

    app = FastAPI(title="GameSage Tool Server", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.executor = executor
    _install_common(app, settings)
    app.include_router(tools_router)
    return app
