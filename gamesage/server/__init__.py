"""
HTTP Layer.

FastAPI applications for the chat service (SSE streaming of orchestration
runs) and the tool server (tool listing and execution over HTTP).
"""

from gamesage.server.app import create_chat_app, create_tool_app

__all__ = ["create_chat_app", "create_tool_app"]
