"""
Tool-layer error taxonomy.

Every failure a tool can produce derives from ToolError. The orchestrator
feeds ToolError messages back to the model as an ordinary tool result so it
can recover on its next turn. ConfigurationError is deliberately outside
that hierarchy: a missing key or endpoint aborts the whole run.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gamesage.tools.models import ToolExecutionRecord


class ConfigurationError(Exception):
    """A required secret, key, or endpoint is not configured."""


class ToolError(Exception):
    """Base class for recoverable tool failures."""


class InvalidArgument(ToolError, ValueError):
    """
    A tool argument is missing, has the wrong type, or is out of range.

    Args:
        message: Human-readable description of the problem
        field: Dotted path of the offending argument, if known (e.g. "ratings[0].count")
    """

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class ToolNotFound(ToolError, LookupError):
    """The requested tool name is not registered."""

    def __init__(self, tool_name: str):
        super().__init__(f"Unknown tool: {tool_name}")
        self.tool_name = tool_name


class InvalidState(ToolError):
    """The inputs are well-formed but the computation is undefined (e.g. zero total count)."""


class UpstreamError(ToolError):
    """The external game-data API failed or was unreachable."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ToolExecutionError(ToolError):
    """
    A tool raised while executing.

    Wraps the underlying failure with the tool name, and carries the
    execution record that was produced when the tool was dispatched.
    """

    def __init__(
        self,
        tool_name: str,
        message: str,
        record: ToolExecutionRecord | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(f"Error executing {tool_name}: {message}")
        self.tool_name = tool_name
        self.record = record
        self.cause = cause
