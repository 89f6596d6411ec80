"""
Tool Integration Layer.

The tools the model may call, how they are described to it, and how calls
are validated and executed:

- statistics: sum / average / population std-dev / weighted rating average
- rawg: RAWG game-data gateway with response shrinking
- registry: ordered, read-only name → (schema, function) mapping
- executor: schema validation, dispatch, and execution records
- remote: client for a tool server running in another process
- mcp_server: the same tools over MCP stdio
"""

from gamesage.tools.errors import (
    ConfigurationError,
    InvalidArgument,
    InvalidState,
    ToolError,
    ToolExecutionError,
    ToolNotFound,
    UpstreamError,
)
from gamesage.tools.executor import ToolExecutor, validate_arguments
from gamesage.tools.models import (
    ToolExecutionRecord,
    ToolInvocationRequest,
    ToolParameter,
    ToolSchema,
)
from gamesage.tools.registry import RegisteredTool, ToolRegistry, build_default_registry

__all__ = [
    "ConfigurationError",
    "InvalidArgument",
    "InvalidState",
    "RegisteredTool",
    "ToolError",
    "ToolExecutionError",
    "ToolExecutionRecord",
    "ToolExecutor",
    "ToolInvocationRequest",
    "ToolNotFound",
    "ToolParameter",
    "ToolRegistry",
    "ToolSchema",
    "UpstreamError",
    "build_default_registry",
    "validate_arguments",
]
