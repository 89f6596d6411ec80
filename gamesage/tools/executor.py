"""
Tool executor: lookup, validation, dispatch.

For each invocation request:
    1. Look up the tool in the registry            (ToolNotFound)
    2. Validate arguments against its schema        (InvalidArgument, first violation wins)
    3. Create a ToolExecutionRecord, timestamped at dispatch
    4. Run the bound function (sync or async)
    5. Wrap any failure as ToolExecutionError, except ConfigurationError,
       which propagates untouched because it is fatal to the run

Steps 1-2 fail before dispatch and therefore produce no record.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any

from gamesage.tools.errors import ConfigurationError, InvalidArgument, ToolExecutionError
from gamesage.tools.models import (
    ToolExecutionRecord,
    ToolInvocationRequest,
    ToolParameter,
    ToolSchema,
)
from gamesage.tools.registry import ToolRegistry
from gamesage.tools.statistics import is_number

logger = logging.getLogger(__name__)


def _check(param: ToolParameter, value: Any, path: str) -> None:
    if param.type == "string":
        if not isinstance(value, str):
            raise InvalidArgument(f"{path} must be a string", field=path)
        if param.enum is not None and value not in param.enum:
            raise InvalidArgument(
                f"{path} must be one of: {', '.join(param.enum)} (got {value!r})", field=path
            )

    elif param.type in ("number", "integer"):
        if not is_number(value):
            raise InvalidArgument(f"{path} must be a finite number", field=path)
        if param.type == "integer" and int(value) != value:
            raise InvalidArgument(f"{path} must be an integer", field=path)
        if param.minimum is not None and value < param.minimum:
            raise InvalidArgument(f"{path} must be >= {param.minimum:g}", field=path)
        if param.maximum is not None and value > param.maximum:
            raise InvalidArgument(f"{path} must be <= {param.maximum:g}", field=path)

    elif param.type == "boolean":
        if not isinstance(value, bool):
            raise InvalidArgument(f"{path} must be a boolean", field=path)

    elif param.type == "array":
        if not isinstance(value, list):
            raise InvalidArgument(f"{path} must be an array", field=path)
        if param.items is not None:
            for index, item in enumerate(value):
                _check(param.items, item, f"{path}[{index}]")

    elif param.type == "object":
        if not isinstance(value, dict):
            raise InvalidArgument(f"{path} must be an object", field=path)
        for name, child in (param.properties or {}).items():
            child_path = f"{path}.{name}"
            if value.get(name) is None:
                if child.required:
                    raise InvalidArgument(f"Missing required field: {child_path}", field=child_path)
                continue
            _check(child, value[name], child_path)


def validate_arguments(schema: ToolSchema, arguments: Any) -> dict[str, Any]:
    """
    Check an argument bag against a tool schema.

    Null values count as absent. Keys the schema does not declare are dropped.

    Returns:
        The cleaned argument bag

    Raises:
        InvalidArgument: On the first violation, naming the offending field
    """
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        raise InvalidArgument(f"Arguments for {schema.name} must be an object")

    cleaned: dict[str, Any] = {}
    for name, param in schema.parameters.items():
        value = arguments.get(name)
        if value is None:
            if param.required:
                raise InvalidArgument(f"Missing required field: {name}", field=name)
            continue
        _check(param, value, name)
        cleaned[name] = value

    ignored = set(arguments) - set(schema.parameters)
    if ignored:
        logger.debug(f"Ignoring undeclared arguments for {schema.name}: {sorted(ignored)}")

    return cleaned


class ToolExecutor:
    """
    Runs tool invocation requests against a registry.

    Stateless apart from the registry reference, so one executor can serve
    concurrent orchestration runs.
    """

    def __init__(self, registry: ToolRegistry):
        self._registry = registry

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    async def execute(self, request: ToolInvocationRequest) -> ToolExecutionRecord:
        """
        Execute one tool call.

        Returns:
            The execution record with the tool's raw result

        Raises:
            ToolNotFound: Unknown tool name (no record produced)
            InvalidArgument: Arguments fail schema validation (no record produced)
            ConfigurationError: The tool's backing service is not configured
            ToolExecutionError: The tool raised; ``.record`` holds the dispatch record
        """
        tool = self._registry.get(request.name)
        arguments = validate_arguments(tool.schema, request.arguments)

        record = ToolExecutionRecord(tool_name=tool.name, args=arguments)
        logger.info(f"Executing tool {tool.name} with {arguments}")

        try:
            result = tool.function(arguments)
            if inspect.isawaitable(result):
                result = await result
        except ConfigurationError:
            raise
        except Exception as e:
            logger.warning(f"Tool '{tool.name}' failed: {e}")
            record.result = {"error": str(e)}
            raise ToolExecutionError(tool.name, str(e), record=record, cause=e) from e

        record.result = result
        return record
