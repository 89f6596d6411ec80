"""
Tool registry.

An ordered, read-only mapping from tool name to (schema, executor). Built
once at startup and handed to the executor and orchestrator explicitly, so
tests can construct fresh registries without touching global state.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Iterator
from dataclasses import dataclass
from functools import partial
from typing import Any

from gamesage.tools.errors import ToolNotFound
from gamesage.tools.models import ToolSchema
from gamesage.tools.rawg import FETCH_GAME_DATA_TOOL, RAWGGateway, fetch_game_data
from gamesage.tools.statistics import (
    CALCULATE_RATING_AVERAGE_TOOL,
    EXECUTE_CALCULATION_TOOL,
    calculate_rating_average,
    execute_calculation,
)

ToolFunction = Callable[[dict[str, Any]], Any | Awaitable[Any]]


@dataclass(frozen=True)
class RegisteredTool:
    """A tool schema bound to the function that executes it."""

    schema: ToolSchema
    function: ToolFunction

    @property
    def name(self) -> str:
        return self.schema.name


class ToolRegistry:
    """
    Ordered set of tools, looked up by exact name.

    Args:
        tools: Tools in the order they should be offered to the model

    Raises:
        ValueError: If two tools share a name
    """

    def __init__(self, tools: Iterable[RegisteredTool]):
        self._tools: dict[str, RegisteredTool] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            self._tools[tool.name] = tool

    def get(self, name: str) -> RegisteredTool:
        """Return the tool registered under ``name`` or raise ToolNotFound."""
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotFound(name) from None

    def schemas(self) -> list[ToolSchema]:
        return [tool.schema for tool in self._tools.values()]

    def llm_tools(self) -> list[dict[str, Any]]:
        """All schemas in LiteLLM's tool format, in registration order."""
        return [tool.schema.to_llm_tool() for tool in self._tools.values()]

    def listings(self) -> list[dict[str, Any]]:
        """All schemas in the tool-server listing format."""
        return [tool.schema.to_listing() for tool in self._tools.values()]

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[RegisteredTool]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)


def build_default_registry(gateway: RAWGGateway) -> ToolRegistry:
    """The standard tool set: RAWG data fetch plus the two statistics tools."""
    return ToolRegistry([
        RegisteredTool(FETCH_GAME_DATA_TOOL, partial(fetch_game_data, gateway)),
        RegisteredTool(EXECUTE_CALCULATION_TOOL, execute_calculation),
        RegisteredTool(CALCULATE_RATING_AVERAGE_TOOL, calculate_rating_average),
    ])
