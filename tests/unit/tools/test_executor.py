"""
Unit tests for the tool registry and executor.

Tests cover:
- Registry ordering, lookup and duplicate detection
- Argument validation against tagged schemas (nested paths, enums, bounds)
- Executor dispatch: records, sync/async tools, error wrapping
"""

import json

import pytest

from gamesage.tools.errors import (
    ConfigurationError,
    InvalidArgument,
    InvalidState,
    ToolExecutionError,
    ToolNotFound,
)
from gamesage.tools.executor import ToolExecutor, validate_arguments
from gamesage.tools.models import ToolInvocationRequest, ToolParameter, ToolSchema
from gamesage.tools.rawg import RAWGGateway
from gamesage.tools.registry import RegisteredTool, ToolRegistry, build_default_registry
from gamesage.tools.statistics import CALCULATE_RATING_AVERAGE_TOOL, EXECUTE_CALCULATION_TOOL

ECHO_TOOL = ToolSchema(
    name="echo",
    description="Echo the arguments back",
    parameters={
        "text": ToolParameter(type="string", required=True),
        "times": ToolParameter(type="integer", minimum=1, maximum=3),
        "loud": ToolParameter(type="boolean"),
    },
)


@pytest.fixture
def registry():
    """Default registry over an unconfigured gateway (no network needed)."""
    return build_default_registry(RAWGGateway(api_key=""))


@pytest.fixture
def executor(registry):
    return ToolExecutor(registry)


class TestToolRegistry:
    """Tests for ToolRegistry."""

    def test_default_registry_order(self, registry):
        assert registry.names == ["fetch_game_data", "execute_calculation", "calculate_rating_average"]
        assert len(registry) == 3

    def test_llm_tools_format(self, registry):
        tool = registry.llm_tools()[1]
        assert tool["type"] == "function"
        assert tool["function"]["name"] == "execute_calculation"
        assert tool["function"]["parameters"]["required"] == ["numbers"]

    def test_listings_format(self, registry):
        listing = registry.listings()[0]
        assert set(listing) == {"name", "description", "inputSchema"}

    def test_unknown_name_raises_tool_not_found(self, registry):
        with pytest.raises(ToolNotFound, match="Unknown tool: nonexistent_tool"):
            registry.get("nonexistent_tool")

    def test_contains(self, registry):
        assert "execute_calculation" in registry
        assert "nonexistent_tool" not in registry

    def test_duplicate_names_rejected(self):
        tool = RegisteredTool(ECHO_TOOL, lambda args: args)
        with pytest.raises(ValueError, match="Duplicate tool name"):
            ToolRegistry([tool, tool])


class TestValidateArguments:
    """Tests for validate_arguments."""

    def test_missing_required_field(self):
        with pytest.raises(InvalidArgument, match="Missing required field: text") as exc_info:
            validate_arguments(ECHO_TOOL, {})
        assert exc_info.value.field == "text"

    def test_null_counts_as_absent(self):
        with pytest.raises(InvalidArgument, match="Missing required field"):
            validate_arguments(ECHO_TOOL, {"text": None})
        assert validate_arguments(ECHO_TOOL, {"text": "hi", "times": None}) == {"text": "hi"}

    def test_wrong_type(self):
        with pytest.raises(InvalidArgument, match="text must be a string"):
            validate_arguments(ECHO_TOOL, {"text": 5})

    def test_integer_rejects_fraction(self):
        with pytest.raises(InvalidArgument, match="integer"):
            validate_arguments(ECHO_TOOL, {"text": "a", "times": 1.5})

    def test_bounds(self):
        with pytest.raises(InvalidArgument, match=">= 1"):
            validate_arguments(ECHO_TOOL, {"text": "a", "times": 0})
        with pytest.raises(InvalidArgument, match="<= 3"):
            validate_arguments(ECHO_TOOL, {"text": "a", "times": 4})

    def test_boolean(self):
        with pytest.raises(InvalidArgument, match="boolean"):
            validate_arguments(ECHO_TOOL, {"text": "a", "loud": "yes"})

    def test_undeclared_keys_dropped(self):
        cleaned = validate_arguments(ECHO_TOOL, {"text": "a", "extra": 1})
        assert cleaned == {"text": "a"}

    def test_enum_violation_in_array_items(self):
        with pytest.raises(InvalidArgument) as exc_info:
            validate_arguments(EXECUTE_CALCULATION_TOOL, {"numbers": [1], "operations": ["median"]})
        assert exc_info.value.field == "operations[0]"

    def test_nested_required_field_path(self):
        with pytest.raises(InvalidArgument) as exc_info:
            validate_arguments(CALCULATE_RATING_AVERAGE_TOOL, {"ratings": [{"id": 5}]})
        assert exc_info.value.field == "ratings[0].count"

    def test_nested_minimum(self):
        with pytest.raises(InvalidArgument) as exc_info:
            validate_arguments(
                CALCULATE_RATING_AVERAGE_TOOL,
                {"ratings": [{"id": 5, "count": 1}, {"id": 4, "count": -2}]},
            )
        assert exc_info.value.field == "ratings[1].count"

    def test_arguments_must_be_object(self):
        with pytest.raises(InvalidArgument, match="must be an object"):
            validate_arguments(ECHO_TOOL, ["text"])


class TestToolExecutor:
    """Tests for ToolExecutor.execute."""

    @pytest.mark.asyncio
    async def test_success_produces_record(self, executor):
        record = await executor.execute(
            ToolInvocationRequest(name="execute_calculation", arguments={"numbers": [1, 2, 3]})
        )
        assert record.tool_name == "execute_calculation"
        assert record.args == {"numbers": [1, 2, 3]}
        assert record.result["results"]["sum"] == 6
        assert record.timestamp > 0

    @pytest.mark.asyncio
    async def test_async_tool_awaited(self):
        async def echo(arguments):
            return {"echo": arguments["text"]}

        executor = ToolExecutor(ToolRegistry([RegisteredTool(ECHO_TOOL, echo)]))
        record = await executor.execute(ToolInvocationRequest(name="echo", arguments={"text": "hi"}))
        assert record.result == {"echo": "hi"}

    @pytest.mark.asyncio
    async def test_unknown_tool(self, executor):
        with pytest.raises(ToolNotFound):
            await executor.execute(ToolInvocationRequest(name="nonexistent_tool"))

    @pytest.mark.asyncio
    async def test_validation_failure_names_field(self, executor):
        with pytest.raises(InvalidArgument) as exc_info:
            await executor.execute(ToolInvocationRequest(name="calculate_rating_average"))
        assert exc_info.value.field == "ratings"

    @pytest.mark.asyncio
    async def test_oversized_integer_is_invalid_argument(self, executor):
        arguments = json.loads('{"numbers": [' + "9" * 400 + ", 1]}")

        with pytest.raises(InvalidArgument) as exc_info:
            await executor.execute(ToolInvocationRequest(name="execute_calculation", arguments=arguments))

        assert exc_info.value.field == "numbers[0]"

    @pytest.mark.asyncio
    async def test_fractional_page_rejected(self, executor):
        with pytest.raises(InvalidArgument, match="page must be an integer"):
            await executor.execute(
                ToolInvocationRequest(
                    name="fetch_game_data", arguments={"action": "search", "page": 1.7}
                )
            )

    @pytest.mark.asyncio
    async def test_tool_failure_wrapped_with_record(self, executor):
        request = ToolInvocationRequest(
            name="calculate_rating_average",
            arguments={"ratings": [{"id": 5, "count": 0}]},
        )

        with pytest.raises(ToolExecutionError) as exc_info:
            await executor.execute(request)

        error = exc_info.value
        assert isinstance(error.cause, InvalidState)
        assert str(error).startswith("Error executing calculate_rating_average:")
        assert error.record is not None
        assert error.record.tool_name == "calculate_rating_average"
        assert "Total rating count is zero" in error.record.result["error"]

    @pytest.mark.asyncio
    async def test_configuration_error_propagates_unwrapped(self, executor):
        with pytest.raises(ConfigurationError):
            await executor.execute(
                ToolInvocationRequest(name="fetch_game_data", arguments={"action": "genres"})
            )
