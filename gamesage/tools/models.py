"""
Data structures shared by the tool layer.

- ToolParameter: one typed, optionally-required parameter in a tool's input shape
- ToolSchema: a tool's name, description, and parameter shape
- ToolInvocationRequest: a model's request to run a tool
- ToolExecutionRecord: what ran, with which arguments, when, and what it returned

ToolSchema renders itself in the two wire formats the system needs: the
LiteLLM/OpenAI function format sent to the model, and the
{name, description, inputSchema} listing published by the tool server.
"""

from __future__ import annotations

import time
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ParamType = Literal["string", "number", "integer", "boolean", "array", "object"]


class ToolParameter(BaseModel):
    """
    Type-tagged description of a single tool parameter.

    Arrays describe their elements via ``items``; objects describe their
    fields via ``properties`` (each with its own ``required`` flag).
    """

    type: ParamType
    description: str = ""
    required: bool = False
    enum: list[str] | None = None
    minimum: float | None = None
    maximum: float | None = None
    items: ToolParameter | None = None
    properties: dict[str, ToolParameter] | None = None

    model_config = ConfigDict(frozen=True)

    def to_json_schema(self) -> dict[str, Any]:
        """Render this parameter as a JSON Schema fragment."""
        schema: dict[str, Any] = {"type": self.type}
        if self.description:
            schema["description"] = self.description
        if self.enum is not None:
            schema["enum"] = list(self.enum)
        if self.minimum is not None:
            schema["minimum"] = self.minimum
        if self.maximum is not None:
            schema["maximum"] = self.maximum
        if self.items is not None:
            schema["items"] = self.items.to_json_schema()
        if self.properties is not None:
            schema["properties"] = {
                name: param.to_json_schema() for name, param in self.properties.items()
            }
            schema["required"] = [
                name for name, param in self.properties.items() if param.required
            ]
        return schema

    @classmethod
    def from_json_schema(cls, schema: dict[str, Any], required: bool = False) -> ToolParameter:
        """Build a parameter from a JSON Schema fragment (inverse of to_json_schema)."""
        param_type = schema.get("type")
        if param_type is None and "enum" in schema:
            param_type = "string"

        items = schema.get("items")
        properties = schema.get("properties")
        nested_required = set(schema.get("required", []))

        return cls(
            type=param_type,
            description=schema.get("description", ""),
            required=required,
            enum=schema.get("enum"),
            minimum=schema.get("minimum"),
            maximum=schema.get("maximum"),
            items=cls.from_json_schema(items) if items is not None else None,
            properties=(
                {
                    name: cls.from_json_schema(prop, required=name in nested_required)
                    for name, prop in properties.items()
                }
                if properties is not None
                else None
            ),
        )


class ToolSchema(BaseModel):
    """
    Declarative description of one tool.

    The description is read by the model when it chooses a tool, so it must
    spell out valid enum values, which fields are required, and numeric bounds.
    """

    name: str = Field(pattern=r"^[A-Za-z0-9_-]{1,64}$", description="Unique tool identifier")
    description: str = Field(min_length=1, description="Tool description shown to the model")
    parameters: dict[str, ToolParameter] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @property
    def required_parameters(self) -> list[str]:
        return [name for name, param in self.parameters.items() if param.required]

    def input_schema(self) -> dict[str, Any]:
        """JSON Schema object describing the tool's argument bag."""
        return {
            "type": "object",
            "properties": {
                name: param.to_json_schema() for name, param in self.parameters.items()
            },
            "required": self.required_parameters,
        }

    def to_llm_tool(self) -> dict[str, Any]:
        """
        Render in LiteLLM's expected (OpenAI) tool format:
            {"type": "function", "function": {"name": ..., "description": ..., "parameters": ...}}
        """
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema(),
            },
        }

    def to_listing(self) -> dict[str, Any]:
        """Render as a tool-server listing entry."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema(),
        }

    @classmethod
    def from_listing(cls, data: dict[str, Any]) -> ToolSchema:
        """Build a schema from a tool-server listing entry."""
        input_schema = data.get("inputSchema") or data.get("input_schema") or {}
        required = set(input_schema.get("required", []))
        return cls(
            name=data["name"],
            description=data.get("description") or data["name"],
            parameters={
                name: ToolParameter.from_json_schema(prop, required=name in required)
                for name, prop in input_schema.get("properties", {}).items()
            },
        )


class ToolInvocationRequest(BaseModel):
    """A model's request to run one tool."""

    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    call_id: str | None = Field(
        default=None,
        description="Opaque id from the model, echoed back with the tool result",
    )


def _now_ms() -> int:
    return int(time.time() * 1000)


class ToolExecutionRecord(BaseModel):
    """
    Record of one dispatched tool call.

    Kept for observability: streamed to the client in tool_start events and
    returned in the final done event. The result is stored raw and never
    re-validated.
    """

    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)
    timestamp: int = Field(default_factory=_now_ms, description="Dispatch time, epoch milliseconds")
    result: Any = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Serialize with camelCase keys ({toolName, args, timestamp, result})."""
        return self.model_dump(mode="json", by_alias=True)


ToolParameter.model_rebuild()
