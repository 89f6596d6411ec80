"""
Models and errors for the LLM orchestration layer.

- Message: one conversation turn supplied by the caller
- OrchestrationState: lifecycle of a single orchestration run
- StreamEvent: progress events emitted by a run (tool_start, tool_complete,
  response, done, error)
- TokenUsage / LLMResponse: aggregated result of a completed run
- LLMError and subclasses: failures that abort a run
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from gamesage.tools.models import ToolExecutionRecord


class LLMError(Exception):
    """
    An orchestration run failed at the model level.

    Args:
        message: Human-readable explanation, safe to show to the end user
        cause: The underlying provider exception, if any
    """

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class ModelRateLimited(LLMError):
    """The provider rejected the call for rate-limit or quota reasons."""


class ModelAuthError(LLMError):
    """The provider rejected the API key."""


class ToolLoopExceeded(LLMError):
    """The model kept requesting tools past the configured round-trip ceiling."""

    def __init__(self, max_rounds: int):
        super().__init__(
            f"The model requested more than {max_rounds} tool calls without answering. "
            f"Try asking a narrower question."
        )
        self.max_rounds = max_rounds


class OrchestrationState(str, Enum):
    """
    Lifecycle of one run. AWAITING_MODEL is initial; DONE and FAILED are terminal.

        AWAITING_MODEL -> MODEL_REQUESTED_TOOL -> EXECUTING_TOOL -> AWAITING_MODEL
        AWAITING_MODEL -> MODEL_RESPONDED -> DONE
        any non-terminal -> FAILED
    """

    AWAITING_MODEL = "awaiting_model"
    MODEL_REQUESTED_TOOL = "model_requested_tool"
    EXECUTING_TOOL = "executing_tool"
    MODEL_RESPONDED = "model_responded"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (OrchestrationState.DONE, OrchestrationState.FAILED)


class Message(BaseModel):
    """
    One prior conversation turn.

    Clients send richer objects (ids, timestamps, tool executions); only
    role and content are used. Content is plain text or a structured
    payload (content blocks such as tool results), passed to the model as-is.
    """

    role: Literal["user", "assistant", "system"]
    content: str | list[dict[str, Any]] | dict[str, Any]

    model_config = ConfigDict(extra="ignore")


EventType = Literal["tool_start", "tool_complete", "response", "done", "error"]


class StreamEvent(BaseModel):
    """A single progress event of an orchestration run."""

    type: EventType
    data: Any = None

    @classmethod
    def tool_start(cls, record: ToolExecutionRecord) -> StreamEvent:
        return cls(type="tool_start", data=record.to_wire())

    @classmethod
    def tool_complete(cls, tool_name: str) -> StreamEvent:
        return cls(type="tool_complete", data={"toolName": tool_name})

    @classmethod
    def response(cls, text: str) -> StreamEvent:
        return cls(type="response", data=text)

    @classmethod
    def done(cls, records: list[ToolExecutionRecord]) -> StreamEvent:
        return cls(type="done", data={"toolExecutions": [r.to_wire() for r in records]})

    @classmethod
    def error(cls, message: str) -> StreamEvent:
        return cls(type="error", data=message)

    @property
    def is_terminal(self) -> bool:
        return self.type in ("done", "error")


class TokenUsage(BaseModel):
    """Token counts summed over every model call in a run."""

    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class LLMResponse(BaseModel):
    """Final result of a completed orchestration run."""

    text: str
    tool_executions: list[ToolExecutionRecord] = Field(default_factory=list)
    model: str = ""
    usage: TokenUsage = Field(default_factory=TokenUsage)

    def to_wire(self) -> dict[str, Any]:
        """JSON body returned by the non-streaming chat endpoint."""
        return {
            "message": self.text,
            "toolExecutions": [r.to_wire() for r in self.tool_executions],
            "model": self.model,
            "usage": {
                "promptTokens": self.usage.prompt_tokens,
                "completionTokens": self.usage.completion_tokens,
                "totalTokens": self.usage.total_tokens,
            },
        }
