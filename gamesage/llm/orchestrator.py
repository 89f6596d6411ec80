"""
LLM Orchestrator: the tool-calling loop.

Data flow:
    caller message + history → LLMOrchestrator.start() → OrchestrationRun
                                                            ↓
                           LiteLLM acompletion()  ←→  ToolExecutor (RAWG / statistics)
                                                            ↓
                                       StreamEvent sequence → chat endpoints

One OrchestrationRun is one user-message-to-answer cycle. It owns the
growing message list and the tool execution records; nothing else mutates
them. The orchestrator itself holds only read-only configuration and can be
shared by concurrent runs.

Design decisions:
- Uses LiteLLM for provider abstraction, so the model is a config string.
- Only the first tool call of a model turn is honoured. The assistant turn
  appended to the transcript carries just that call, so the provider never
  sees a tool call without a matching result.
- Tool errors are passed back to the model as error text so it can
  recover. ConfigurationError is the exception: it aborts the run.
- max_tool_rounds is a hard ceiling. A model that asks for another tool
  after that many round-trips fails the run with ToolLoopExceeded.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Iterable, Sequence
from datetime import date
from pathlib import Path
from typing import Any

from litellm import acompletion

from gamesage.config.settings import LLMSettings
from gamesage.llm.errors import classify_error
from gamesage.llm.models import (
    LLMError,
    LLMResponse,
    Message,
    OrchestrationState,
    StreamEvent,
    TokenUsage,
    ToolLoopExceeded,
)
from gamesage.tools.errors import ConfigurationError, ToolError, ToolExecutionError
from gamesage.tools.executor import ToolExecutor
from gamesage.tools.models import ToolExecutionRecord, ToolInvocationRequest

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_TEMPLATE_PATH = Path(__file__).parent.parent / "prompts" / "system.txt"

NO_RESPONSE_TEXT = "No response generated"
GENERIC_FAILURE_TEXT = "Failed to process request"

_TRANSITIONS: dict[OrchestrationState, set[OrchestrationState]] = {
    OrchestrationState.AWAITING_MODEL: {
        OrchestrationState.MODEL_REQUESTED_TOOL,
        OrchestrationState.MODEL_RESPONDED,
    },
    OrchestrationState.MODEL_REQUESTED_TOOL: {OrchestrationState.EXECUTING_TOOL},
    OrchestrationState.EXECUTING_TOOL: {OrchestrationState.AWAITING_MODEL},
    OrchestrationState.MODEL_RESPONDED: {OrchestrationState.DONE},
    OrchestrationState.DONE: set(),
    OrchestrationState.FAILED: set(),
}


def _decode_arguments(raw: Any) -> Any:
    # Most providers send a JSON string; a few hand back an already-parsed dict.
    if isinstance(raw, dict):
        return raw
    return json.loads(raw or "{}")


def _encode_arguments(raw: Any) -> str:
    return raw if isinstance(raw, str) else json.dumps(raw or {})


def load_system_template(path: Path = DEFAULT_SYSTEM_TEMPLATE_PATH) -> str:
    """Read the system prompt template shipped with the package."""
    return path.read_text(encoding="utf-8")


def normalize_history(
    message: str, history: Iterable[Message | dict[str, Any]] = ()
) -> list[dict[str, Any]]:
    """
    Build the conversation part of the message list.

    System turns from the client are dropped, then leading non-user turns
    (typically a canned greeting) are stripped so the transcript starts with
    a user turn. The new user message goes last.
    """
    turns = [turn if isinstance(turn, Message) else Message.model_validate(turn) for turn in history]
    turns = [turn for turn in turns if turn.role != "system"]

    start = 0
    while start < len(turns) and turns[start].role != "user":
        start += 1

    messages = [{"role": turn.role, "content": turn.content} for turn in turns[start:]]
    messages.append({"role": "user", "content": message})
    return messages


class LLMOrchestrator:
    """
    Drives the model ↔ tool loop.

    Args:
        settings: LLM configuration (model, temperature, max_tokens, api_key, max_tool_rounds)
        system_template: System prompt; "{current_date}" is replaced per run
        executor: Tool executor bound to the tool registry offered to the model
        max_tool_rounds: Overrides settings.max_tool_rounds when given
    """

    def __init__(
        self,
        settings: LLMSettings,
        system_template: str,
        executor: ToolExecutor,
        max_tool_rounds: int | None = None,
    ):
        self._settings = settings
        self._system_template = system_template
        self._executor = executor
        self._max_tool_rounds = (
            max_tool_rounds if max_tool_rounds is not None else settings.max_tool_rounds
        )
        if self._max_tool_rounds < 1:
            raise ValueError("max_tool_rounds must be at least 1")

    @property
    def max_tool_rounds(self) -> int:
        return self._max_tool_rounds

    @property
    def executor(self) -> ToolExecutor:
        return self._executor

    def _build_system_prompt(self, today: date | None = None) -> str:
        today = today or date.today()
        return self._system_template.replace("{current_date}", today.isoformat())

    def start(
        self, message: str, history: Iterable[Message | dict[str, Any]] = ()
    ) -> OrchestrationRun:
        """
        Prepare a run for one user message. Iterate the run to drive it.

        Raises:
            ValueError: If message is empty or whitespace-only
            ConfigurationError: If no LLM API key is configured
        """
        message = message.strip()
        if not message:
            raise ValueError("Message cannot be empty")
        if not self._settings.api_key:
            raise ConfigurationError("LLM API key not configured. Set LLM_API_KEY in your environment.")

        messages = [{"role": "system", "content": self._build_system_prompt()}]
        messages.extend(normalize_history(message, history))
        return OrchestrationRun(self, messages)

    async def generate_response(
        self, message: str, history: Iterable[Message | dict[str, Any]] = ()
    ) -> LLMResponse:
        """
        Run to completion without streaming.

        Raises:
            ValueError: If message is empty
            ConfigurationError: If the LLM or a tool backend is not configured
            LLMError: If the model call fails or the tool loop exceeds its ceiling
        """
        run = self.start(message, history)
        async for _event in run:
            pass
        if run.error is not None:
            raise run.error
        return run.result()


class OrchestrationRun:
    """
    State of one orchestration run.

    Iterating the run (``async for event in run``) drives it and yields
    StreamEvents in order. The last event is always ``done`` or ``error``.
    A run can be iterated only once.
    """

    def __init__(self, orchestrator: LLMOrchestrator, messages: list[dict[str, Any]]):
        self._orchestrator = orchestrator
        self.messages = messages
        self.tool_executions: list[ToolExecutionRecord] = []
        self.state = OrchestrationState.AWAITING_MODEL
        self.usage = TokenUsage()
        self.model = ""
        self.text: str | None = None
        self.error: Exception | None = None
        self.tool_rounds = 0
        self._started = False

    def _transition(self, new_state: OrchestrationState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal state transition {self.state.name} -> {new_state.name}")
        self.state = new_state

    def _fail(self, error: Exception) -> None:
        self.error = error
        self.state = OrchestrationState.FAILED

    def result(self) -> LLMResponse:
        if self.state is not OrchestrationState.DONE:
            raise RuntimeError(f"Run has not completed (state: {self.state.name})")
        return LLMResponse(
            text=self.text or "",
            tool_executions=list(self.tool_executions),
            model=self.model,
            usage=self.usage,
        )

    def __aiter__(self) -> AsyncIterator[StreamEvent]:
        return self.events()

    async def events(self) -> AsyncIterator[StreamEvent]:
        if self._started:
            raise RuntimeError("An orchestration run can only be iterated once")
        self._started = True

        try:
            async for event in self._drive():
                yield event
        except (LLMError, ConfigurationError) as e:
            logger.error(f"Orchestration failed ({type(e).__name__}): {e}")
            self._fail(e)
            yield StreamEvent.error(str(e))
        except Exception as e:
            logger.exception(f"Unexpected orchestration failure: {e}")
            self._fail(e)
            yield StreamEvent.error(GENERIC_FAILURE_TEXT)

    async def _drive(self) -> AsyncIterator[StreamEvent]:
        settings = self._orchestrator._settings
        max_rounds = self._orchestrator.max_tool_rounds
        tool_definitions = self._orchestrator.executor.registry.llm_tools()

        while True:
            response = await self._complete(settings, tool_definitions)
            assistant_message = response.choices[0].message

            if assistant_message.tool_calls:
                self._transition(OrchestrationState.MODEL_REQUESTED_TOOL)
                if self.tool_rounds >= max_rounds:
                    raise ToolLoopExceeded(max_rounds)

                tool_call = assistant_message.tool_calls[0]
                if len(assistant_message.tool_calls) > 1:
                    logger.info(
                        f"Model requested {len(assistant_message.tool_calls)} tools in one turn; "
                        f"only {tool_call.function.name} will run"
                    )

                self._transition(OrchestrationState.EXECUTING_TOOL)
                record, result_text = await self._run_tool(tool_call)
                self.tool_rounds += 1

                self.messages.append({
                    "role": "assistant",
                    "content": assistant_message.content,
                    "tool_calls": [
                        {
                            "id": tool_call.id,
                            "type": "function",
                            "function": {
                                "name": tool_call.function.name,
                                "arguments": _encode_arguments(tool_call.function.arguments),
                            },
                        }
                    ],
                })
                self.messages.append({
                    "role": "tool",
                    "tool_call_id": tool_call.id,
                    "content": result_text,
                })

                if record is not None:
                    self.tool_executions.append(record)
                    yield StreamEvent.tool_start(record)
                yield StreamEvent.tool_complete(tool_call.function.name)

                self._transition(OrchestrationState.AWAITING_MODEL)
                continue

            self._transition(OrchestrationState.MODEL_RESPONDED)
            text = assistant_message.content
            if not isinstance(text, str) or not text.strip():
                logger.warning("Model finished without a text block")
                text = NO_RESPONSE_TEXT
            self.text = text
            yield StreamEvent.response(text)

            self._transition(OrchestrationState.DONE)
            yield StreamEvent.done(self.tool_executions)
            return

    async def _complete(self, settings: LLMSettings, tool_definitions: Sequence[dict[str, Any]]):
        call_kwargs: dict[str, Any] = {
            "model": settings.model,
            "messages": self.messages,
            "temperature": settings.temperature,
            "max_tokens": settings.max_tokens,
            "api_key": settings.api_key,
        }
        if tool_definitions:
            call_kwargs["tools"] = list(tool_definitions)

        try:
            response = await acompletion(**call_kwargs)
        except Exception as e:
            raise classify_error(e) from e

        usage = getattr(response, "usage", None)
        if usage is not None:
            self.usage.prompt_tokens += usage.prompt_tokens or 0
            self.usage.completion_tokens += usage.completion_tokens or 0
        self.model = response.model
        return response

    async def _run_tool(self, tool_call) -> tuple[ToolExecutionRecord | None, str]:
        """
        Execute one tool call and render its result for the transcript.

        Returns the dispatch record (None when the call failed lookup or
        validation) and the text sent back to the model.
        """
        tool_name = tool_call.function.name
        try:
            arguments = _decode_arguments(tool_call.function.arguments)
        except json.JSONDecodeError as e:
            logger.warning(f"Tool '{tool_name}' called with malformed arguments: {e}")
            return None, f"Error: arguments for '{tool_name}' are not valid JSON: {e}"
        if not isinstance(arguments, dict):
            return None, f"Error: arguments for '{tool_name}' must be a JSON object"

        request = ToolInvocationRequest(name=tool_name, arguments=arguments, call_id=tool_call.id)
        try:
            record = await self._orchestrator.executor.execute(request)
        except ToolExecutionError as e:
            return e.record, f"Error: {e}"
        except ToolError as e:
            logger.warning(f"Tool '{tool_name}' rejected: {e}")
            return None, f"Error: Tool '{tool_name}' failed: {e}"

        return record, json.dumps(record.result)
