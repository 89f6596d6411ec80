"""
LLM Orchestration Layer.

Drives the model ↔ tool loop via LiteLLM:

    chat endpoint  →  LLMOrchestrator.start(message, history)  →  OrchestrationRun
                                                                      ↓
                                   acompletion()  ←→  ToolExecutor (RAWG, statistics)
                                                                      ↓
                                                StreamEvent sequence → SSE frames

Key responsibilities:
- Normalize caller history and inject the system prompt
- Offer every registered tool to the model and execute the first requested call
- Enforce the tool round-trip ceiling
- Classify provider errors (rate limit, bad key) for user-facing messages
"""

from gamesage.llm.errors import classify_error
from gamesage.llm.models import (
    LLMError,
    LLMResponse,
    Message,
    ModelAuthError,
    ModelRateLimited,
    OrchestrationState,
    StreamEvent,
    TokenUsage,
    ToolLoopExceeded,
)
from gamesage.llm.orchestrator import LLMOrchestrator, OrchestrationRun, load_system_template

__all__ = [
    "LLMOrchestrator",
    "OrchestrationRun",
    "OrchestrationState",
    "LLMResponse",
    "LLMError",
    "Message",
    "ModelAuthError",
    "ModelRateLimited",
    "StreamEvent",
    "TokenUsage",
    "ToolLoopExceeded",
    "classify_error",
    "load_system_template",
]
