"""
Classification of provider errors.

Providers report rate limits and bad keys in free-form text, and the
wording differs between Anthropic, OpenAI, and Gemini (and LiteLLM's
wrappers around them). The rules below are checked top to bottom; the
first rule with a matching substring decides the error class and the
message shown to the user. Unmatched errors become a plain LLMError.
"""

from __future__ import annotations

from dataclasses import dataclass

from gamesage.llm.models import LLMError, ModelAuthError, ModelRateLimited


@dataclass(frozen=True)
class ErrorRule:
    patterns: tuple[str, ...]
    error_class: type[LLMError]
    user_message: str

    def matches(self, text: str) -> bool:
        lowered = text.lower()
        return any(pattern.lower() in lowered for pattern in self.patterns)


ERROR_RULES: tuple[ErrorRule, ...] = (
    ErrorRule(
        patterns=("rate_limit", "ratelimit", "rate limit", "quota", "RESOURCE_EXHAUSTED"),
        error_class=ModelRateLimited,
        user_message="API rate limit exceeded. Please wait a few minutes and try again.",
    ),
    ErrorRule(
        patterns=("authentication", "api_key", "API_KEY_INVALID", "invalid api key", "invalid x-api-key"),
        error_class=ModelAuthError,
        user_message="Invalid API key. Please check the LLM_API_KEY setting.",
    ),
)


def classify_error(error: Exception) -> LLMError:
    """Map a provider exception to an LLMError subclass with a user-facing message."""
    if isinstance(error, LLMError):
        return error

    text = f"{type(error).__name__}: {error}"
    for rule in ERROR_RULES:
        if rule.matches(text):
            return rule.error_class(rule.user_message, cause=error)
    return LLMError(f"LLM API call failed: {error}", cause=error)
