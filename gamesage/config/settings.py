"""
Application settings and configuration management.

Uses Pydantic Settings for validation and environment variable support.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMSettings(BaseSettings):
    """LLM API configuration."""

    model: str = Field(
        default="anthropic/claude-sonnet-4-20250514",
        description="LiteLLM model string, e.g. 'anthropic/claude-sonnet-4-20250514', "
                    "'openai/gpt-4o', 'gemini/gemini-1.5-flash'. The provider prefix tells "
                    "LiteLLM which API to route the request to.",
    )
    max_tokens: int = Field(default=4096, description="Maximum tokens in response")
    temperature: float = Field(default=0.3, description="Sampling temperature")
    api_key: str = Field(default="", description="API key for the model's provider")
    max_tool_rounds: int = Field(
        default=8,
        ge=1,
        description="Maximum tool round-trips per orchestration run. A model that keeps "
                    "requesting tools past this ceiling fails the run with ToolLoopExceeded.",
    )

    model_config = SettingsConfigDict(env_prefix="LLM_")


class RAWGSettings(BaseSettings):
    """RAWG game-data API configuration."""

    api_key: str = Field(default="", description="RAWG API key (https://rawg.io/apidocs)")
    base_url: str = Field(default="https://api.rawg.io/api", description="RAWG API base URL")
    timeout: float = Field(default=15.0, gt=0, description="HTTP timeout in seconds")
    default_page_size: int = Field(default=10, ge=1, description="Page size when none is given")
    max_page_size: int = Field(
        default=40, ge=1, description="Largest page size RAWG accepts; larger requests are clamped"
    )

    model_config = SettingsConfigDict(env_prefix="RAWG_")


class ServerSettings(BaseSettings):
    """HTTP service configuration (chat service and tool server)."""

    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=8000, description="Chat service port")
    tool_server_port: int = Field(default=8001, description="Tool server port")
    client_token: str = Field(
        default="",
        description="Shared secret expected in the chat request's clientToken. Empty disables the check.",
    )
    shared_secret: str = Field(
        default="",
        description="Shared secret expected in the tool server's x-authentication-secret "
                    "header. Empty leaves the tool server open.",
    )
    tool_server_url: str | None = Field(
        default=None,
        description="If set, the chat service executes tools through this remote tool server "
                    "instead of in-process.",
    )
    cors_origins: list[str] = Field(
        default_factory=list,
        description="Allowed CORS origins. Set via SERVER__CORS_ORIGINS='[\"http://localhost:3000\"]'",
    )
    stream_queue_size: int = Field(
        default=16, ge=1, description="Capacity of the event channel between the loop and the SSE writer"
    )

    model_config = SettingsConfigDict(env_prefix="SERVER_")


class Settings(BaseSettings):
    """Main application settings."""

    # Environment
    environment: Literal["development", "production"] = Field(
        default="development", description="Deployment environment"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_file: Path | None = Field(default=None, description="Log file path")

    # Sub-configurations
    llm: LLMSettings = Field(default_factory=LLMSettings)
    rawg: RAWGSettings = Field(default_factory=RAWGSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def load_settings(env_file: str | Path | None = None) -> Settings:
    """
    Load settings from file and environment.

    Args:
        env_file: Path to .env file (optional)

    Returns:
        Loaded settings instance
    """
    global _settings
    if env_file:
        _settings = Settings(_env_file=env_file)
    else:
        _settings = Settings()
    return _settings
