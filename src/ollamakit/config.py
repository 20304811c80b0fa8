"""ollamakit configuration — dataclass-based with env var overrides."""

import logging
import os
from dataclasses import dataclass, field

from .errors import ConfigError

log = logging.getLogger("ollamakit.config")


def _env_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e


def _env_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e


@dataclass(slots=True)
class OllamaConfig:
    base_url: str = field(default_factory=lambda: os.getenv("OLLAMA_URL", "http://localhost:11434"))
    model: str = field(default_factory=lambda: os.getenv("OLLAMA_MODEL", "qwen2.5:7b"))
    timeout_s: float = field(default_factory=lambda: _env_float("OLLAMA_TIMEOUT_S", "120"))
    connect_timeout_s: float = field(default_factory=lambda: _env_float("OLLAMA_CONNECT_TIMEOUT_S", "10"))


@dataclass(slots=True)
class ToolConfig:
    max_tool_rounds: int = field(default_factory=lambda: _env_int("MAX_TOOL_ROUNDS", "3"))


@dataclass(slots=True)
class PullConfig:
    retries: int = field(default_factory=lambda: _env_int("PULL_RETRIES", "0"))
    base_delay_s: float = field(default_factory=lambda: _env_float("PULL_BASE_DELAY_S", "3"))


@dataclass(slots=True)
class StreamConfig:
    queue_size: int = field(default_factory=lambda: _env_int("STREAM_QUEUE_SIZE", "256"))


@dataclass(slots=True)
class ImageConfig:
    url_timeout_s: float = field(default_factory=lambda: _env_float("IMAGE_URL_TIMEOUT_S", "10"))


@dataclass(slots=True)
class MCPConfig:
    request_timeout_s: float = field(default_factory=lambda: _env_float("MCP_REQUEST_TIMEOUT_S", "30"))


@dataclass(slots=True)
class AppConfig:
    ollama: OllamaConfig = field(default_factory=OllamaConfig)
    tools: ToolConfig = field(default_factory=ToolConfig)
    pull: PullConfig = field(default_factory=PullConfig)
    stream: StreamConfig = field(default_factory=StreamConfig)
    image: ImageConfig = field(default_factory=ImageConfig)
    mcp: MCPConfig = field(default_factory=MCPConfig)


# Singleton instance
_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Return the global AppConfig singleton, creating it on first call."""
    global _config
    if _config is None:
        _config = AppConfig()
    return _config


def reset_config() -> AppConfig:
    """Force re-creation of the config singleton from env vars.

    Call this after changing environment variables so the in-memory config
    reflects them.
    """
    global _config
    _config = AppConfig()
    log.info("Config singleton re-created from env vars")
    return _config
