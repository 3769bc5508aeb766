"""
Service Configuration
----------------------
Settings are read once at process start and then frozen:

    config/config.yaml  (optional, sectioned)
        |
        v
    environment overrides  (.env is loaded first via python-dotenv)
        |
        v
    Settings  (immutable pydantic model, passed explicitly to components)
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from docqa.errors import ConfigError

DEFAULT_CONFIG_PATH = "config/config.yaml"

# env var -> Settings field
_ENV_OVERRIDES: dict[str, str] = {
    "DOCQA_BASE_URL": "base_url",
    "DOCQA_MODEL": "model",
    "DOCQA_EMBEDDING_MODEL": "embedding_model",
    "DOCQA_TOP_K": "top_k",
    "DOCQA_DOCS_DIR": "docs_dir",
    "DOCQA_PORT": "port",
    "LOG_LEVEL": "log_level",
}


class StreamingSettings(BaseModel):
    """Pacing knobs for the streaming response controller."""

    model_config = ConfigDict(frozen=True)

    start_threshold: int = Field(default=128, ge=1)
    start_timeout_ms: int = Field(default=1000, ge=0)
    min_send_delta: int = Field(default=8, ge=1)
    flush_interval_ms: int = Field(default=120, gt=0)

    @property
    def start_timeout_s(self) -> float:
        return self.start_timeout_ms / 1000

    @property
    def flush_interval_s(self) -> float:
        return self.flush_interval_ms / 1000


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Provider
    api_key: str = ""
    base_url: str = "https://openrouter.ai/api/v1"
    model: str = "gpt-4o-mini"
    embedding_model: str = "text-embedding-3-small"
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    request_timeout_s: float = Field(default=60.0, gt=0)

    # Retrieval
    top_k: int = Field(default=4, ge=1)
    min_docs_score: float = 0.25
    min_chunk_score: float = 0.2
    chunk_size: int = Field(default=1000, ge=1)
    docs_dir: str = "data/docs"

    # Server / logging
    host: str = "0.0.0.0"
    port: int = 5000
    log_level: str = "INFO"
    log_file: Optional[str] = "logs/docqa.log"

    streaming: StreamingSettings = Field(default_factory=StreamingSettings)


def _flatten(raw: dict[str, Any]) -> dict[str, Any]:
    """Map the sectioned YAML layout onto flat Settings fields."""
    values: dict[str, Any] = {}
    for section in ("provider", "retrieval", "server"):
        values.update(raw.get(section) or {})

    log_cfg = raw.get("logging") or {}
    if "level" in log_cfg:
        values["log_level"] = log_cfg["level"]
    if "file" in log_cfg:
        values["log_file"] = log_cfg["file"]

    if raw.get("streaming"):
        values["streaming"] = raw["streaming"]
    return values


def load_settings(config_path: Optional[str] = None) -> Settings:
    """
    Build the immutable Settings value.

    A missing YAML file is not an error (defaults apply); a malformed one is.
    """
    load_dotenv()

    path = Path(config_path or os.getenv("DOCQA_CONFIG", DEFAULT_CONFIG_PATH))
    values: dict[str, Any] = {}
    if path.exists():
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"Config root in {path} must be a mapping")
        values = _flatten(raw)
    elif config_path:
        raise ConfigError(f"Config file not found: {path}")

    for env_name, field_name in _ENV_OVERRIDES.items():
        env_value = os.getenv(env_name)
        if env_value:
            values[field_name] = env_value

    # OpenRouter key wins; the OpenAI name is accepted for compatibility
    api_key = os.getenv("OPENROUTER_API_KEY") or os.getenv("OPENAI_API_KEY")
    if api_key:
        values["api_key"] = api_key

    try:
        return Settings(**values)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
