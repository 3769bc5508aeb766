"""Tests for settings loading."""

import pytest
from pydantic import ValidationError

from docqa.config import Settings, StreamingSettings, load_settings
from docqa.errors import ConfigError

_ENV_VARS = (
    "DOCQA_CONFIG",
    "DOCQA_BASE_URL",
    "DOCQA_MODEL",
    "DOCQA_EMBEDDING_MODEL",
    "DOCQA_TOP_K",
    "DOCQA_DOCS_DIR",
    "DOCQA_PORT",
    "LOG_LEVEL",
    "OPENROUTER_API_KEY",
    "OPENAI_API_KEY",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # The default config path is relative to the working directory
    monkeypatch.chdir(tmp_path)
    return monkeypatch


def write_config(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_defaults_when_no_config_file(clean_env):
    settings = load_settings()
    assert settings.top_k == 4
    assert settings.min_docs_score == 0.25
    assert settings.min_chunk_score == 0.2
    assert settings.streaming == StreamingSettings()
    assert settings.streaming.start_timeout_s == 1.0
    assert settings.streaming.flush_interval_s == 0.12


def test_sectioned_yaml(clean_env, tmp_path):
    path = write_config(
        tmp_path,
        """
provider:
  model: "anthropic/claude-3-haiku"
retrieval:
  top_k: 6
  docs_dir: "corpus"
streaming:
  start_threshold: 64
logging:
  level: "DEBUG"
  file: null
""",
    )
    settings = load_settings(path)
    assert settings.model == "anthropic/claude-3-haiku"
    assert settings.top_k == 6
    assert settings.docs_dir == "corpus"
    assert settings.streaming.start_threshold == 64
    assert settings.streaming.min_send_delta == 8
    assert settings.log_level == "DEBUG"
    assert settings.log_file is None


def test_env_overrides_yaml(clean_env, tmp_path):
    path = write_config(tmp_path, "retrieval:\n  top_k: 6\n")
    clean_env.setenv("DOCQA_TOP_K", "2")
    clean_env.setenv("DOCQA_MODEL", "openai/gpt-4o")
    clean_env.setenv("OPENAI_API_KEY", "sk-openai")

    settings = load_settings(path)

    assert settings.top_k == 2
    assert settings.model == "openai/gpt-4o"
    assert settings.api_key == "sk-openai"


def test_openrouter_key_preferred(clean_env):
    clean_env.setenv("OPENAI_API_KEY", "sk-openai")
    clean_env.setenv("OPENROUTER_API_KEY", "sk-or")
    assert load_settings().api_key == "sk-or"


def test_config_path_from_env(clean_env, tmp_path):
    path = write_config(tmp_path, "server:\n  port: 8080\n")
    clean_env.setenv("DOCQA_CONFIG", path)
    assert load_settings().port == 8080


def test_missing_explicit_file(clean_env, tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_settings(str(tmp_path / "nope.yaml"))


def test_invalid_values(clean_env, tmp_path):
    path = write_config(tmp_path, "retrieval:\n  top_k: 0\n")
    with pytest.raises(ConfigError, match="Invalid configuration"):
        load_settings(path)


def test_malformed_yaml(clean_env, tmp_path):
    path = write_config(tmp_path, "retrieval: [unclosed\n")
    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_settings(path)


def test_settings_are_frozen():
    settings = Settings()
    with pytest.raises(ValidationError):
        settings.top_k = 10
