"""Pytest configuration and fixtures."""

import os

import pytest

from docqa.config import Settings, StreamingSettings


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Keep tests offline and untraced."""
    os.environ["LANGSMITH_TRACING"] = "false"
    os.environ["LANGCHAIN_TRACING_V2"] = "false"
    os.environ.setdefault("OPENROUTER_API_KEY", "test-key")


@pytest.fixture
def fast_streaming() -> StreamingSettings:
    """Short timers so timeout and tick behaviour is observable in tests."""
    return StreamingSettings(
        start_threshold=128,
        start_timeout_ms=50,
        min_send_delta=8,
        flush_interval_ms=30,
    )


@pytest.fixture
def settings(tmp_path, fast_streaming) -> Settings:
    return Settings(
        api_key="test-key",
        docs_dir=str(tmp_path / "docs"),
        top_k=4,
        streaming=fast_streaming,
    )
