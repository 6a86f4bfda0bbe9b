"""Shared fixtures for UI change detection tests."""

import pytest
import structlog


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "smoke: mark test as smoke test (fast, critical path - included in CI)"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as exercising several components together"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("UI_DIFF_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("UI_DIFF_OUTPUT_DIR", "./test-output")
    monkeypatch.delenv("UI_DIFF_CONFIG_PATH", raising=False)
    monkeypatch.delenv("UI_DIFF_LOG_JSON", raising=False)


@pytest.fixture(autouse=True)
def clear_log_context():
    """Make sure no contextvars leak between tests."""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()
