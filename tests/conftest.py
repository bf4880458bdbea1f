"""Shared test fixtures for tradechat.

Provides settings isolation and common fixtures used across unit tests.
"""

from __future__ import annotations

from collections.abc import Generator

import pytest

# Configure logging at collection time so later imports never reset handlers mid-test
import tradechat.logging_config  # noqa: F401
from tradechat.settings import Settings, reset_settings

_ENV_VARS = (
    "API_URL",
    "NEXT_PUBLIC_API_URL",
    "DEBUG",
    "LOG_LEVEL",
    "ENVIRONMENT",
    "STREAM_ENDPOINT",
    "RECOMMEND_ENDPOINT",
    "MONITORING_ENDPOINT",
)


# =============================================================================
# SETTINGS
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Keep the developer's environment out of settings and reset the cache."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def test_settings() -> Settings:
    """Provide test settings with safe defaults."""
    return Settings(
        environment="testing",
        debug=False,
        api_url="http://backend.test/api",
    )


@pytest.fixture
def mock_settings(test_settings: Settings, monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Mock get_settings() to return test settings."""
    from tradechat import settings

    monkeypatch.setattr(settings, "get_settings", lambda: test_settings)
    return test_settings
