"""Root pytest configuration for all tests."""

from __future__ import annotations

import pytest

# asyncio_mode is also set in pyproject.toml
pytest_plugins = ("pytest_asyncio",)

_ENV_VARS = (
    "APP_ENV",
    "ENV",
    "TEMPLATES_RELOAD_QUIET",
    "TEMPLATES_RELOAD_TRANSPORT",
    "TEMPLATES_RELOAD_POLL_INTERVAL_MS",
    "TEMPLATES_RELOAD_LOG",
)


@pytest.fixture(scope="session")
def anyio_backend():
    """Set anyio backend to asyncio."""
    return "asyncio"


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Run every test with a clean environment and an empty working directory."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
