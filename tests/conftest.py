"""Shared fixtures."""

import logging

import pytest

ENV_VARS = ("WEBSITE_URLS", "REQUEST_TIMEOUT", "PING_DELAY", "PING_INTERVAL", "PRIVACY_MODE", "LOG_LEVEL")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Make sure no override from the real environment leaks into tests."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def restore_root_log_level():
    """The CLI adjusts the root logger level; put it back after each test."""
    root = logging.getLogger()
    level = root.level
    yield
    root.setLevel(level)
