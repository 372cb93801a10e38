"""Shared fixtures for the core engine tests."""

import pytest

from config_logging import reset_config


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Every test starts from default configuration."""
    for name in ('TR_SIGNIFICANCE', 'TR_LINE_DIFF_MODE', 'TR_DIFF_TIMEOUT', 'TR_DB_PATH'):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def page_text() -> str:
    """A short page with two sentences on two lines."""
    return "بسم الله الرحمن الرحيم.\nالحمد لله رب العالمين."
