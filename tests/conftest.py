"""Root pytest configuration for all tests."""

from __future__ import annotations

import pytest

from streamshell.config import reset_config
from streamshell.session import Session
from tests.utils import ManualExecutor, echo_executor

# asyncio_mode is set in pyproject.toml
pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Keep the config cache and SS_* variables out of every test."""
    monkeypatch.delenv("SS_LOG", raising=False)
    monkeypatch.delenv("SS_PROMPT", raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def echo_session() -> Session:
    return Session(echo_executor)


@pytest.fixture
def manual() -> ManualExecutor:
    return ManualExecutor()


@pytest.fixture
def manual_session(manual: ManualExecutor) -> Session:
    return Session(manual)
