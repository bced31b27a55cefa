"""Pytest configuration and fixtures."""

from __future__ import annotations

import logging

import pytest
import structlog

from tests.fixtures.conversations import FakeConversationSource


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point config at a temp dir and clear Chatwoot env vars.

    Also disables the JSON log file so CLI tests never write to ~/.local.
    """
    config_dir = tmp_path / "config"
    monkeypatch.setattr("chatseek.config.CONFIG_DIR", config_dir)
    monkeypatch.setattr("chatseek.config.CONFIG_FILE", config_dir / "config.json")
    for var in ("CHATWOOT_URL", "CHATWOOT_ACCOUNT_ID", "CHATWOOT_API_TOKEN"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("CHATSEEK_LOG", "none")
    return config_dir


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo configure_logging so handlers don't outlive CliRunner's streams."""
    yield
    structlog.reset_defaults()
    logger = logging.getLogger("chatseek")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True


@pytest.fixture
def chatwoot_env(monkeypatch):
    """Configure Chatwoot through the environment."""
    monkeypatch.setenv("CHATWOOT_URL", "https://chatwoot.example.com/")
    monkeypatch.setenv("CHATWOOT_ACCOUNT_ID", "7")
    monkeypatch.setenv("CHATWOOT_API_TOKEN", "secret-token")


@pytest.fixture
def make_source():
    """Factory for in-memory conversation sources."""

    def factory(pages, errors=None) -> FakeConversationSource:
        return FakeConversationSource(pages, errors)

    return factory
