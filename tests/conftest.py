"""Shared fixtures for the status bot tests."""
from __future__ import annotations

import logging

import pytest

from helpers import FakeNotifier
from mc_statusbot.config import Settings
from mc_statusbot.store import StatusStore


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        server_host="mc.example.org",
        server_port=25565,
        telegram_token="123:abc",
        telegram_chat_id="-100200",
        status_file=str(tmp_path / "status.json"),
        chat_title="test server",
    )


@pytest.fixture
def store(settings) -> StatusStore:
    return StatusStore(settings.status_file)


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers a test installed so they never outlive pytest's captured streams."""
    yield
    logger = logging.getLogger("mc_statusbot")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
