"""
Pytest configuration and shared fixtures.

Redis and the Docker socket are never touched: the queue client wraps an
AsyncMock and the launcher is a MagicMock standing in for
DockerRecorderLauncher.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from docker_manager.listener import QueueListener
from docker_manager.queue_client import JoinMeetQueue
from docker_manager.schemas import QueueItem

QUEUE_NAME = "join_meet_queue"


def make_item(payload) -> QueueItem:
    """Build a popped item; dicts are JSON-encoded, strings are passed through."""
    raw = payload if isinstance(payload, str) else json.dumps(payload)
    return QueueItem(queue=QUEUE_NAME, raw=raw)


@pytest.fixture
def item():
    return make_item


@pytest.fixture
def redis_client() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def queue(redis_client) -> JoinMeetQueue:
    return JoinMeetQueue("redis://localhost:6379/0", QUEUE_NAME, client=redis_client)


@pytest.fixture
def launcher() -> MagicMock:
    mock = MagicMock()
    mock.start_recorder.return_value = "container-123"
    return mock


@pytest.fixture
def fake_sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def listener(queue, launcher, fake_sleep) -> QueueListener:
    return QueueListener(
        queue,
        launcher,
        max_attempts=3,
        retry_delay=1.0,
        error_pause=1.0,
        poll_timeout=5,
        sleep=fake_sleep,
    )
