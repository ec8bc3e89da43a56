import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from teachback.app import create_app
from teachback.config import Settings


def make_settings(**overrides) -> Settings:
    values = {
        "elevenlabs_api_key": "test-key",
        "elevenlabs_agent_id": "agent-123",
        "gemini_api_key": None,
        "relay_timeout_s": 15.0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)  # type: ignore[call-arg]


class FakeSocket:
    """Stands in for a websockets client connection."""

    def __init__(self, frames=(), hang=False, error=None):
        self.frames = list(frames)
        self.hang = hang
        self.error = error
        self.sent = []
        self.closed = False

    async def send(self, data):
        self.sent.append(json.loads(data))

    async def close(self):
        self.closed = True

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for frame in self.frames:
            yield frame if isinstance(frame, (str, bytes)) else json.dumps(frame)
        if self.hang:
            await asyncio.Event().wait()
        if self.error is not None:
            raise self.error


def fake_connect(sock, calls=None):
    async def connect(url, **kwargs):
        if calls is not None:
            calls.append((url, kwargs))
        return sock

    return connect


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def client(settings) -> TestClient:
    return TestClient(create_app(settings))
