"""
Shared fixtures for the relay test suite.
"""

import os
import tempfile

# Uploads must land in a scratch directory; app.py reads this at import time
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="relay-uploads-"))
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest

from backend import RateLimiter, SessionState
from coordinator import SessionCoordinator
from hub import ConnectionHub

SEED = ["General", "Sports", "Tech"]
FIXED_TIME = "2026-01-01T12:00:00"


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class Client:
    """A connection driven directly through the coordinator, reading its hub outbox."""

    def __init__(self, connection_id, outbox, coordinator):
        self.id = connection_id
        self.outbox = outbox
        self.coordinator = coordinator

    def frames(self):
        frames = []
        while not self.outbox.empty():
            frames.append(self.outbox.get_nowait())
        return frames

    def events(self, name):
        return [f["data"] for f in self.frames() if f["event"] == name]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def state():
    return SessionState(seed_rooms=SEED, rate_limiter=RateLimiter(limit=10, window_seconds=10))


@pytest.fixture
def hub(state):
    return ConnectionHub(state.rooms)


@pytest.fixture
def coordinator(state, hub, clock):
    return SessionCoordinator(state, hub, clock=clock, timestamp=lambda: FIXED_TIME)


@pytest.fixture
def connect(coordinator, hub):
    """Open a connection, optionally claim a username and join a room, then clear its outbox."""
    counter = {"n": 0}

    async def _connect(username=None, room=None, keep_frames=False):
        counter["n"] += 1
        connection_id = f"conn-{counter['n']}"
        outbox = hub.open(connection_id)
        await coordinator.connect(connection_id)
        client = Client(connection_id, outbox, coordinator)
        if username is not None:
            ack = await coordinator.set_username(connection_id, username)
            assert ack == {"success": True}
        if room is not None:
            await coordinator.join_room(connection_id, room)
        if not keep_frames:
            client.frames()
        return client

    return _connect
