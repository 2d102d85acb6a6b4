from types import SimpleNamespace

import orjson
import pytest

from signal_relay.channel import Channel
from signal_relay.directory import IdentityDirectory
from signal_relay.lifecycle import ConnectionLifecycle
from signal_relay.locks import StripedLock
from signal_relay.pending import PendingQueue
from signal_relay.relay import RelayEngine
from signal_relay.sessions import SessionRegistry


class RecordingChannel(Channel):
    """Channel that records decoded envelopes instead of writing to a socket."""

    def __init__(self, identity: str, writable: bool = True):
        super().__init__(identity)
        self.writable = writable
        self.frames = []

    def send(self, text: str) -> bool:
        if not self.alive or not self.writable:
            return False
        self.frames.append(orjson.loads(text))
        return True


class Clock:
    def __init__(self, start: int = 1_000):
        self.now = start

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def make_channel():
    return RecordingChannel


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def relay(clock):
    """Wire the core components together the way the API module does."""

    sessions = SessionRegistry()
    pending = PendingQueue()
    directory = IdentityDirectory(clock=clock)
    locks = StripedLock(stripes=8)
    engine = RelayEngine(sessions, pending, locks)
    lifecycle = ConnectionLifecycle(sessions, pending, directory, locks, clock=clock)

    return SimpleNamespace(
        sessions=sessions,
        pending=pending,
        directory=directory,
        engine=engine,
        lifecycle=lifecycle,
    )
