"""Shared fixtures: fake time, temporary store, fake transports."""

from typing import Any, Callable, List, Optional

import jwt
import pytest
import pytest_asyncio

from database.manager import DatabaseManager, StatisticsStoreError
from database.migrations import initialize_database
from game.engine import TypingEngine
from game.leaderboard import LeaderboardAggregator
from realtime.auth import TokenVerifier
from realtime.service import PresenceService

SECRET = "test-secret"


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.t = start

    def now(self) -> float:
        return self.t


class _ManualHandle:
    def __init__(self, ticker: 'ManualTicker', interval: float, callback: Callable[[], None]):
        self.ticker = ticker
        self.interval = interval
        self.callback = callback
        self.due = ticker.clock.now() + interval
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualTicker:
    """Fires scheduled callbacks as the fake clock is advanced."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.handles: List[_ManualHandle] = []

    def call_every(self, interval: float, callback: Callable[[], None]) -> _ManualHandle:
        handle = _ManualHandle(self, interval, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> List[_ManualHandle]:
        return [h for h in self.handles if not h.cancelled]

    def advance(self, seconds: float):
        target = self.clock.t + seconds
        while True:
            live = [h for h in self.pending if h.due <= target]
            if not live:
                break
            handle = min(live, key=lambda h: h.due)
            self.clock.t = handle.due
            handle.due += handle.interval
            handle.callback()
        self.clock.t = target


class FakeTransport:
    """Records what a connection sends."""

    def __init__(self):
        self.sent: List[dict] = []
        self.closed_with: Optional[int] = None

    async def send_json(self, data: Any):
        self.sent.append(data)

    async def close(self, code: int = 1000):
        self.closed_with = code

    def events(self, name: str) -> List[Any]:
        return [m['data'] for m in self.sent if m['event'] == name]

    def last(self, name: str) -> Any:
        matching = self.events(name)
        return matching[-1] if matching else None


class FailingStore(DatabaseManager):
    """Store whose result writes always fail."""

    async def record_test_result(self, *args, **kwargs):
        raise StatisticsStoreError("disk full")


def make_token(user_id: str, secret: str = SECRET) -> str:
    return jwt.encode({'userId': user_id}, secret, algorithm='HS256')


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ticker(clock):
    return ManualTicker(clock)


@pytest.fixture
def make_engine(clock, ticker):
    """Build engines wired to the fake clock and ticker."""
    def _make(text: str = "cat", duration: int = 60, **kwargs) -> TypingEngine:
        return TypingEngine(text, duration=duration, clock=clock, ticker=ticker, **kwargs)
    return _make


@pytest_asyncio.fixture
async def db_path(tmp_path):
    path = str(tmp_path / "typesprint.db")
    await initialize_database(path)
    return path


@pytest_asyncio.fixture
async def store(db_path):
    return DatabaseManager(db_path)


def _build_service(store) -> PresenceService:
    service = PresenceService(
        store,
        LeaderboardAggregator(store),
        TokenVerifier(store, secret=SECRET),
    )
    service.start()
    return service


@pytest_asyncio.fixture
async def service(store):
    service = _build_service(store)
    yield service
    await service.stop()


@pytest_asyncio.fixture
async def failing_service(db_path):
    service = _build_service(FailingStore(db_path))
    yield service
    await service.stop()
