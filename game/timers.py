"""Clock and tick scheduling used by the typing engine."""

import asyncio
import time
from typing import Callable, List, Optional, Protocol


class Clock(Protocol):
    """Source of the current time in seconds."""

    def now(self) -> float:
        ...


class TimerHandle(Protocol):
    """A scheduled repeating callback that can be cancelled."""

    def cancel(self) -> None:
        ...


class Ticker(Protocol):
    """Schedules repeating callbacks."""

    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class MonotonicClock:
    """Wall-clock independent clock."""

    def now(self) -> float:
        return time.monotonic()


class _AsyncioRepeat:
    """Re-arms loop.call_later until cancelled."""

    def __init__(self, loop: asyncio.AbstractEventLoop, interval: float, callback: Callable[[], None]):
        self._loop = loop
        self._interval = interval
        self._callback = callback
        self._cancelled = False
        self._handle: Optional[asyncio.TimerHandle] = loop.call_later(interval, self._fire)

    def _fire(self) -> None:
        if self._cancelled:
            return
        # re-arm first so a callback that cancels us wins
        self._handle = self._loop.call_later(self._interval, self._fire)
        self._callback()

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class AsyncioTicker:
    """Ticker backed by the running asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return _AsyncioRepeat(loop, interval, callback)


class ScopedTimer:
    """
    Owns every callback scheduled for one attempt.

    All handles are cancelled together on finish, reset or close, so a stale
    tick can never reach a discarded state.
    """

    def __init__(self, ticker: Ticker):
        self._ticker = ticker
        self._handles: List[TimerHandle] = []

    @property
    def active(self) -> bool:
        return bool(self._handles)

    def every(self, interval: float, callback: Callable[[], None]) -> None:
        """Schedule a repeating callback within this scope."""
        self._handles.append(self._ticker.call_every(interval, callback))

    def cancel_all(self) -> None:
        """Cancel every scheduled callback. Safe to call repeatedly."""
        handles, self._handles = self._handles, []
        for handle in handles:
            handle.cancel()

    def __enter__(self) -> 'ScopedTimer':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel_all()
