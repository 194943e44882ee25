"""Tests for tick scheduling."""

import asyncio

import pytest

from game.timers import AsyncioTicker, MonotonicClock, ScopedTimer


class TestScopedTimer:

    def test_cancel_all(self, ticker):
        fired = []
        timer = ScopedTimer(ticker)
        timer.every(1, lambda: fired.append('a'))
        timer.every(2, lambda: fired.append('b'))
        assert timer.active

        ticker.advance(2)
        assert fired == ['a', 'a', 'b']

        timer.cancel_all()
        ticker.advance(10)
        assert fired == ['a', 'a', 'b']
        assert not timer.active

    def test_cancel_all_twice(self, ticker):
        timer = ScopedTimer(ticker)
        timer.every(1, lambda: None)
        timer.cancel_all()
        timer.cancel_all()
        assert ticker.pending == []

    def test_context_manager(self, ticker):
        with ScopedTimer(ticker) as timer:
            timer.every(1, lambda: None)
            assert len(ticker.pending) == 1
        assert ticker.pending == []


def test_monotonic_clock_moves_forward():
    clock = MonotonicClock()
    assert clock.now() <= clock.now()


class TestAsyncioTicker:

    @pytest.mark.asyncio
    async def test_repeats_until_cancelled(self):
        fired = []
        handle = AsyncioTicker().call_every(0.01, lambda: fired.append(1))

        await asyncio.sleep(0.1)
        handle.cancel()
        count = len(fired)
        await asyncio.sleep(0.05)

        assert count >= 2
        assert len(fired) == count

    @pytest.mark.asyncio
    async def test_callback_can_cancel_itself(self):
        fired = []
        handles = []

        def on_tick():
            fired.append(1)
            handles[0].cancel()

        handles.append(AsyncioTicker().call_every(0.01, on_tick))
        await asyncio.sleep(0.08)

        assert fired == [1]
