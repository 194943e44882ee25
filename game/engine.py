"""Per-keystroke typing test state machine."""

from typing import Callable, Dict, List, Optional, Tuple

import config
from game.keyboard import KeyHint, hint_for
from game.scoring import (
    calculate_accuracy,
    calculate_consistency,
    calculate_progress,
    calculate_wpm,
    words_typed,
)
from game.session import (
    CharacterSlot,
    RunPhase,
    SlotStatus,
    TestResult,
    TestRunState,
    build_slots,
)
from game.timers import AsyncioTicker, Clock, MonotonicClock, ScopedTimer, Ticker

BACKSPACE = 'Backspace'

ProgressCallback = Callable[[Dict[str, float]], None]
CompleteCallback = Callable[[TestResult], None]
StatusCallback = Callable[[bool], None]


class TypingEngine:
    """
    Turns key events into scored character slots and live metrics.

    The engine is driven from a single event loop: keystrokes, the
    once-per-second tick and the countdown never run concurrently. Callbacks
    must not block; push into a queue or transport instead.
    """

    def __init__(
        self,
        text: Optional[str] = None,
        duration: int = config.DEFAULT_DURATION,
        clock: Optional[Clock] = None,
        ticker: Optional[Ticker] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_complete: Optional[CompleteCallback] = None,
        on_status: Optional[StatusCallback] = None,
    ):
        self.clock = clock or MonotonicClock()
        self._timer = ScopedTimer(ticker or AsyncioTicker())
        self.on_progress = on_progress
        self.on_complete = on_complete
        self.on_status = on_status

        self.text: Optional[str] = None
        self.duration = duration
        self.slots: List[CharacterSlot] = []
        self.state = TestRunState.fresh(duration)
        self.result: Optional[TestResult] = None

        if text is not None:
            self.load(text, duration)

    # Lifecycle
    def load(self, text: Optional[str] = None, duration: Optional[int] = None) -> None:
        """Bind a new passage (the default one if none is given) and start over in the idle state."""
        if duration is not None:
            self.duration = duration
        self.text = text if text is not None else config.DEFAULT_PASSAGE
        self._restart()

    def reset(self) -> None:
        """Discard the attempt and return to idle on the same passage."""
        self._restart()

    def close(self) -> None:
        """Cancel pending timers; the engine accepts no more ticks."""
        self._timer.cancel_all()

    def _restart(self) -> None:
        was_running = self.phase is RunPhase.RUNNING
        self._timer.cancel_all()
        self.slots = build_slots(self.text or "")
        self.state = TestRunState.fresh(self.duration)
        self.result = None
        if was_running:
            self._notify_status(False)

    @property
    def phase(self) -> RunPhase:
        return self.state.phase

    @property
    def passage_length(self) -> int:
        return len(self.text) if self.text is not None else 0

    # Input
    def handle_key(self, key: str) -> bool:
        """
        Apply one key event.

        Returns:
            True if the key changed the slots or finished the run, False if
            it was ignored
        """
        if self.text is None or self.phase is RunPhase.FINISHED:
            return False

        if self.phase is RunPhase.IDLE:
            self._start()
            if self.passage_length == 0:
                self._finish()
                return True

        if key == BACKSPACE:
            return self._backspace()

        if len(key) != 1:
            return False

        return self._advance(key)

    def _start(self) -> None:
        self.state.started_at = self.clock.now()
        self._timer.every(config.SAMPLE_INTERVAL_SECONDS, self._tick)
        self._notify_status(True)

    def _backspace(self) -> bool:
        state = self.state
        if state.cursor == 0:
            return False

        if state.cursor < self.passage_length:
            self.slots[state.cursor].status = SlotStatus.PENDING
        state.cursor -= 1
        self.slots[state.cursor].status = SlotStatus.CURRENT
        # error_count is never given back
        state.typed_length = max(0, state.typed_length - 1)
        return True

    def _advance(self, key: str) -> bool:
        state = self.state
        slot = self.slots[state.cursor]

        if key == slot.character:
            slot.status = SlotStatus.CORRECT
        else:
            slot.status = SlotStatus.INCORRECT
            state.error_count += 1

        state.typed_length += 1
        state.cursor += 1

        if state.cursor < self.passage_length:
            self.slots[state.cursor].status = SlotStatus.CURRENT
        else:
            self._finish()
        return True

    # Timers
    def _tick(self) -> None:
        state = self.state
        if self.phase is not RunPhase.RUNNING:
            return

        state.sample_history.append(self.wpm())
        state.time_left = max(0, state.time_left - 1)

        if self.on_progress:
            self.on_progress({
                'wpm': self.wpm(),
                'accuracy': self.accuracy(),
                'progress': self.progress(),
            })

        if state.time_left == 0:
            self._finish()

    def _finish(self) -> None:
        state = self.state
        if state.finished_at is not None:
            return

        state.finished_at = self.clock.now()
        self._timer.cancel_all()
        self.result = self._build_result()

        self._notify_status(False)
        if self.on_complete:
            self.on_complete(self.result)

    def _notify_status(self, is_typing: bool) -> None:
        if self.on_status:
            self.on_status(is_typing)

    # Metrics
    def _now(self) -> float:
        if self.state.finished_at is not None:
            return self.state.finished_at
        return self.clock.now()

    def correct_count(self) -> int:
        """Correct slots left of the cursor."""
        return sum(
            1 for slot in self.slots[:self.state.cursor]
            if slot.status is SlotStatus.CORRECT
        )

    def wpm(self) -> int:
        return calculate_wpm(self.state.typed_length, self.state.started_at, self._now())

    def accuracy(self) -> int:
        return calculate_accuracy(self.correct_count(), self.state.typed_length)

    def consistency(self) -> int:
        return calculate_consistency(list(self.state.sample_history))

    def progress(self) -> float:
        return calculate_progress(self.state.cursor, self.passage_length)

    def _build_result(self) -> TestResult:
        state = self.state
        return TestResult(
            wpm=self.wpm(),
            accuracy=self.accuracy(),
            errors=state.error_count,
            consistency=self.consistency(),
            words_typed=words_typed(state.typed_length),
            time_spent=max(0, self.duration - state.time_left),
        )

    def snapshot(self) -> Dict[str, object]:
        """Live stats for rendering."""
        return {
            'phase': self.phase.value,
            'wpm': self.wpm(),
            'accuracy': self.accuracy(),
            'consistency': self.consistency(),
            'progress': self.progress(),
            'timeLeft': self.state.time_left,
            'errors': self.state.error_count,
        }

    def keyboard_hint(self) -> Tuple[Optional[KeyHint], Optional[KeyHint]]:
        """Hints for the character at the cursor and the one after it."""
        cursor = self.state.cursor
        text = self.text or ""
        current = hint_for(text[cursor]) if cursor < len(text) else None
        upcoming = hint_for(text[cursor + 1]) if cursor + 1 < len(text) else None
        return current, upcoming
