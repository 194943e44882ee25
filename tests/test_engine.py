"""
Tests for the per-keystroke typing engine.

Time is driven by the fake clock and ticker from conftest, so every tick
and countdown step happens exactly when the test advances it.
"""

import config
from game.engine import BACKSPACE, TypingEngine
from game.session import RunPhase, SlotStatus


def type_text(engine, text):
    for ch in text:
        engine.handle_key(ch)


class TestKeystrokes:
    """Character scoring, cursor movement and finishing by typing."""

    def test_mistyped_last_character(self, make_engine):
        """Test that 'cat' typed as c, a, x scores one error and finishes."""
        engine = make_engine("cat")
        type_text(engine, "cax")

        statuses = [slot.status for slot in engine.slots]
        assert statuses == [SlotStatus.CORRECT, SlotStatus.CORRECT, SlotStatus.INCORRECT]
        assert engine.state.error_count == 1
        assert engine.state.cursor == 3
        assert engine.phase is RunPhase.FINISHED
        assert engine.result.accuracy == 67
        assert engine.result.errors == 1

    def test_perfect_run_finishes_on_last_character(self, make_engine):
        """Test that typing every character correctly completes the run."""
        completed = []
        engine = make_engine("hello world", on_complete=completed.append)
        type_text(engine, "hello worl")
        assert engine.phase is RunPhase.RUNNING

        engine.handle_key("d")

        assert engine.phase is RunPhase.FINISHED
        assert len(completed) == 1
        assert completed[0].accuracy == 100
        assert completed[0].errors == 0

    def test_first_slot_is_current_before_typing(self, make_engine):
        engine = make_engine("abc")
        assert engine.phase is RunPhase.IDLE
        assert engine.slots[0].status is SlotStatus.CURRENT
        assert all(slot.status is SlotStatus.PENDING for slot in engine.slots[1:])

    def test_wpm_over_one_minute(self, make_engine, ticker):
        """Test that 50 characters over exactly one minute is 10 WPM."""
        engine = make_engine("a" * 50, duration=120)
        type_text(engine, "a" * 49)
        ticker.advance(60)
        engine.handle_key("a")

        assert engine.phase is RunPhase.FINISHED
        assert engine.result.wpm == 10
        assert engine.result.words_typed == 10
        assert engine.result.time_spent == 60

    def test_modifier_keys_are_ignored(self, make_engine):
        """Test that multi-character keys start the clock but score nothing."""
        engine = make_engine("abc")

        assert engine.handle_key("Shift") is False
        assert engine.phase is RunPhase.RUNNING
        assert engine.state.cursor == 0
        assert engine.state.typed_length == 0

    def test_no_passage_ignores_keys(self, clock, ticker):
        engine = TypingEngine(clock=clock, ticker=ticker)
        assert engine.handle_key("a") is False
        assert engine.phase is RunPhase.IDLE

    def test_empty_passage_finishes_on_first_key(self, make_engine):
        """Test that an empty passage starts and finishes on one keystroke."""
        completed = []
        engine = make_engine("", on_complete=completed.append)

        assert engine.handle_key("a") is True
        assert engine.phase is RunPhase.FINISHED
        assert len(completed) == 1
        assert completed[0].wpm == 0
        assert completed[0].accuracy == 100
        assert engine.progress() == 100.0


class TestBackspace:
    """Corrections move the cursor back without forgiving errors."""

    def test_backspace_restores_slot(self, make_engine):
        engine = make_engine("abc")
        engine.handle_key("x")

        assert engine.handle_key(BACKSPACE) is True
        assert engine.state.cursor == 0
        assert engine.slots[0].status is SlotStatus.CURRENT
        assert engine.slots[1].status is SlotStatus.PENDING
        assert engine.state.typed_length == 0
        assert engine.state.error_count == 1

    def test_backspace_at_start_does_nothing(self, make_engine):
        engine = make_engine("abc")
        assert engine.handle_key(BACKSPACE) is False
        assert engine.state.cursor == 0
        assert engine.slots[0].status is SlotStatus.CURRENT

    def test_errors_survive_corrections(self, make_engine):
        """Test that retyping a fixed character never lowers the error count."""
        engine = make_engine("abcdef")
        engine.handle_key("x")

        for _ in range(10):
            engine.handle_key(BACKSPACE)
            engine.handle_key("a")

        assert engine.state.error_count == 1
        assert engine.slots[0].status is SlotStatus.CORRECT
        assert engine.state.cursor == 1

    def test_error_and_fix_leaves_typed_length_unchanged(self, make_engine):
        engine = make_engine("abc")
        engine.handle_key("a")
        before = engine.state.typed_length

        engine.handle_key("x")
        engine.handle_key(BACKSPACE)

        assert engine.state.typed_length == before

    def test_backspace_from_end_is_impossible_after_finish(self, make_engine):
        engine = make_engine("ab")
        type_text(engine, "ab")
        assert engine.handle_key(BACKSPACE) is False
        assert engine.state.cursor == 2


class TestCountdown:
    """Per-second ticks, progress pushes and the countdown finish."""

    def test_countdown_finishes_run(self, make_engine, ticker):
        completed = []
        engine = make_engine("abcdef", duration=3, on_complete=completed.append)
        engine.handle_key("a")

        ticker.advance(2)
        assert engine.phase is RunPhase.RUNNING
        assert engine.state.time_left == 1

        ticker.advance(1)
        assert engine.phase is RunPhase.FINISHED
        assert engine.state.time_left == 0
        assert len(completed) == 1
        assert completed[0].time_spent == 3
        assert ticker.pending == []

    def test_progress_pushed_every_tick(self, make_engine, ticker):
        pushes = []
        engine = make_engine("abcd", duration=10, on_progress=pushes.append)
        type_text(engine, "ab")

        ticker.advance(3)

        assert len(pushes) == 3
        assert set(pushes[0]) == {'wpm', 'accuracy', 'progress'}
        assert pushes[-1]['progress'] == 50.0
        assert pushes[-1]['accuracy'] == 100

    def test_sample_window_is_capped(self, make_engine, ticker):
        engine = make_engine("abcdef", duration=30)
        engine.handle_key("a")

        ticker.advance(15)

        assert len(engine.state.sample_history) == 10

    def test_uneven_pace_lowers_consistency(self, make_engine, ticker):
        """Test that per-second WPM samples feed the final consistency score."""
        engine = make_engine("a" * 20, duration=60)

        type_text(engine, "a" * 5)
        ticker.advance(1)   # 5 chars in 1s: 60 WPM
        ticker.advance(1)   # 5 chars in 2s: 30 WPM
        type_text(engine, "a" * 10)
        ticker.advance(1)   # 15 chars in 3s: 60 WPM
        type_text(engine, "a" * 4)
        ticker.advance(1)   # 19 chars in 4s: 57 WPM
        assert list(engine.state.sample_history) == [60, 30, 60, 57]

        engine.handle_key("a")

        assert engine.phase is RunPhase.FINISHED
        assert engine.result.consistency == 76

    def test_steady_pace_is_fully_consistent(self, make_engine, ticker):
        engine = make_engine("a" * 30, duration=60)

        for _ in range(5):
            type_text(engine, "a" * 5)
            ticker.advance(1)
        assert list(engine.state.sample_history) == [60] * 5

        type_text(engine, "a" * 5)

        assert engine.phase is RunPhase.FINISHED
        assert engine.result.consistency == 100

    def test_no_ticks_before_first_key(self, make_engine, ticker):
        engine = make_engine("abc", duration=5)
        ticker.advance(10)
        assert engine.phase is RunPhase.IDLE
        assert engine.state.time_left == 5

    def test_result_delivered_once(self, make_engine, ticker):
        """Test that completion by countdown then typing reports one result."""
        completed = []
        engine = make_engine("ab", duration=2, on_complete=completed.append)
        engine.handle_key("a")
        ticker.advance(2)

        assert engine.handle_key("b") is False
        ticker.advance(5)

        assert len(completed) == 1
        assert engine.slots[1].status is SlotStatus.CURRENT

    def test_typing_finish_stops_ticks(self, make_engine, ticker):
        pushes = []
        engine = make_engine("ab", duration=10, on_progress=pushes.append)
        type_text(engine, "ab")

        ticker.advance(5)

        assert pushes == []
        assert engine.state.time_left == 10

    def test_keys_after_finish_are_ignored(self, make_engine):
        engine = make_engine("ab")
        type_text(engine, "ab")
        slots_before = [slot.status for slot in engine.slots]

        assert engine.handle_key("c") is False
        assert [slot.status for slot in engine.slots] == slots_before


class TestLifecycle:
    """Reset, reload, close and status notifications."""

    def test_status_notifications(self, make_engine):
        statuses = []
        engine = make_engine("ab", on_status=statuses.append)
        type_text(engine, "ab")
        assert statuses == [True, False]

    def test_reset_is_idempotent(self, make_engine, ticker):
        statuses = []
        engine = make_engine("abc", on_status=statuses.append)
        type_text(engine, "ax")

        engine.reset()
        engine.reset()

        assert engine.phase is RunPhase.IDLE
        assert engine.state.cursor == 0
        assert engine.state.error_count == 0
        assert engine.state.time_left == engine.duration
        assert engine.slots[0].status is SlotStatus.CURRENT
        assert all(slot.status is SlotStatus.PENDING for slot in engine.slots[1:])
        assert ticker.pending == []
        assert statuses == [True, False]

    def test_reset_discards_stale_ticks(self, make_engine, ticker):
        pushes = []
        engine = make_engine("abc", duration=5, on_progress=pushes.append)
        engine.handle_key("a")
        engine.reset()

        ticker.advance(10)

        assert pushes == []
        assert engine.state.time_left == 5

    def test_load_binds_new_passage(self, make_engine):
        engine = make_engine("abc")
        type_text(engine, "ab")

        engine.load("xyz", duration=30)

        assert engine.text == "xyz"
        assert engine.duration == 30
        assert engine.phase is RunPhase.IDLE
        assert [slot.character for slot in engine.slots] == ["x", "y", "z"]

    def test_load_without_text_uses_default_passage(self, clock, ticker):
        engine = TypingEngine(clock=clock, ticker=ticker)
        engine.load()

        assert engine.text == config.DEFAULT_PASSAGE
        assert engine.passage_length == len(config.DEFAULT_PASSAGE)
        assert engine.handle_key(config.DEFAULT_PASSAGE[0]) is True

    def test_close_cancels_timers(self, make_engine, ticker):
        engine = make_engine("abc", duration=5)
        engine.handle_key("a")

        engine.close()
        ticker.advance(10)

        assert engine.state.time_left == 5

    def test_snapshot(self, make_engine):
        engine = make_engine("abcd")
        type_text(engine, "ax")

        snapshot = engine.snapshot()

        assert snapshot['phase'] == 'running'
        assert snapshot['accuracy'] == 50
        assert snapshot['progress'] == 50.0
        assert snapshot['errors'] == 1
        assert snapshot['timeLeft'] == 60

    def test_keyboard_hint(self, make_engine):
        engine = make_engine("Hi")
        current, upcoming = engine.keyboard_hint()

        assert current.key == "h"
        assert current.shift is True
        assert current.finger_id == "right-index"
        assert upcoming.key == "i"

        type_text(engine, "Hi")
        assert engine.keyboard_hint() == (None, None)
