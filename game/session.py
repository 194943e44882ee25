"""Typing test data structures."""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, Dict, List, Optional

import config


class SlotStatus(str, Enum):
    """Scoring status of one character in the passage."""
    PENDING = 'pending'
    CURRENT = 'current'
    CORRECT = 'correct'
    INCORRECT = 'incorrect'


class RunPhase(str, Enum):
    """Lifecycle of a single attempt."""
    IDLE = 'idle'
    RUNNING = 'running'
    FINISHED = 'finished'


@dataclass
class CharacterSlot:
    """One character position in the active passage."""
    character: str
    status: SlotStatus = SlotStatus.PENDING


def build_slots(text: str) -> List[CharacterSlot]:
    """Build a fresh slot list with the first slot marked current."""
    slots = [CharacterSlot(character=ch) for ch in text]
    if slots:
        slots[0].status = SlotStatus.CURRENT
    return slots


@dataclass
class TestRunState:
    """Represents one attempt at a passage."""
    __test__ = False  # not a pytest class

    duration: int = config.DEFAULT_DURATION
    cursor: int = 0
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    error_count: int = 0
    typed_length: int = 0
    time_left: int = config.DEFAULT_DURATION

    # Rolling per-second WPM samples
    sample_history: Deque[int] = field(
        default_factory=lambda: deque(maxlen=config.WPM_SAMPLE_WINDOW)
    )

    @classmethod
    def fresh(cls, duration: int) -> 'TestRunState':
        """Create a not-started state for the given countdown."""
        return cls(duration=duration, time_left=duration)

    @property
    def phase(self) -> RunPhase:
        if self.finished_at is not None:
            return RunPhase.FINISHED
        if self.started_at is not None:
            return RunPhase.RUNNING
        return RunPhase.IDLE


@dataclass(frozen=True)
class TestResult:
    """Final scores of a finished attempt."""
    __test__ = False

    wpm: float
    accuracy: float
    errors: int
    consistency: float
    words_typed: int
    time_spent: int

    def to_payload(self) -> Dict[str, float]:
        """Render the wire shape sent to the server."""
        return {
            'wpm': self.wpm,
            'accuracy': self.accuracy,
            'errors': self.errors,
            'consistency': self.consistency,
            'wordsTyped': self.words_typed,
            'timeSpent': self.time_spent,
        }
