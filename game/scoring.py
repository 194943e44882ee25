"""Scoring calculations for typing attempts."""

import math
from typing import Iterable, Optional, Sequence

import config


def round_half_up(value: float, decimals: int = 0) -> float:
    """Round like the browser does (2.5 -> 3), not banker's rounding."""
    factor = 10 ** decimals
    return math.floor(value * factor + 0.5) / factor


def calculate_wpm(typed_length: int, started_at: Optional[float], now: float) -> int:
    """
    Calculate words per minute from typed characters.

    Wrong characters count towards the typed length; accuracy penalises
    them separately.

    Args:
        typed_length: Committed characters typed so far
        started_at: Clock reading of the first keystroke, None if not started
        now: Current clock reading in seconds

    Returns:
        WPM as a non-negative integer
    """
    if started_at is None:
        return 0
    elapsed_minutes = (now - started_at) / 60
    if elapsed_minutes <= 0:
        return 0
    words = typed_length / config.CHARS_PER_WORD
    return max(0, int(round_half_up(words / elapsed_minutes)))


def calculate_accuracy(correct_count: int, typed_length: int) -> int:
    """Percentage of typed characters that were correct (0-100)."""
    if typed_length <= 0:
        return 100
    value = int(round_half_up(correct_count / typed_length * 100))
    return max(0, min(100, value))


def calculate_consistency(samples: Sequence[float]) -> int:
    """
    Score pace steadiness from recent per-second WPM samples.

    Uses the population coefficient of variation: 100 - (stddev / mean * 100),
    floored at zero. Fewer than two samples is perfectly consistent.
    """
    if len(samples) < 2:
        return 100
    mean = sum(samples) / len(samples)
    if mean <= 0:
        # only zero samples: no variation at all
        return 100
    variance = sum((s - mean) ** 2 for s in samples) / len(samples)
    stddev = math.sqrt(variance)
    value = int(round_half_up(100 - (stddev / mean) * 100))
    return max(0, min(100, value))


def calculate_progress(cursor: int, passage_length: int) -> float:
    """Percentage of the passage covered by the cursor."""
    if passage_length <= 0:
        return 100.0
    return cursor / passage_length * 100


def words_typed(typed_length: int) -> int:
    """Convert typed characters to whole words."""
    return int(round_half_up(typed_length / config.CHARS_PER_WORD))


def running_mean(old_mean: float, old_count: int, value: float) -> float:
    """Fold one more value into a mean over old_count values."""
    new_count = old_count + 1
    return (old_mean * old_count + value) / new_count


def average(values: Iterable[float]) -> float:
    """Plain mean, 0 for no values."""
    values = list(values)
    if not values:
        return 0.0
    return sum(values) / len(values)
