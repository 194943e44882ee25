"""Per-user aggregate statistics and stored test sessions."""

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from game.scoring import running_mean
from game.session import TestResult

# Aggregate columns a caller may overwrite
AGGREGATE_FIELDS = (
    'total_tests',
    'total_words',
    'total_time',
    'best_wpm',
    'average_wpm',
    'best_accuracy',
    'average_accuracy',
)


@dataclass(frozen=True)
class UserAggregate:
    """Running totals kept on the user row."""
    user_id: str
    username: str
    total_tests: int = 0
    total_words: int = 0
    total_time: int = 0
    best_wpm: float = 0.0
    average_wpm: float = 0.0
    best_accuracy: float = 0.0
    average_accuracy: float = 0.0
    created_at: Optional[str] = None

    def changed_fields(self) -> Dict[str, Any]:
        """The mutable columns as a dict."""
        return {name: getattr(self, name) for name in AGGREGATE_FIELDS}


@dataclass(frozen=True)
class TestSessionRecord:
    """An immutable stored attempt."""
    __test__ = False

    session_id: str
    user_id: Optional[str]
    wpm: float
    accuracy: float
    errors: int
    consistency: float
    words_typed: int
    time_spent: int
    test_type: str = 'practice'
    difficulty: str = 'intermediate'
    text_content: str = ''
    created_at: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        """Render the wire shape of a stored result."""
        return {
            'id': self.session_id,
            'userId': self.user_id,
            'wpm': self.wpm,
            'accuracy': self.accuracy,
            'errors': self.errors,
            'consistency': self.consistency,
            'wordsTyped': self.words_typed,
            'timeSpent': self.time_spent,
            'testType': self.test_type,
            'difficulty': self.difficulty,
            'createdAt': self.created_at,
        }


def apply_result(aggregate: UserAggregate, result: TestResult) -> UserAggregate:
    """
    Fold one finished test into a user's aggregates.

    Bests are maxima; averages are incremental running means over the
    previous test count.
    """
    count = aggregate.total_tests
    return replace(
        aggregate,
        total_tests=count + 1,
        total_words=aggregate.total_words + result.words_typed,
        total_time=aggregate.total_time + result.time_spent,
        best_wpm=max(aggregate.best_wpm, result.wpm),
        average_wpm=running_mean(aggregate.average_wpm, count, result.wpm),
        best_accuracy=max(aggregate.best_accuracy, result.accuracy),
        average_accuracy=running_mean(aggregate.average_accuracy, count, result.accuracy),
    )
