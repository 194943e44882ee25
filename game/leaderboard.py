"""Ranked leaderboard views built from the statistics store."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Protocol

import config
from game.scoring import average, round_half_up


class LeaderboardSource(Protocol):
    """The part of the statistics store the aggregator reads."""

    async def query_leaderboard(
        self, since: Optional[str] = None, limit: Optional[int] = ..., recent: int = ...
    ) -> List[Dict[str, Any]]:
        ...


@dataclass(frozen=True)
class LeaderboardRow:
    """One ranked user."""
    user_id: str
    username: str
    best_wpm: float
    avg_accuracy: float
    total_tests: int
    member_since: Optional[str]
    rank: int

    def to_payload(self) -> Dict[str, Any]:
        return {
            'userId': self.user_id,
            'username': self.username,
            'bestWpm': self.best_wpm,
            'avgAccuracy': self.avg_accuracy,
            'totalTests': self.total_tests,
            'memberSince': self.member_since,
            'rank': self.rank,
        }


def window_start(window: str, now: Optional[datetime] = None) -> Optional[str]:
    """
    Earliest session timestamp included in a time window.

    Args:
        window: 'all', 'today', 'week' or 'month'
        now: Reference time (UTC), defaults to the current time

    Returns:
        ISO-8601 UTC string, or None for 'all'

    Raises:
        ValueError: Unknown window name
    """
    if window not in config.LEADERBOARD_WINDOWS:
        raise ValueError(f"Unknown leaderboard window: {window}")

    days = config.LEADERBOARD_WINDOWS[window]
    if days is None:
        return None

    now = now or datetime.now(timezone.utc)
    if days == 0:
        start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    else:
        start = now - timedelta(days=days)
    return start.isoformat(timespec="seconds")


def rank_rows(candidates: Iterable[Dict[str, Any]], limit: Optional[int]) -> List[LeaderboardRow]:
    """
    Turn store candidates into ranked rows.

    Users without a positive best WPM or without tests are left out. Ranks
    are 1-based positions after a stable sort on best WPM, so ties keep the
    store's order and no rank is skipped or repeated.
    """
    eligible = [
        c for c in candidates
        if (c.get('best_wpm') or 0) > 0 and (c.get('total_tests') or 0) > 0
    ]
    eligible.sort(key=lambda c: c['best_wpm'], reverse=True)

    rows = []
    for index, candidate in enumerate(eligible[:limit], 1):
        accuracies = candidate.get('recent_accuracies') or []
        rows.append(LeaderboardRow(
            user_id=candidate['user_id'],
            username=candidate['username'],
            best_wpm=candidate['best_wpm'],
            avg_accuracy=round_half_up(average(accuracies), 2),
            total_tests=candidate['total_tests'],
            member_since=candidate.get('created_at'),
            rank=index,
        ))
    return rows


class LeaderboardAggregator:
    """Computes ranked standings on demand."""

    def __init__(
        self,
        store: LeaderboardSource,
        recent_sessions: int = config.LEADERBOARD_RECENT_SESSIONS
    ):
        self.store = store
        self.recent_sessions = recent_sessions

    async def get_leaderboard(
        self,
        window: str = 'all',
        limit: int = config.LEADERBOARD_LIMIT,
        now: Optional[datetime] = None
    ) -> List[LeaderboardRow]:
        """Top performers in a time window, best WPM first."""
        since = window_start(window, now)
        candidates = await self.store.query_leaderboard(
            since=since,
            limit=limit,
            recent=self.recent_sessions
        )
        return rank_rows(candidates, limit)

    async def get_player_rank(self, user_id: str, window: str = 'all') -> Optional[int]:
        """Get a user's rank among every ranked user, None if unranked."""
        candidates = await self.store.query_leaderboard(
            since=window_start(window),
            limit=None,
            recent=0
        )
        for row in rank_rows(candidates, None):
            if row.user_id == user_id:
                return row.rank
        return None
