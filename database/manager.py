"""Database operations manager."""

import asyncio
import aiosqlite
import uuid
import weakref
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional

import config
from database.models import USER_COLUMNS, SESSION_COLUMNS
from game.session import TestResult
from game.stats import AGGREGATE_FIELDS, TestSessionRecord, UserAggregate, apply_result


class StatisticsStoreError(Exception):
    """Raised when the statistics store cannot complete an operation."""


def utc_now() -> str:
    """Current UTC time as a sortable ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _user_from_row(row: aiosqlite.Row) -> UserAggregate:
    return UserAggregate(
        user_id=row['user_id'],
        username=row['username'],
        total_tests=row['total_tests'] or 0,
        total_words=row['total_words'] or 0,
        total_time=row['total_time'] or 0,
        best_wpm=row['best_wpm'] or 0.0,
        average_wpm=row['average_wpm'] or 0.0,
        best_accuracy=row['best_accuracy'] or 0.0,
        average_accuracy=row['average_accuracy'] or 0.0,
        created_at=row['created_at'],
    )


def _session_from_row(row: aiosqlite.Row) -> TestSessionRecord:
    return TestSessionRecord(
        session_id=row['session_id'],
        user_id=row['user_id'],
        wpm=row['wpm'],
        accuracy=row['accuracy'],
        errors=row['errors'],
        consistency=row['consistency'] or 0.0,
        words_typed=row['words_typed'] or 0,
        time_spent=row['time_spent'] or 0,
        test_type=row['test_type'],
        difficulty=row['difficulty'],
        text_content=row['text_content'] or '',
        created_at=row['created_at'],
    )


class DatabaseManager:
    """Manages all statistics store operations."""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or config.DATABASE_PATH
        # Serialises each user's aggregate read-modify-write; a lock lives
        # only while some writer holds or awaits it
        self._user_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    @asynccontextmanager
    async def _get_connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """Get database connection; driver errors become StatisticsStoreError."""
        try:
            async with aiosqlite.connect(self.db_path) as db:
                db.row_factory = aiosqlite.Row
                yield db
        except aiosqlite.Error as e:
            raise StatisticsStoreError(str(e)) from e

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._user_locks.get(user_id)
        if lock is None:
            lock = self._user_locks[user_id] = asyncio.Lock()
        return lock

    # User operations
    async def create_user(self, username: str, user_id: Optional[str] = None) -> UserAggregate:
        """Create a user row with empty aggregates."""
        user = UserAggregate(
            user_id=user_id or str(uuid.uuid4()),
            username=username,
            created_at=utc_now(),
        )
        async with self._get_connection() as db:
            await db.execute(
                "INSERT INTO users (user_id, username, created_at) VALUES (?, ?, ?)",
                (user.user_id, user.username, user.created_at)
            )
            await db.commit()
        return user

    async def get_user_aggregate(self, user_id: str) -> Optional[UserAggregate]:
        """Get a user's aggregate statistics, None if the user is unknown."""
        async with self._get_connection() as db:
            return await self._fetch_user(db, user_id)

    # Users and aggregates live on the same row
    get_user = get_user_aggregate

    async def _fetch_user(self, db: aiosqlite.Connection, user_id: str) -> Optional[UserAggregate]:
        async with db.execute(
            f"SELECT {USER_COLUMNS} FROM users WHERE user_id = ?",
            (user_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return _user_from_row(row) if row else None

    async def update_user_aggregate(self, user_id: str, fields: Dict[str, Any]):
        """Overwrite aggregate columns for a user."""
        async with self._get_connection() as db:
            await self._write_aggregate(db, user_id, fields)
            await db.commit()

    async def _write_aggregate(self, db: aiosqlite.Connection, user_id: str, fields: Dict[str, Any]):
        unknown = set(fields) - set(AGGREGATE_FIELDS)
        if unknown:
            raise ValueError(f"Not an aggregate field: {', '.join(sorted(unknown))}")
        if not fields:
            return

        assignments = ", ".join(f"{name} = ?" for name in fields)
        await db.execute(
            f"UPDATE users SET {assignments} WHERE user_id = ?",
            (*fields.values(), user_id)
        )

    # Test session operations
    async def create_test_session(self, record: TestSessionRecord) -> TestSessionRecord:
        """Append one test session record."""
        async with self._get_connection() as db:
            record = await self._insert_session(db, record)
            await db.commit()
        return record

    async def _insert_session(self, db: aiosqlite.Connection, record: TestSessionRecord) -> TestSessionRecord:
        if record.created_at is None:
            record = replace(record, created_at=utc_now())

        await db.execute(
            f"""
            INSERT INTO test_sessions ({SESSION_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.session_id, record.user_id, record.wpm, record.accuracy,
                record.errors, record.consistency, record.words_typed,
                record.time_spent, record.test_type, record.difficulty,
                record.text_content, record.created_at
            )
        )
        return record

    async def record_test_result(
        self,
        user_id: Optional[str],
        result: TestResult,
        test_type: str = 'practice',
        difficulty: str = 'intermediate',
        text_content: str = '',
        created_at: Optional[str] = None
    ) -> TestSessionRecord:
        """
        Store a finished test and fold it into the user's aggregates.

        The insert and the aggregate update commit together. Anonymous
        results (user_id None) only store the session.
        """
        record = TestSessionRecord(
            session_id=str(uuid.uuid4()),
            user_id=user_id,
            wpm=result.wpm,
            accuracy=result.accuracy,
            errors=result.errors,
            consistency=result.consistency,
            words_typed=result.words_typed,
            time_spent=result.time_spent,
            test_type=test_type,
            difficulty=difficulty,
            text_content=text_content,
            created_at=created_at or utc_now(),
        )

        if user_id is None:
            return await self.create_test_session(record)

        async with self._lock_for(user_id):
            async with self._get_connection() as db:
                aggregate = await self._fetch_user(db, user_id)
                if aggregate is None:
                    raise StatisticsStoreError(f"Unknown user {user_id}")

                await self._insert_session(db, record)
                updated = apply_result(aggregate, result)
                await self._write_aggregate(db, user_id, updated.changed_fields())
                await db.commit()

        return record

    async def get_test_history(self, user_id: str, limit: int = 20, offset: int = 0) -> List[TestSessionRecord]:
        """Most recent sessions first."""
        async with self._get_connection() as db:
            async with db.execute(
                f"""
                SELECT {SESSION_COLUMNS} FROM test_sessions
                WHERE user_id = ?
                ORDER BY created_at DESC, rowid DESC
                LIMIT ? OFFSET ?
                """,
                (user_id, limit, offset)
            ) as cursor:
                return [_session_from_row(row) async for row in cursor]

    async def count_test_sessions(self, user_id: str) -> int:
        """Number of stored sessions for a user."""
        async with self._get_connection() as db:
            async with db.execute(
                "SELECT COUNT(*) FROM test_sessions WHERE user_id = ?",
                (user_id,)
            ) as cursor:
                row = await cursor.fetchone()
                return row[0] if row else 0

    async def get_user_stats(self, user_id: str, since: Optional[str] = None) -> Dict[str, Any]:
        """Averages and bests over a user's sessions since a timestamp."""
        query = """
            SELECT
                AVG(wpm) as average_wpm,
                AVG(accuracy) as average_accuracy,
                AVG(consistency) as average_consistency,
                MAX(wpm) as best_wpm,
                MAX(accuracy) as best_accuracy,
                COUNT(*) as total_tests
            FROM test_sessions
            WHERE user_id = ?
        """
        params: List[Any] = [user_id]
        if since:
            query += " AND created_at >= ?"
            params.append(since)

        async with self._get_connection() as db:
            async with db.execute(query, params) as cursor:
                row = await cursor.fetchone()

            progress_query = "SELECT wpm, accuracy, created_at FROM test_sessions WHERE user_id = ?"
            if since:
                progress_query += " AND created_at >= ?"
            progress_query += " ORDER BY created_at ASC, rowid ASC"
            async with db.execute(progress_query, params) as cursor:
                progress = [
                    {'wpm': r['wpm'], 'accuracy': r['accuracy'], 'createdAt': r['created_at']}
                    async for r in cursor
                ]

        return {
            'averageWpm': row['average_wpm'] or 0,
            'averageAccuracy': row['average_accuracy'] or 0,
            'averageConsistency': row['average_consistency'] or 0,
            'bestWpm': row['best_wpm'] or 0,
            'bestAccuracy': row['best_accuracy'] or 0,
            'totalTests': row['total_tests'] or 0,
            'progressData': progress,
        }

    # Leaderboard operations
    async def query_leaderboard(
        self,
        since: Optional[str] = None,
        limit: Optional[int] = config.LEADERBOARD_LIMIT,
        recent: int = config.LEADERBOARD_RECENT_SESSIONS
    ) -> List[Dict[str, Any]]:
        """
        Get leaderboard candidates ordered by best WPM.

        Args:
            since: Only count sessions at or after this timestamp; None for all time
            limit: Maximum number of users, None for every ranked user
            recent: Number of most recent sessions whose accuracy is returned;
                0 skips the accuracy lookups

        Returns:
            Dicts with user_id, username, best_wpm, total_tests, created_at and
            recent_accuracies (newest first)
        """
        # SQLite treats a negative LIMIT as no limit
        limit = -1 if limit is None else limit

        if since is None:
            query = """
                SELECT user_id, username, best_wpm, total_tests, created_at
                FROM users
                WHERE total_tests > 0 AND best_wpm > 0
                ORDER BY best_wpm DESC, created_at ASC, rowid ASC
                LIMIT ?
            """
            params: List[Any] = [limit]
        else:
            query = """
                SELECT
                    u.user_id,
                    u.username,
                    MAX(s.wpm) as best_wpm,
                    u.total_tests,
                    u.created_at
                FROM users u
                INNER JOIN test_sessions s ON s.user_id = u.user_id
                WHERE s.created_at >= ?
                GROUP BY u.user_id, u.username, u.total_tests, u.created_at
                HAVING MAX(s.wpm) > 0
                ORDER BY best_wpm DESC, u.created_at ASC, u.rowid ASC
                LIMIT ?
            """
            params = [since, limit]

        async with self._get_connection() as db:
            async with db.execute(query, params) as cursor:
                users = [dict(row) async for row in cursor]

            for user in users:
                if recent <= 0:
                    user['recent_accuracies'] = []
                    continue

                accuracy_query = "SELECT accuracy FROM test_sessions WHERE user_id = ?"
                accuracy_params: List[Any] = [user['user_id']]
                if since is not None:
                    accuracy_query += " AND created_at >= ?"
                    accuracy_params.append(since)
                accuracy_query += " ORDER BY created_at DESC, rowid DESC LIMIT ?"
                accuracy_params.append(recent)

                async with db.execute(accuracy_query, accuracy_params) as cursor:
                    user['recent_accuracies'] = [row['accuracy'] async for row in cursor]

        return users
