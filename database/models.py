"""Database models and schemas."""

# SQL schemas for all tables
# Timestamps are ISO-8601 UTC strings written by the application so that
# window filters can compare them as text.

CREATE_USERS_TABLE = """
CREATE TABLE IF NOT EXISTS users (
    user_id TEXT PRIMARY KEY,
    username TEXT NOT NULL UNIQUE,
    total_tests INTEGER DEFAULT 0,
    total_words INTEGER DEFAULT 0,
    total_time INTEGER DEFAULT 0,
    best_wpm REAL DEFAULT 0.0,
    average_wpm REAL DEFAULT 0.0,
    best_accuracy REAL DEFAULT 0.0,
    average_accuracy REAL DEFAULT 0.0,
    created_at TEXT NOT NULL
);
"""

CREATE_TEST_SESSIONS_TABLE = """
CREATE TABLE IF NOT EXISTS test_sessions (
    session_id TEXT PRIMARY KEY,
    user_id TEXT,
    wpm REAL NOT NULL,
    accuracy REAL NOT NULL,
    errors INTEGER NOT NULL,
    consistency REAL DEFAULT 0.0,
    words_typed INTEGER DEFAULT 0,
    time_spent INTEGER DEFAULT 0,
    test_type TEXT DEFAULT 'practice',
    difficulty TEXT DEFAULT 'intermediate',
    text_content TEXT,
    created_at TEXT NOT NULL,
    FOREIGN KEY (user_id) REFERENCES users(user_id)
);
"""

# Indexes for performance
CREATE_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_users_best_wpm ON users(best_wpm DESC);",
    "CREATE INDEX IF NOT EXISTS idx_sessions_user ON test_sessions(user_id);",
    "CREATE INDEX IF NOT EXISTS idx_sessions_created ON test_sessions(created_at DESC);",
    "CREATE INDEX IF NOT EXISTS idx_sessions_user_created ON test_sessions(user_id, created_at DESC);",
]

USER_COLUMNS = (
    'user_id, username, total_tests, total_words, total_time, best_wpm, '
    'average_wpm, best_accuracy, average_accuracy, created_at'
)

SESSION_COLUMNS = (
    'session_id, user_id, wpm, accuracy, errors, consistency, words_typed, '
    'time_spent, test_type, difficulty, text_content, created_at'
)
