"""Database initialization and migrations."""

import aiosqlite
from pathlib import Path
from typing import Optional

import config
from database.models import (
    CREATE_USERS_TABLE,
    CREATE_TEST_SESSIONS_TABLE,
    CREATE_INDEXES,
)
from utils.log import get_logger

logger = get_logger(__name__)


async def initialize_database(db_path: Optional[str] = None) -> str:
    """Create all tables and indexes. Returns the database path used."""
    db_path = db_path or config.DATABASE_PATH

    # Create data directory if it doesn't exist
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    async with aiosqlite.connect(db_path) as db:
        await db.execute(CREATE_USERS_TABLE)
        await db.execute(CREATE_TEST_SESSIONS_TABLE)

        for index_sql in CREATE_INDEXES:
            await db.execute(index_sql)

        await db.commit()

    logger.info("Database initialized", db_path=db_path)
    return db_path
