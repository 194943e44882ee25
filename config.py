"""Configuration constants for the typesprint server."""

import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Scoring
CHARS_PER_WORD = 5  # standard "5 characters = 1 word"
WPM_SAMPLE_WINDOW = 10  # samples kept for consistency
SAMPLE_INTERVAL_SECONDS = 1.0
DEFAULT_DURATION = 60  # seconds

DEFAULT_PASSAGE = (
    "The quick brown fox jumps over the lazy dog. This pangram contains every "
    "letter of the alphabet and is perfect for typing practice. Focus on "
    "accuracy first, then gradually increase your speed. Remember to maintain "
    "proper finger positioning and use all ten fingers for optimal results."
)

# Presence
LEADERBOARD_ROOM = "leaderboard"
TYPING_ROOM_PREFIX = "typing-room-"
ONLINE_USERS_PREVIEW = 10  # users included in online-users broadcasts
OUTBOUND_QUEUE_SIZE = 100  # pending messages per connection before dropping

# Leaderboard
LEADERBOARD_LIMIT = 50
LEADERBOARD_RECENT_SESSIONS = 10
LEADERBOARD_WINDOWS = {
    'all': None,
    'today': 0,  # since midnight UTC
    'week': 7,
    'month': 30,
}

# User stats timeframes (days)
STATS_TIMEFRAMES = {
    '7d': 7,
    '30d': 30,
    '90d': 90,
}
DEFAULT_STATS_TIMEFRAME = '30d'

# Environment
DATABASE_PATH = os.getenv("DATABASE_PATH", "./data/typesprint.db")
JWT_SECRET = os.getenv("JWT_SECRET", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3002"))
CLIENT_URL = os.getenv("CLIENT_URL", "http://localhost:4173")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Transport liveness (seconds)
WS_PING_INTERVAL = 25
WS_PING_TIMEOUT = 60
