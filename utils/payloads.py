"""Outbound realtime payload builders."""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import config
from game.leaderboard import LeaderboardRow
from realtime.presence import PresenceEntry

# Outbound event names
LEADERBOARD_UPDATE = 'leaderboard-update'
ONLINE_USERS_UPDATE = 'online-users-update'
USER_TYPING_UPDATE = 'user-typing-update'
TYPING_SAVED = 'typing-saved'
USER_JOINED_ROOM = 'user-joined-room'
USER_LEFT_ROOM = 'user-left-room'
ROOM_PARTICIPANTS = 'room-participants'
SYSTEM_MESSAGE = 'system-message'
ERROR = 'error'


def leaderboard_payload(rows: Iterable[LeaderboardRow]) -> List[Dict[str, Any]]:
    """Rows of a leaderboard-update."""
    return [row.to_payload() for row in rows]


def online_users_payload(
    entries: List[PresenceEntry],
    preview: int = config.ONLINE_USERS_PREVIEW
) -> Dict[str, Any]:
    """True count plus a capped preview list."""
    return {
        'count': len(entries),
        'users': [entry.to_payload() for entry in entries[:preview]],
    }


def typing_update_payload(
    entry: PresenceEntry,
    wpm: float,
    accuracy: float,
    progress: float
) -> Dict[str, Any]:
    """Per-user typing progress relayed to everyone else."""
    return {
        'userId': entry.user_id,
        'username': entry.username,
        'wpm': wpm,
        'accuracy': accuracy,
        'progress': progress,
    }


def typing_saved_payload(test_id: Optional[str] = None, error: Optional[str] = None) -> Dict[str, Any]:
    """Acknowledgement of a typing-end to its origin."""
    if error is not None:
        return {'success': False, 'error': error}
    return {'success': True, 'testId': test_id}


def room_member_payload(room_id: str, entry: PresenceEntry) -> Dict[str, Any]:
    """Who joined or left a typing room."""
    return {
        'roomId': room_id,
        'userId': entry.user_id,
        'username': entry.username,
    }


def room_participants_payload(room_id: str, entries: List[PresenceEntry]) -> Dict[str, Any]:
    return {
        'roomId': room_id,
        'participants': [entry.to_payload() for entry in entries],
    }


def system_message_payload(message: str, message_type: str = 'info') -> Dict[str, Any]:
    return {
        'message': message,
        'type': message_type,
        'timestamp': datetime.now(timezone.utc).isoformat(),
    }


def error_payload(message: str, details: Optional[list] = None) -> Dict[str, Any]:
    return {
        'message': message,
        'details': details or [],
    }
