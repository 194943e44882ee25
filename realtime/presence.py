"""In-memory registries of live connections and room memberships."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PresenceEntry:
    """Live typing activity of one connected session."""
    connection_id: str
    user_id: str
    username: str
    current_wpm: float = 0
    is_typing: bool = False
    joined_at: datetime = field(default_factory=_utcnow)

    def to_payload(self) -> Dict[str, Any]:
        return {
            'connectionId': self.connection_id,
            'userId': self.user_id,
            'username': self.username,
            'currentWpm': self.current_wpm,
            'isTyping': self.is_typing,
            'joinedAt': self.joined_at.isoformat(),
        }


class PresenceRegistry:
    """
    Maps connection ids to presence entries.

    One user with two tabs has two entries; removing one never touches the
    other.
    """

    def __init__(self):
        # connection_id -> entry, in join order
        self._entries: Dict[str, PresenceEntry] = {}

    def add(self, connection_id: str, user_id: str, username: str) -> PresenceEntry:
        """Register a new connection."""
        entry = PresenceEntry(
            connection_id=connection_id,
            user_id=user_id,
            username=username,
        )
        self._entries[connection_id] = entry
        return entry

    def get(self, connection_id: str) -> Optional[PresenceEntry]:
        """Get the entry for a connection."""
        return self._entries.get(connection_id)

    def remove(self, connection_id: str) -> Optional[PresenceEntry]:
        """Remove a connection's entry."""
        return self._entries.pop(connection_id, None)

    def set_typing(self, connection_id: str, is_typing: bool, wpm: Optional[float] = None) -> Optional[PresenceEntry]:
        """Update typing state (and optionally WPM) for a connection."""
        entry = self._entries.get(connection_id)
        if entry is None:
            return None
        entry.is_typing = is_typing
        if wpm is not None:
            entry.current_wpm = wpm
        return entry

    def all(self) -> List[PresenceEntry]:
        """All entries in join order."""
        return list(self._entries.values())

    def clear(self):
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._entries


class RoomRegistry:
    """Tracks which connections belong to which named rooms."""

    def __init__(self):
        # room -> connection ids
        self._rooms: Dict[str, Set[str]] = {}

    def join(self, room: str, connection_id: str) -> bool:
        """Add a connection to a room. Returns False if it was already there."""
        members = self._rooms.setdefault(room, set())
        if connection_id in members:
            return False
        members.add(connection_id)
        return True

    def leave(self, room: str, connection_id: str) -> bool:
        """Remove a connection from a room. Empty rooms are dropped."""
        members = self._rooms.get(room)
        if not members or connection_id not in members:
            return False
        members.discard(connection_id)
        if not members:
            del self._rooms[room]
        return True

    def leave_all(self, connection_id: str) -> List[str]:
        """Remove a connection from every room; returns the rooms it left."""
        left = [room for room, members in self._rooms.items() if connection_id in members]
        for room in left:
            self.leave(room, connection_id)
        return left

    def members(self, room: str) -> Set[str]:
        """Copy of a room's members."""
        return set(self._rooms.get(room, ()))

    def rooms_of(self, connection_id: str) -> List[str]:
        return [room for room, members in self._rooms.items() if connection_id in members]

    def clear(self):
        self._rooms.clear()

    def __contains__(self, room: str) -> bool:
        return room in self._rooms
