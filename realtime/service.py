"""Realtime presence and leaderboard broadcast service."""

from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from pydantic import BaseModel

import config
from database.manager import StatisticsStoreError
from game.leaderboard import LeaderboardAggregator
from realtime.auth import TokenVerifier
from realtime.connection import Connection, Transport
from realtime.messages import (
    JoinLeaderboard,
    JoinTypingRoom,
    LeaveLeaderboard,
    LeaveTypingRoom,
    MessageError,
    TypingEnd,
    TypingStart,
    TypingStatus,
    TypingUpdate,
    parse_inbound,
)
from realtime.presence import PresenceRegistry, RoomRegistry
from utils import payloads
from utils.log import get_logger

logger = get_logger(__name__)


class PresenceService:
    """
    Tracks live connections, relays typing progress, persists finished
    tests and keeps leaderboard subscribers current.

    All state is owned by the instance and mutated from a single asyncio
    loop. Fan-out only enqueues (see Connection.send), so membership cannot
    change in the middle of a broadcast.
    """

    def __init__(
        self,
        store,
        aggregator: LeaderboardAggregator,
        verifier: TokenVerifier,
        preview: int = config.ONLINE_USERS_PREVIEW
    ):
        self.store = store
        self.aggregator = aggregator
        self.verifier = verifier
        self.preview = preview

        self.presence = PresenceRegistry()
        self.rooms = RoomRegistry()
        self._connections: Dict[str, Connection] = {}
        self.running = False

        self._handlers: Dict[type, Callable[[Connection, Any], Awaitable[None]]] = {
            JoinLeaderboard: self._on_join_leaderboard,
            LeaveLeaderboard: self._on_leave_leaderboard,
            TypingStatus: self._on_typing_status,
            TypingStart: self._on_typing_status,
            TypingUpdate: self._on_typing_update,
            TypingEnd: self._on_typing_end,
            JoinTypingRoom: self._on_join_typing_room,
            LeaveTypingRoom: self._on_leave_typing_room,
        }

    # Lifecycle
    def start(self):
        """Begin accepting connections."""
        self.running = True
        logger.info("Presence service started")

    async def stop(self):
        """Close every connection and forget all presence."""
        self.running = False
        connections = list(self._connections.values())
        self._connections.clear()
        self.presence.clear()
        self.rooms.clear()
        for connection in connections:
            await connection.close(code=1001)
        logger.info("Presence service stopped", closed_connections=len(connections))

    # Connections
    async def connect(self, transport: Transport, token: Optional[str]) -> Connection:
        """
        Authenticate and register a new connection.

        Raises:
            AuthenticationError: The token was rejected; nothing is registered
            RuntimeError: The service is not running
        """
        if not self.running:
            raise RuntimeError("Presence service is not running")

        identity = await self.verifier.verify(token)

        connection = Connection(transport, identity.user_id, identity.username)
        self._connections[connection.connection_id] = connection
        self.presence.add(connection.connection_id, identity.user_id, identity.username)
        connection.start()

        logger.info(
            "User connected",
            connection_id=connection.connection_id,
            user_id=identity.user_id,
            username=identity.username,
        )
        self.broadcast_online_users()
        return connection

    async def disconnect(self, connection: Connection):
        """Remove a connection from presence and every room, then tell the others."""
        connection_id = connection.connection_id
        entry = self.presence.remove(connection_id)
        self._connections.pop(connection_id, None)
        rooms_left = self.rooms.leave_all(connection_id)

        if entry is not None:
            logger.info("User disconnected", connection_id=connection_id, user_id=entry.user_id)
            for room in rooms_left:
                if room.startswith(config.TYPING_ROOM_PREFIX):
                    room_id = room[len(config.TYPING_ROOM_PREFIX):]
                    self._send_to(
                        self.rooms.members(room),
                        payloads.USER_LEFT_ROOM,
                        payloads.room_member_payload(room_id, entry)
                    )
            self.broadcast_online_users()

        await connection.close()

    def online_count(self) -> int:
        """Number of live connections."""
        return len(self.presence)

    # Inbound
    async def handle_message(self, connection: Connection, raw: Any):
        """Validate one inbound message and dispatch it."""
        if connection.connection_id not in self.presence:
            return

        try:
            message = parse_inbound(raw)
        except MessageError as e:
            logger.info(
                "Rejected malformed message",
                connection_id=connection.connection_id,
                details=e.details,
            )
            connection.send(payloads.ERROR, payloads.error_payload(str(e), e.details))
            return

        handler = self._handlers[type(message)]
        try:
            await handler(connection, message)
        except Exception:
            logger.exception(
                "Error handling message",
                connection_id=connection.connection_id,
                event=getattr(message, 'event', None),
            )
            connection.send(payloads.ERROR, payloads.error_payload("Internal error"))

    async def _on_join_leaderboard(self, connection: Connection, message: JoinLeaderboard):
        self.rooms.join(config.LEADERBOARD_ROOM, connection.connection_id)
        await self.send_leaderboard(connection)

    async def _on_leave_leaderboard(self, connection: Connection, message: LeaveLeaderboard):
        self.rooms.leave(config.LEADERBOARD_ROOM, connection.connection_id)

    async def _on_typing_status(self, connection: Connection, message: BaseModel):
        self.presence.set_typing(connection.connection_id, message.data.is_typing)
        self.broadcast_online_users()

    async def _on_typing_update(self, connection: Connection, message: TypingUpdate):
        data = message.data
        entry = self.presence.set_typing(connection.connection_id, True, wpm=data.wpm)
        if entry is None:
            return
        self.broadcast_except(
            connection.connection_id,
            payloads.USER_TYPING_UPDATE,
            payloads.typing_update_payload(entry, data.wpm, data.accuracy, data.progress)
        )

    async def _on_typing_end(self, connection: Connection, message: TypingEnd):
        data = message.data
        # Presence is best-effort and updates whatever happens to the write
        self.presence.set_typing(connection.connection_id, False, wpm=data.wpm)

        try:
            record = await self.store.record_test_result(
                connection.user_id,
                data.to_result(),
                test_type=data.test_type,
                difficulty=data.difficulty,
                text_content=data.text_content,
            )
        except StatisticsStoreError as e:
            logger.error(
                "Error saving typing result",
                connection_id=connection.connection_id,
                user_id=connection.user_id,
                error=str(e),
            )
            self.broadcast_online_users()
            connection.send(
                payloads.TYPING_SAVED,
                payloads.typing_saved_payload(error="Failed to save result")
            )
            return

        logger.info(
            "Typing result saved",
            user_id=connection.user_id,
            test_id=record.session_id,
            wpm=record.wpm,
        )
        await self.broadcast_leaderboard()
        self.broadcast_online_users()
        connection.send(payloads.TYPING_SAVED, payloads.typing_saved_payload(test_id=record.session_id))

    async def _on_join_typing_room(self, connection: Connection, message: JoinTypingRoom):
        room_id = message.data.room_id
        room = config.TYPING_ROOM_PREFIX + room_id
        entry = self.presence.get(connection.connection_id)

        existing = self.rooms.members(room) - {connection.connection_id}
        if self.rooms.join(room, connection.connection_id):
            self._send_to(existing, payloads.USER_JOINED_ROOM, payloads.room_member_payload(room_id, entry))

        participants = [
            e for e in (self.presence.get(cid) for cid in self._ordered(self.rooms.members(room)))
            if e is not None
        ]
        connection.send(payloads.ROOM_PARTICIPANTS, payloads.room_participants_payload(room_id, participants))

    async def _on_leave_typing_room(self, connection: Connection, message: LeaveTypingRoom):
        room_id = message.data.room_id
        room = config.TYPING_ROOM_PREFIX + room_id
        entry = self.presence.get(connection.connection_id)

        if not self.rooms.leave(room, connection.connection_id):
            return
        self._send_to(self.rooms.members(room), payloads.USER_LEFT_ROOM, payloads.room_member_payload(room_id, entry))

    # Outbound
    def _ordered(self, connection_ids: Iterable[str]) -> List[str]:
        """Connection ids in join order."""
        wanted = set(connection_ids)
        return [e.connection_id for e in self.presence.all() if e.connection_id in wanted]

    def _send_to(self, connection_ids: Iterable[str], event: str, data: Any):
        for connection_id in connection_ids:
            connection = self._connections.get(connection_id)
            if connection is not None:
                connection.send(event, data)

    def broadcast(self, event: str, data: Any):
        """Send to every live connection."""
        self._send_to(list(self._connections), event, data)

    def broadcast_except(self, origin_id: str, event: str, data: Any):
        """Send to every live connection but the origin."""
        self._send_to([cid for cid in self._connections if cid != origin_id], event, data)

    def broadcast_online_users(self):
        """Global presence: true count plus a capped preview."""
        self.broadcast(
            payloads.ONLINE_USERS_UPDATE,
            payloads.online_users_payload(self.presence.all(), self.preview)
        )

    async def send_leaderboard(self, connection: Connection):
        """Send the current leaderboard to one connection."""
        try:
            rows = await self.aggregator.get_leaderboard()
        except StatisticsStoreError as e:
            logger.error("Error sending leaderboard", connection_id=connection.connection_id, error=str(e))
            return
        connection.send(payloads.LEADERBOARD_UPDATE, payloads.leaderboard_payload(rows))

    async def broadcast_leaderboard(self):
        """Recompute the leaderboard and send it to the leaderboard room."""
        try:
            rows = await self.aggregator.get_leaderboard()
        except StatisticsStoreError as e:
            logger.error("Error broadcasting leaderboard", error=str(e))
            return
        # Membership is read after the query so late joiners are included
        self._send_to(
            self.rooms.members(config.LEADERBOARD_ROOM),
            payloads.LEADERBOARD_UPDATE,
            payloads.leaderboard_payload(rows)
        )

    # Used by request/response endpoints after a result is stored
    refresh_leaderboard = broadcast_leaderboard

    def broadcast_system_message(self, message: str, message_type: str = 'info'):
        """Announce something to every connection."""
        self.broadcast(payloads.SYSTEM_MESSAGE, payloads.system_message_payload(message, message_type))
