"""Per-client connection with a bounded, non-blocking outbound queue."""

import asyncio
import uuid
from typing import Any, Dict, Optional, Protocol

import config
from utils.log import get_logger

logger = get_logger(__name__)


class Transport(Protocol):
    """Bidirectional message channel to one client (e.g. a websocket)."""

    async def send_json(self, data: Any) -> None:
        ...

    async def close(self, code: int = 1000) -> None:
        ...


class Connection:
    """
    One authenticated client session.

    send() never waits: messages go into a bounded queue drained by a
    writer task, and a full queue drops the message for this connection
    only.
    """

    def __init__(
        self,
        transport: Transport,
        user_id: str,
        username: str,
        connection_id: Optional[str] = None,
        queue_size: int = config.OUTBOUND_QUEUE_SIZE
    ):
        self.transport = transport
        self.user_id = user_id
        self.username = username
        self.connection_id = connection_id or str(uuid.uuid4())
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._writer: Optional[asyncio.Task] = None
        self.closed = False
        self.dropped = 0

    def start(self):
        """Start the writer task on the running loop."""
        if self._writer is None:
            self._writer = asyncio.create_task(self._drain())

    def send(self, event: str, data: Any = None) -> bool:
        """Queue an outbound event. Returns False if it was dropped."""
        if self.closed:
            return False
        try:
            self._queue.put_nowait({'event': event, 'data': data})
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Outbound queue full, dropping message",
                connection_id=self.connection_id,
                event=event,
                dropped=self.dropped,
            )
            return False
        return True

    async def _drain(self):
        while True:
            message = await self._queue.get()
            try:
                await self.transport.send_json(message)
            except Exception as e:
                # The transport is gone; the disconnect path cleans up.
                logger.info("Send failed, stopping writer", connection_id=self.connection_id, error=str(e))
                self.closed = True
                self._discard_pending()
                return
            finally:
                self._queue.task_done()

    def _discard_pending(self):
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()

    async def flush(self):
        """Wait until everything queued so far has been handed to the transport."""
        if self._writer is None or self.closed:
            return
        await self._queue.join()

    async def close(self, code: int = 1000):
        """Stop the writer and close the transport."""
        already_closed = self.closed
        self.closed = True
        if self._writer is not None:
            self._writer.cancel()
            try:
                await self._writer
            except (asyncio.CancelledError, Exception):
                pass
            self._writer = None
        self._discard_pending()
        if not already_closed:
            try:
                await self.transport.close(code)
            except Exception as e:
                logger.debug("Transport close failed", connection_id=self.connection_id, error=str(e))
