import asyncio
import contextlib
import json
import logging
import uuid
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class Role(Enum):
    UNCLASSIFIED = "unclassified"
    CAMERA = "camera"
    CONTROL_CLIENT = "control-client"
    CLOSED = "closed"


class InvalidTransition(Exception):
    pass


class ConnectionState:
    """One signaling connection: its role and its outbound message queue.

    Roles move UNCLASSIFIED -> CAMERA | CONTROL_CLIENT -> CLOSED and never
    change otherwise. Outbound messages go through a bounded queue drained by
    a single writer task, so sends never block the caller and each recipient
    sees messages in the order they were queued.
    """

    def __init__(self, ws, outbox_size: int = 256, send_timeout: float = 5.0):
        self.ws = ws
        self.conn_id = uuid.uuid4().hex[:8]
        self.role = Role.UNCLASSIFIED
        self.camera_id: Optional[int] = None
        self.announced = False
        self.is_connected = True
        self._send_timeout = send_timeout
        self._outbox: asyncio.Queue = asyncio.Queue(maxsize=outbox_size)
        self._writer: Optional[asyncio.Task] = None

    def __repr__(self):
        if self.role is Role.CAMERA:
            return f"<ConnectionState {self.conn_id} camera {self.camera_id}>"
        return f"<ConnectionState {self.conn_id} {self.role.value}>"

    @property
    def is_open(self) -> bool:
        return self.is_connected and self.role is not Role.CLOSED

    def promote_to_camera(self, camera_id: int):
        if self.role is not Role.UNCLASSIFIED:
            raise InvalidTransition(f"{self!r} cannot become camera {camera_id}")
        self.role = Role.CAMERA
        self.camera_id = camera_id

    def promote_to_client(self):
        if self.role is not Role.UNCLASSIFIED:
            raise InvalidTransition(f"{self!r} cannot become a control client")
        self.role = Role.CONTROL_CLIENT

    def mark_closed(self):
        self.role = Role.CLOSED
        self.is_connected = False

    def start(self):
        if self._writer is None:
            self._writer = asyncio.create_task(self._write_loop())

    def send(self, message: dict) -> bool:
        return self.send_text(json.dumps(message))

    def send_text(self, text: str) -> bool:
        """Queue a serialized message. Returns False if it was dropped."""
        if not self.is_open:
            return False
        try:
            self._outbox.put_nowait(text)
        except asyncio.QueueFull:
            logger.warning(f"⚠️ Outbox full for {self!r}, dropping message")
            return False
        return True

    async def flush(self):
        """Wait until every queued message was written or dropped."""
        await self._outbox.join()

    async def close(self):
        self.mark_closed()
        task, self._writer = self._writer, None
        if task:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        while not self._outbox.empty():
            self._outbox.get_nowait()
            self._outbox.task_done()

    async def _write_loop(self):
        while True:
            text = await self._outbox.get()
            try:
                if self.is_connected:
                    await asyncio.wait_for(self.ws.send_text(text), timeout=self._send_timeout)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # The receive loop notices the dead transport and runs cleanup.
                logger.warning(f"⚠️ Error sending to {self!r}: {e!r}")
                self.is_connected = False
            finally:
                self._outbox.task_done()
