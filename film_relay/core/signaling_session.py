import logging

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from film_relay.core.connection_state import ConnectionState
from film_relay.core.signaling_router import SignalingRouter

logger = logging.getLogger(__name__)


class SignalingSession:
    """Drives one signaling WebSocket from accept to cleanup."""

    def __init__(self, ws: WebSocket, router: SignalingRouter, outbox_size: int = 256, send_timeout: float = 5.0):
        self.ws = ws
        self.router = router
        self.conn = ConnectionState(ws, outbox_size=outbox_size, send_timeout=send_timeout)

    async def run(self):
        await self.ws.accept()
        self.conn.start()
        logger.info(f"🔌 New WebSocket connection {self.conn!r}")
        try:
            await self._handle_signaling_messages()
        except Exception as e:
            logger.exception(f"🚨 Error in signaling loop for {self.conn!r}: {e}")
        finally:
            await self._final_cleanup()

    async def _handle_signaling_messages(self):
        while True:
            message = await self.ws.receive()
            if message["type"] == "websocket.disconnect":
                logger.info(f"🔌 WebSocket disconnected {self.conn!r}")
                return

            raw = message.get("text")
            if raw is None and message.get("bytes") is not None:
                try:
                    raw = message["bytes"].decode("utf-8")
                except UnicodeDecodeError:
                    logger.warning(f"⚠️ Discarding undecodable frame from {self.conn!r}")
                    continue
            if raw is None:
                continue

            try:
                await self.router.handle_message(self.conn, raw)
            except Exception as e:
                logger.exception(f"❌ Error processing message from {self.conn!r}: {e}")

    async def _final_cleanup(self):
        try:
            await self.router.handle_close(self.conn)
        except Exception as e:
            logger.exception(f"❌ Error cleaning up {self.conn!r}: {e}")
        await self.conn.close()

        if self.ws.application_state == WebSocketState.CONNECTED and self.ws.client_state == WebSocketState.CONNECTED:
            try:
                await self.ws.close()
            except Exception as e:
                logger.warning(f"⚠️ Error closing WebSocket: {e}")
