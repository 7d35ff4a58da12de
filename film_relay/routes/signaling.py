from fastapi import APIRouter, WebSocket

from film_relay.constants import SIGNALING_PATH
from film_relay.core.signaling_session import SignalingSession

router = APIRouter()


@router.websocket(SIGNALING_PATH)
async def signaling_endpoint(websocket: WebSocket):
    state = websocket.app.state
    session = SignalingSession(
        websocket,
        state.signaling_router,
        outbox_size=state.settings.outbox_size,
        send_timeout=state.settings.send_timeout,
    )
    await session.run()
