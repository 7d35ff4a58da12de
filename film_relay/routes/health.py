import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from film_relay.core.store import StoreError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
async def health(request: Request):
    state = request.app.state
    try:
        await state.store.ping()
        repaired = await state.signaling_router.reconcile_slots()
    except StoreError as e:
        logger.warning(f"⚠️ Health probe: state store unreachable: {e}")
        return JSONResponse(
            {"status": "error", "store": "down", "instanceId": state.settings.instance_id, "error": str(e)},
            status_code=503,
        )
    return {
        "status": "ok",
        "store": "ok",
        "instanceId": state.settings.instance_id,
        "repairedSlots": repaired,
    }
