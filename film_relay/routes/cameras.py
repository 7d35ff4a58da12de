from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from film_relay.core.signaling_router import parse_slot_id
from film_relay.core.store import StoreError
from film_relay.services.connection_descriptor import build_connection_descriptor, encode_descriptor

router = APIRouter()


@router.get("/cameras")
async def camera_status(request: Request):
    store = request.app.state.store
    cameras = {}
    try:
        for slot_id in request.app.state.settings.slot_ids:
            state = await store.get_slot_state(slot_id)
            cameras[str(slot_id)] = state.to_api()
    except StoreError as e:
        return JSONResponse({"success": False, "error": str(e)}, status_code=503)
    return {"success": True, "cameras": cameras}


@router.get("/qr/{camera_id}")
async def connection_data(camera_id: str, request: Request):
    settings = request.app.state.settings
    slot_id = parse_slot_id(camera_id)
    if slot_id is None or not settings.is_valid_slot(slot_id):
        return JSONResponse({"success": False, "error": "Invalid camera ID"}, status_code=400)

    try:
        session = await request.app.state.store.get_session()
    except StoreError as e:
        return JSONResponse({"success": False, "error": str(e)}, status_code=503)
    if session is None:
        return JSONResponse({"success": False, "error": "Session not initialised"}, status_code=503)

    descriptor = build_connection_descriptor(settings, session, slot_id)
    return {
        "success": True,
        "connectionData": descriptor.model_dump(),
        "payload": encode_descriptor(descriptor),
    }
