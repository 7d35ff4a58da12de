import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from film_relay.core.store import StoreError
from film_relay.schemas import SessionUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


def _store_error(e: Exception) -> JSONResponse:
    return JSONResponse({"success": False, "error": str(e)}, status_code=503)


@router.get("/session")
async def get_session(request: Request):
    try:
        session = await request.app.state.store.get_session()
    except StoreError as e:
        return _store_error(e)
    if session is None:
        return _store_error("Session not initialised")
    return session.to_api()


@router.post("/session")
async def update_session(update: SessionUpdate, request: Request):
    store = request.app.state.store
    try:
        changes = update.changes()
        if changes:
            session = await store.set_session(**changes)
            logger.info(f"✅ Session updated: film {session.film_id}, production {session.production_id}")
        else:
            session = await store.get_session()
    except StoreError as e:
        return _store_error(e)
    if session is None:
        return _store_error("Session not initialised")
    return session.to_api()
