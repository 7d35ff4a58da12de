import asyncio
import logging
import uuid

from film_relay.core.store import StateStore, StoreError
from film_relay.schemas import Session

logger = logging.getLogger(__name__)


class BootstrapError(Exception):
    pass


async def ensure_session(store: StateStore) -> Session:
    session = await store.get_session()
    if session is not None:
        return session

    created = await store.set_session(str(uuid.uuid4()), str(uuid.uuid4()), if_absent=True)
    if created is not None:
        logger.info(f"📋 Created session, film {created.film_id}")
        return created

    # Another relay won the race; its identifiers are the session now.
    logger.info("📋 Session was created by another relay, re-reading")
    session = await store.get_session()
    if session is None:
        raise StoreError("Session disappeared right after it was created")
    return session


async def bootstrap_session(store: StateStore, attempts: int = 5, retry_delay: float = 1.0) -> Session:
    """Make sure the shared session exists before any connection is accepted.

    Store failures are retried with doubling delays; after ``attempts``
    failures BootstrapError is raised and the process must not serve.
    """
    delay = retry_delay
    last_error = None
    for attempt in range(1, attempts + 1):
        try:
            session = await ensure_session(store)
            logger.info(f"📋 Film GUID: {session.film_id}")
            logger.info(f"🏢 Production GUID: {session.production_id}")
            return session
        except StoreError as e:
            last_error = e
            logger.warning(f"⚠️ Session bootstrap attempt {attempt}/{attempts} failed: {e}")
            if attempt < attempts:
                await asyncio.sleep(delay)
                delay *= 2

    logger.error(f"❌ Could not bootstrap session after {attempts} attempts")
    raise BootstrapError(f"State store unavailable during bootstrap: {last_error}") from last_error
