"""Shared State Store: session identifiers and per-slot camera state.

The store outlives any relay process and is shared by every instance, so all
durable state goes through the four operations below. Two implementations
are provided: ``RedisStateStore`` for deployments and ``InMemoryStateStore``
for a single process (development and tests).
"""

import asyncio
import functools
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import redis.asyncio as redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    RedisError,
    TimeoutError as RedisTimeoutError,
    WatchError,
)

from film_relay.config import Settings
from film_relay.constants import CAMERA_KEY, SESSION_KEY
from film_relay.schemas import Session, SlotState

logger = logging.getLogger(__name__)

SESSION_UPDATE_ATTEMPTS = 5


class StoreError(Exception):
    pass


class StoreUnavailableError(StoreError):
    pass


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class StateStore(ABC):
    @abstractmethod
    async def get_session(self) -> Optional[Session]:
        """Return the active session, or None if none was created yet."""

    @abstractmethod
    async def set_session(
        self,
        film_id: Optional[str] = None,
        production_id: Optional[str] = None,
        *,
        if_absent: bool = False,
    ) -> Optional[Session]:
        """Update the provided fields and return the full session.

        With ``if_absent=True`` both fields are required and the session is
        only written when none exists; the call returns None when another
        writer got there first.
        """

    @abstractmethod
    async def get_slot_state(self, slot_id: int) -> SlotState:
        ...

    @abstractmethod
    async def set_slot_state(
        self,
        slot_id: int,
        connected: bool,
        metadata: Optional[Dict[str, Any]] = None,
        owner: Optional[str] = None,
    ) -> SlotState:
        ...

    async def ping(self) -> None:
        """Raise StoreUnavailableError if the store cannot be reached."""

    async def close(self) -> None:
        pass


def _translate_errors(func):
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise StoreUnavailableError(f"State store unreachable: {e}") from e
        except RedisError as e:
            raise StoreError(f"State store error: {e}") from e
    return wrapper


class RedisStateStore(StateStore):
    def __init__(self, client: "redis.Redis", prefix: str = "film_relay"):
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisStateStore":
        # Connection failures are retried by the client itself with
        # exponential backoff before surfacing as StoreUnavailableError.
        retry = Retry(
            ExponentialBackoff(
                cap=settings.store_retry_max_delay,
                base=settings.store_retry_base_delay,
            ),
            settings.store_retry_attempts,
        )
        client = redis.Redis.from_url(
            settings.state_store_url,
            decode_responses=True,
            retry=retry,
            retry_on_error=[RedisConnectionError, RedisTimeoutError],
            socket_timeout=settings.store_socket_timeout,
            socket_connect_timeout=settings.store_socket_timeout,
        )
        return cls(client, prefix=settings.state_store_prefix)

    def _key(self, name: str) -> str:
        return f"{self._prefix}:{name}"

    def _slot_key(self, slot_id: int) -> str:
        return self._key(CAMERA_KEY.format(slot_id=slot_id))

    @staticmethod
    def _encode_session(session: Session) -> str:
        return json.dumps({"filmId": session.film_id, "productionId": session.production_id})

    @staticmethod
    def _decode_session(raw: str) -> Session:
        try:
            data = json.loads(raw)
            return Session(film_id=data["filmId"], production_id=data["productionId"])
        except (ValueError, KeyError, TypeError) as e:
            raise StoreError(f"Corrupted session record: {e}") from e

    @_translate_errors
    async def get_session(self) -> Optional[Session]:
        raw = await self._client.get(self._key(SESSION_KEY))
        if raw is None:
            return None
        return self._decode_session(raw)

    @_translate_errors
    async def set_session(self, film_id=None, production_id=None, *, if_absent=False):
        key = self._key(SESSION_KEY)

        if if_absent:
            if not film_id or not production_id:
                raise ValueError("Creating a session requires both identifiers")
            session = Session(film_id=film_id, production_id=production_id)
            created = await self._client.set(key, self._encode_session(session), nx=True)
            return session if created else None

        changes = {}
        if film_id:
            changes["film_id"] = film_id
        if production_id:
            changes["production_id"] = production_id

        # Optimistic read-modify-write so concurrent partial updates from
        # different relays never drop each other's fields.
        async with self._client.pipeline(transaction=True) as pipe:
            for _ in range(SESSION_UPDATE_ATTEMPTS):
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    if raw is None:
                        raise StoreError("No session exists to update")
                    updated = self._decode_session(raw).model_copy(update=changes)
                    pipe.multi()
                    pipe.set(key, self._encode_session(updated))
                    await pipe.execute()
                    return updated
                except WatchError:
                    logger.debug("Session changed during update, retrying")
                    continue
        raise StoreError(f"Session kept changing during update, gave up after {SESSION_UPDATE_ATTEMPTS} attempts")

    @_translate_errors
    async def get_slot_state(self, slot_id: int) -> SlotState:
        data = await self._client.hgetall(self._slot_key(slot_id))
        if not data:
            return SlotState()
        try:
            metadata = json.loads(data.get("metadata") or "{}")
        except ValueError:
            logger.warning(f"⚠️ Corrupted metadata for camera {slot_id}, ignoring it")
            metadata = {}
        return SlotState(
            connected=data.get("connected") == "1",
            metadata=metadata if isinstance(metadata, dict) else {},
            last_update=data.get("lastUpdate") or None,
            owner=data.get("owner") or None,
        )

    @_translate_errors
    async def set_slot_state(self, slot_id, connected, metadata=None, owner=None):
        state = SlotState(
            connected=connected,
            metadata=metadata or {},
            last_update=_utc_now(),
            owner=owner,
        )
        await self._client.hset(
            self._slot_key(slot_id),
            mapping={
                "connected": "1" if state.connected else "0",
                "metadata": json.dumps(state.metadata),
                "lastUpdate": state.last_update,
                "owner": state.owner or "",
            },
        )
        return state

    @_translate_errors
    async def ping(self) -> None:
        await self._client.ping()

    async def close(self) -> None:
        await self._client.aclose()


class InMemoryStateStore(StateStore):
    """Process-local store with the same contract as RedisStateStore."""

    def __init__(self):
        self._session: Optional[Session] = None
        self._slots: Dict[int, SlotState] = {}
        self._lock = asyncio.Lock()

    async def get_session(self) -> Optional[Session]:
        return self._session

    async def set_session(self, film_id=None, production_id=None, *, if_absent=False):
        async with self._lock:
            if if_absent:
                if not film_id or not production_id:
                    raise ValueError("Creating a session requires both identifiers")
                if self._session is not None:
                    return None
                self._session = Session(film_id=film_id, production_id=production_id)
                return self._session

            if self._session is None:
                raise StoreError("No session exists to update")
            changes = {}
            if film_id:
                changes["film_id"] = film_id
            if production_id:
                changes["production_id"] = production_id
            self._session = self._session.model_copy(update=changes)
            return self._session

    async def get_slot_state(self, slot_id: int) -> SlotState:
        state = self._slots.get(slot_id)
        return state.model_copy(deep=True) if state else SlotState()

    async def set_slot_state(self, slot_id, connected, metadata=None, owner=None):
        state = SlotState(
            connected=connected,
            metadata=dict(metadata or {}),
            last_update=_utc_now(),
            owner=owner,
        )
        self._slots[slot_id] = state
        return state.model_copy(deep=True)


def create_store(settings: Settings) -> StateStore:
    if settings.state_store_url.startswith("memory://"):
        logger.warning("⚠️ Using in-process state store; state is not shared between relays")
        return InMemoryStateStore()
    return RedisStateStore.from_settings(settings)
