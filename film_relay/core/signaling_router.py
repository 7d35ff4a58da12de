"""Signaling router: role assignment, message routing and slot lifecycle.

Every inbound message of one connection is handled here in arrival order;
different connections interleave freely. The router is the only writer of
the connection registry and, together with the session bootstrap and the
session API, of the state store.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from film_relay.config import Settings
from film_relay.constants import (
    CAMERA_CONNECTED,
    CAMERA_DISCONNECTED,
    ERROR,
    INITIAL_STATE,
    NEGOTIATION_TYPES,
    OFFER,
    RECORDING_TYPES,
    REGISTER_CAMERA,
    REGISTER_CLIENT,
    STORE_UNAVAILABLE,
)
from film_relay.core.broadcast import broadcast
from film_relay.core.connection_state import ConnectionState, Role
from film_relay.core.registry import ConnectionRegistry
from film_relay.core.store import StateStore, StoreError

logger = logging.getLogger(__name__)


def parse_slot_id(value) -> Optional[int]:
    """Accept ints and numeric strings ("2"); anything else is not a slot."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        value = value.strip()
        # isdigit() alone lets through superscripts and other digits int() rejects
        if value.isascii() and value.isdigit():
            return int(value)
    return None


class SignalingRouter:
    def __init__(self, store: StateStore, registry: ConnectionRegistry, settings: Settings):
        self.store = store
        self.registry = registry
        self.settings = settings
        self.instance_id = settings.instance_id
        self._slot_locks: Dict[int, asyncio.Lock] = {}

    def _slot_lock(self, slot_id: int) -> asyncio.Lock:
        # Serializes claim, release and repair of one slot inside this process.
        lock = self._slot_locks.get(slot_id)
        if lock is None:
            lock = self._slot_locks[slot_id] = asyncio.Lock()
        return lock

    def _valid_slot(self, value) -> Optional[int]:
        slot_id = parse_slot_id(value)
        if slot_id is not None and self.settings.is_valid_slot(slot_id):
            return slot_id
        return None

    async def handle_message(self, conn: ConnectionState, raw: str):
        try:
            message = json.loads(raw)
        except ValueError:
            logger.warning(f"⚠️ Discarding malformed message from {conn!r}")
            return

        if not isinstance(message, dict) or not isinstance(message.get("type"), str):
            logger.warning(f"⚠️ Discarding message without a type from {conn!r}")
            return

        msg_type = message["type"]
        logger.debug(f"📨 {msg_type} from {conn!r} (camera {message.get('cameraId')})")

        if msg_type == REGISTER_CAMERA:
            await self._on_register_camera(conn, message)
        elif msg_type == REGISTER_CLIENT:
            await self._on_register_client(conn)
        elif msg_type in NEGOTIATION_TYPES:
            await self._on_negotiation(conn, message)
        elif msg_type in RECORDING_TYPES:
            self._on_recording(conn, message)
        else:
            logger.warning(f"⚠️ Unknown message type: {msg_type!r}")

    async def _on_register_camera(self, conn: ConnectionState, message: dict):
        metadata = message.get("metadata")
        if not isinstance(metadata, dict):
            metadata = {}

        if conn.role is Role.CAMERA:
            # A device that negotiated first may still register explicitly;
            # keep its metadata but do not announce the camera twice.
            if conn.announced and parse_slot_id(message.get("cameraId")) == conn.camera_id and metadata:
                await self._update_camera_metadata(conn, metadata)
            else:
                logger.debug(f"Ignoring repeated register-camera from {conn!r}")
            return

        if conn.role is not Role.UNCLASSIFIED:
            logger.debug(f"Ignoring register-camera from {conn!r}")
            return

        slot_id = self._valid_slot(message.get("cameraId"))
        if slot_id is None:
            logger.warning(f"⚠️ register-camera for unknown camera {message.get('cameraId')!r} ignored")
            return

        await self._claim_slot(conn, slot_id, metadata)

    async def _claim_slot(self, conn: ConnectionState, slot_id: int, metadata: Dict[str, Any]) -> bool:
        async with self._slot_lock(slot_id):
            try:
                await self.store.set_slot_state(slot_id, True, metadata, owner=self.instance_id)
            except StoreError as e:
                logger.warning(f"⚠️ Camera {slot_id} registration failed: {e}")
                conn.send({"type": ERROR, "error": STORE_UNAVAILABLE, "cameraId": slot_id})
                return False

            conn.promote_to_camera(slot_id)
            superseded = self.registry.bind_camera(slot_id, conn)
            if superseded is not None:
                logger.info(f"📷 Camera {slot_id} re-registered, {conn!r} supersedes {superseded!r}")
            conn.announced = True
            logger.info(f"📷 Camera {slot_id} connected")
            broadcast(self.registry, {
                "type": CAMERA_CONNECTED,
                "cameraId": slot_id,
                "metadata": metadata,
            })
        return True

    async def _update_camera_metadata(self, conn: ConnectionState, metadata: Dict[str, Any]):
        slot_id = conn.camera_id
        async with self._slot_lock(slot_id):
            if self.registry.handle_for(slot_id) is not conn:
                return
            try:
                await self.store.set_slot_state(slot_id, True, metadata, owner=self.instance_id)
            except StoreError as e:
                logger.warning(f"⚠️ Could not store metadata for camera {slot_id}: {e}")

    async def _on_register_client(self, conn: ConnectionState):
        if conn.role is not Role.UNCLASSIFIED:
            logger.debug(f"Ignoring register-client from {conn!r}")
            return

        # Join the client set before reading the snapshot so a camera that
        # connects meanwhile is still announced to this client.
        self.registry.add_client(conn)
        try:
            cameras = await self._connected_cameras()
        except StoreError as e:
            self.registry.remove_client(conn)
            logger.warning(f"⚠️ Client registration failed: {e}")
            conn.send({"type": ERROR, "error": STORE_UNAVAILABLE})
            return

        conn.promote_to_client()
        logger.info(f"🌐 Web client registered {conn!r}")
        conn.send({"type": INITIAL_STATE, "cameras": cameras})

    async def _connected_cameras(self) -> Dict[str, dict]:
        cameras = {}
        # A camera bound after this point is announced to the client by broadcast.
        bound = self.registry.bound_slots()
        for slot_id in self.settings.slot_ids:
            state = await self.store.get_slot_state(slot_id)
            if not state.connected:
                continue
            if state.owner == self.instance_id and slot_id not in bound:
                # Left over from a crash of this relay; reconciliation clears it.
                continue
            cameras[str(slot_id)] = {"connected": True, "metadata": state.metadata}
        return cameras

    async def _on_negotiation(self, conn: ConnectionState, message: dict):
        msg_type = message["type"]

        if conn.role is Role.UNCLASSIFIED:
            slot_id = self._valid_slot(message.get("cameraId"))
            if msg_type != OFFER or slot_id is None:
                logger.debug(f"Ignoring {msg_type} from unregistered {conn!r}")
                return
            metadata = message.get("metadata")
            if not await self._claim_slot(conn, slot_id, metadata if isinstance(metadata, dict) else {}):
                return

        if conn.role is Role.CONTROL_CLIENT:
            slot_id = self._valid_slot(message.get("cameraId"))
            if slot_id is None:
                logger.debug(f"Ignoring {msg_type} for unknown camera {message.get('cameraId')!r}")
                return
            self._forward_to_camera(slot_id, message)

        elif conn.role is Role.CAMERA:
            claimed = parse_slot_id(message.get("cameraId"))
            if claimed is None:
                message["cameraId"] = conn.camera_id
            elif claimed != conn.camera_id:
                logger.warning(f"⚠️ Camera {conn.camera_id} sent {msg_type} labelled as camera {claimed}")
            delivered = broadcast(self.registry, message)
            logger.debug(f"📤 Forwarded {msg_type} from Camera {conn.camera_id} to {delivered} clients")

    def _on_recording(self, conn: ConnectionState, message: dict):
        if conn.role is not Role.CONTROL_CLIENT:
            logger.debug(f"Ignoring {message['type']} from {conn!r}")
            return
        slot_id = self._valid_slot(message.get("cameraId"))
        if slot_id is None:
            logger.debug(f"Ignoring {message['type']} for unknown camera {message.get('cameraId')!r}")
            return
        if self._forward_to_camera(slot_id, message):
            logger.info(f"🎬 {message['type']} sent to Camera {slot_id}")

    def _forward_to_camera(self, slot_id: int, message: dict) -> bool:
        target = self.registry.handle_for(slot_id)
        if target is None or not target.is_open:
            logger.debug(f"No live connection for camera {slot_id}, {message['type']} dropped")
            return False
        if target.send(message):
            logger.debug(f"📤 Forwarded {message['type']} to Camera {slot_id}")
            return True
        return False

    async def handle_close(self, conn: ConnectionState):
        role = conn.role
        conn.mark_closed()

        if role is Role.CAMERA:
            await self._release_slot(conn)
        elif role is Role.CONTROL_CLIENT:
            self.registry.remove_client(conn)
            logger.info(f"🌐 Web client disconnected {conn!r}")

    async def _release_slot(self, conn: ConnectionState):
        slot_id = conn.camera_id
        async with self._slot_lock(slot_id):
            if not self.registry.unbind_camera(slot_id, conn):
                logger.info(f"📷 Superseded connection for camera {slot_id} closed")
                return
            try:
                await self.store.set_slot_state(slot_id, False, {}, owner=self.instance_id)
            except StoreError as e:
                logger.error(f"❌ Could not mark camera {slot_id} disconnected: {e}")
            logger.info(f"📷 Camera {slot_id} disconnected")
            broadcast(self.registry, {"type": CAMERA_DISCONNECTED, "cameraId": slot_id})

    async def reconcile_slots(self) -> List[int]:
        """Clear slots this relay marked connected but no longer holds."""
        repaired = []
        for slot_id in self.settings.slot_ids:
            async with self._slot_lock(slot_id):
                state = await self.store.get_slot_state(slot_id)
                if not state.connected or state.owner != self.instance_id:
                    continue
                if self.registry.handle_for(slot_id) is not None:
                    continue
                await self.store.set_slot_state(slot_id, False, {}, owner=self.instance_id)
                repaired.append(slot_id)
                logger.info(f"🧹 Camera {slot_id} had no live connection, marked disconnected")
        return repaired
