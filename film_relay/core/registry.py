"""Per-process registry of live signaling connections."""

import threading
from typing import Dict, FrozenSet, Optional, Set

from film_relay.core.connection_state import ConnectionState


class ConnectionRegistry:
    """Maps camera slots to their live connection and tracks control clients.

    Rebuilt empty on every process start. Each operation holds the lock only
    for the dict/set mutation, never across I/O.
    """

    def __init__(self):
        self._cameras: Dict[int, ConnectionState] = {}
        self._clients: Set[ConnectionState] = set()
        self._lock = threading.Lock()

    def bind_camera(self, slot_id: int, handle: ConnectionState) -> Optional[ConnectionState]:
        """Bind ``handle`` to the slot. Returns the superseded handle, if any."""
        with self._lock:
            previous = self._cameras.get(slot_id)
            self._cameras[slot_id] = handle
        if previous is handle:
            return None
        return previous

    def unbind_camera(self, slot_id: int, handle: Optional[ConnectionState] = None) -> bool:
        """Remove the slot binding.

        When ``handle`` is given the binding is only removed if it still
        points at that handle, so a superseded connection closing late
        cannot evict its replacement.
        """
        with self._lock:
            current = self._cameras.get(slot_id)
            if current is None:
                return False
            if handle is not None and current is not handle:
                return False
            del self._cameras[slot_id]
            return True

    def handle_for(self, slot_id: int) -> Optional[ConnectionState]:
        with self._lock:
            return self._cameras.get(slot_id)

    def add_client(self, handle: ConnectionState):
        with self._lock:
            self._clients.add(handle)

    def remove_client(self, handle: ConnectionState):
        with self._lock:
            self._clients.discard(handle)

    def all_clients(self) -> FrozenSet[ConnectionState]:
        with self._lock:
            return frozenset(self._clients)

    def bound_slots(self) -> Dict[int, ConnectionState]:
        with self._lock:
            return dict(self._cameras)
