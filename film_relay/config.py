from dotenv import load_dotenv
import os
import socket
from dataclasses import dataclass
from typing import Optional

from film_relay.utils.network import get_local_ip

load_dotenv()


@dataclass(frozen=True)
class Settings:
    relay_host: str = "0.0.0.0"
    relay_port: int = 8080
    camera_slots: int = 3
    state_store_url: str = "redis://localhost:6379/0"
    state_store_prefix: str = "film_relay"
    store_retry_attempts: int = 3
    store_retry_base_delay: float = 0.1
    store_retry_max_delay: float = 2.0
    store_socket_timeout: float = 5.0
    bootstrap_attempts: int = 5
    bootstrap_retry_delay: float = 1.0
    public_address: str = "localhost"
    public_port: int = 8080
    public_protocol: str = "ws"
    instance_id: str = "localhost:8080"
    outbox_size: int = 256
    send_timeout: float = 5.0
    cors_origins: tuple = ("*",)
    log_level: str = "INFO"

    @property
    def slot_ids(self) -> range:
        return range(1, self.camera_slots + 1)

    def is_valid_slot(self, slot_id) -> bool:
        return isinstance(slot_id, int) and 1 <= slot_id <= self.camera_slots


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Build Settings from the environment (and an optional extra .env file)."""
    if env_file:
        load_dotenv(env_file, override=True)

    relay_port = _get_int("RELAY_PORT", 8080)
    camera_slots = _get_int("CAMERA_SLOTS", 3)
    if camera_slots < 1:
        raise ValueError(f"CAMERA_SLOTS must be at least 1, got {camera_slots}")

    public_protocol = os.getenv("PUBLIC_PROTOCOL", "ws").lower()
    if public_protocol not in ("ws", "wss"):
        raise ValueError(f"PUBLIC_PROTOCOL must be 'ws' or 'wss', got {public_protocol!r}")

    origins = tuple(
        o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()
    ) or ("*",)

    return Settings(
        relay_host=os.getenv("RELAY_HOST", "0.0.0.0"),
        relay_port=relay_port,
        camera_slots=camera_slots,
        state_store_url=os.getenv("STATE_STORE_URL", "redis://localhost:6379/0"),
        state_store_prefix=os.getenv("STATE_STORE_PREFIX", "film_relay"),
        store_retry_attempts=_get_int("STORE_RETRY_ATTEMPTS", 3),
        store_retry_base_delay=_get_float("STORE_RETRY_BASE_DELAY", 0.1),
        store_retry_max_delay=_get_float("STORE_RETRY_MAX_DELAY", 2.0),
        store_socket_timeout=_get_float("STORE_SOCKET_TIMEOUT", 5.0),
        bootstrap_attempts=max(1, _get_int("BOOTSTRAP_ATTEMPTS", 5)),
        bootstrap_retry_delay=_get_float("BOOTSTRAP_RETRY_DELAY", 1.0),
        public_address=os.getenv("PUBLIC_ADDRESS") or get_local_ip(),
        public_port=_get_int("PUBLIC_PORT", relay_port),
        public_protocol=public_protocol,
        instance_id=os.getenv("RELAY_INSTANCE_ID") or f"{socket.gethostname()}:{relay_port}",
        outbox_size=max(1, _get_int("OUTBOX_SIZE", 256)),
        send_timeout=_get_float("SEND_TIMEOUT", 5.0),
        cors_origins=origins,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
