import json
from datetime import datetime, timezone

from film_relay.config import Settings
from film_relay.constants import SIGNALING_PATH
from film_relay.schemas import ConnectionDescriptor, Session


def build_connection_descriptor(settings: Settings, session: Session, slot_id: int) -> ConnectionDescriptor:
    """Everything a camera device needs to open /signaling and register."""
    return ConnectionDescriptor(
        serverAddress=settings.public_address,
        port=settings.public_port,
        protocol=settings.public_protocol,
        path=SIGNALING_PATH,
        filmId=session.film_id,
        productionId=session.production_id,
        slotId=slot_id,
        cameraName=f"Camera {slot_id}",
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


def encode_descriptor(descriptor: ConnectionDescriptor) -> str:
    # Compact form keeps the QR code density low.
    return json.dumps(descriptor.model_dump(), separators=(",", ":"))
