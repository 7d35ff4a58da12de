import json
import logging

from film_relay.core.registry import ConnectionRegistry

logger = logging.getLogger(__name__)


def broadcast(registry: ConnectionRegistry, message: dict) -> int:
    """Queue ``message`` for every control client registered right now.

    Clients that are closed or backed up are skipped; their own close event
    removes them from the registry. Returns the number of clients reached.
    """
    text = json.dumps(message)
    clients = registry.all_clients()
    delivered = 0
    for client in clients:
        try:
            if client.send_text(text):
                delivered += 1
            else:
                logger.debug(f"Skipped {client!r} for {message.get('type')}")
        except Exception as e:
            logger.warning(f"⚠️ Failed to queue {message.get('type')} for {client!r}: {e!r}")

    if clients and delivered < len(clients):
        logger.warning(
            f"⚠️ {message.get('type')} reached {delivered}/{len(clients)} clients"
        )
    return delivered
