"""Unit tests for camera connection descriptors."""

import json

from film_relay.schemas import Session
from film_relay.services.connection_descriptor import build_connection_descriptor, encode_descriptor


class TestConnectionDescriptor:
    """Payload handed to camera devices."""

    def test_descriptor_fields(self, settings):
        session = Session(film_id="film-1", production_id="prod-1")

        descriptor = build_connection_descriptor(settings, session, 2)

        assert descriptor.serverAddress == "192.168.1.20"
        assert descriptor.port == 8080
        assert descriptor.protocol == "ws"
        assert descriptor.path == "/signaling"
        assert descriptor.filmId == "film-1"
        assert descriptor.productionId == "prod-1"
        assert descriptor.slotId == 2
        assert descriptor.cameraName == "Camera 2"
        assert descriptor.timestamp

    def test_encoded_payload_is_compact_json(self, settings):
        session = Session(film_id="film-1", production_id="prod-1")
        descriptor = build_connection_descriptor(settings, session, 1)

        payload = encode_descriptor(descriptor)

        assert ", " not in payload
        assert '": ' not in payload
        assert json.loads(payload) == descriptor.model_dump()
