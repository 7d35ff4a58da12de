"""Fixtures for driving the full application through Starlette's TestClient."""

import pytest
from fastapi.testclient import TestClient

from film_relay.main import create_app


@pytest.fixture
def app(settings, store):
    return create_app(settings, store=store)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
