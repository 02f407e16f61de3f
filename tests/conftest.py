import pytest
from fastapi.testclient import TestClient

from app import create_app
from coordinator import SessionCoordinator
from registry import RoomRegistry

FIXED_MILLIS = 1700000000000


@pytest.fixture
def registry():
    return RoomRegistry()


@pytest.fixture
def coordinator(registry):
    return SessionCoordinator(registry, clock=lambda: FIXED_MILLIS)


@pytest.fixture
def client():
    # one portal for every websocket so broadcasts cross connections
    with TestClient(create_app()) as test_client:
        yield test_client
