"""Fixtures for API tests against the in-memory store."""

from uuid import UUID

from fastapi.testclient import TestClient
import pytest

from canon.config import Settings
from canon.interface.api.app import create_app
from canon.persistence.repository.inmemory import InMemoryDatabase
from tests.conftest import api_settings
from tests.di import build_test_container


@pytest.fixture
def settings() -> Settings:
    return api_settings()


@pytest.fixture
def container(settings):
    return build_test_container(settings=settings)


@pytest.fixture
def client(container, settings):
    app = create_app(container, settings)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def make_admin(client, container):
    """Flag a user as admin directly in the store."""

    def _make_admin(user_id: str) -> None:
        db = client.portal.call(container.get, InMemoryDatabase)
        db.users[UUID(user_id)]["is_admin"] = True

    return _make_admin
