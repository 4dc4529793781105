# tests/conftest.py
import pytest
from fastapi.testclient import TestClient

from sheetstore.config import Settings, get_settings
from sheetstore.core import get_store
from sheetstore.database import InMemoryRowStore
from sheetstore.main import app
from sheetstore.seed import seed_demo


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def store(settings):
    return seed_demo(InMemoryRowStore(), settings)


@pytest.fixture
def client(store, settings):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_settings] = lambda: settings
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
