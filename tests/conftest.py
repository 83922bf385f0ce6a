import mongomock
import pytest
from fastapi.testclient import TestClient

import settings
from main import app
from client import ApiClient
from database import KeyValueStore, get_store
from events import EventBus, ResourceCache


@pytest.fixture
def store():
    return KeyValueStore(mongomock.MongoClient().db[settings.KV_COLLECTION])


@pytest.fixture
def http(store):
    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def token(http):
    res = http.post("/auth/login", json={"password": settings.DEFAULT_ADMIN_PASSWORD})
    return res.json()["data"]["access_token"]


@pytest.fixture
def auth(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def api(http):
    return ApiClient(base_url="http://testserver", anon_key="", session=http)


@pytest.fixture
def admin_api(api, token):
    api.token = token
    return api


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def cache(api, bus):
    return ResourceCache(api, bus)
