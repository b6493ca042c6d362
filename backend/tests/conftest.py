"""Shared fixtures: the API wired to an in-memory MongoDB"""

import os

os.environ.setdefault("MONGO_URI", "mongodb://localhost:27017")
os.environ.setdefault("DB_NAME", "formbuilder_test")

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from formbuilder.client import ApiDataSource
from formbuilder.database import FormStore, get_store
from formbuilder.main import app


@pytest.fixture
def store():
    mongo = AsyncMongoMockClient()
    db = mongo["formbuilder_test"]
    return FormStore(db["forms"], db["formsubmissions"])


@pytest.fixture
def client(store):
    """TestClient without the lifespan, so no real MongoDB is contacted"""
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def api_source(client):
    return ApiDataSource(base_url="", session=client)


@pytest.fixture
def published_form(client):
    """A published two-field form, returned as JSON"""
    r = client.post(
        "/api/forms",
        json={
            "title": "Feedback",
            "fields": [
                {"id": "1", "type": "text", "label": "Name", "required": True},
                {"id": "2", "type": "radio", "label": "Rating", "options": ["Good", "Bad"]},
            ],
        },
    )
    assert r.status_code == 201
    form = r.json()
    r = client.put(f"/api/forms/{form['id']}", json={"isPublished": True})
    assert r.status_code == 200
    return r.json()
