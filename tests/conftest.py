"""
Shared fixtures.

The app runs in-process against a mongomock-motor database; the lifespan
hook (real MongoDB connection) is never started because TestClient is used
without a context manager.
"""

import pytest
from datetime import datetime
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from database.mongodb import get_database
from models.user import User, UserRole
from routes.import_export import sessions
from server import app
from services.auth_deps import get_current_user

ADMIN = User(
    id="admin-1",
    email="admin@example.com",
    name="Fleet Admin",
    role=UserRole.ADMIN,
    created_at=datetime(2024, 1, 1),
)

VIEWER = User(
    id="viewer-1",
    email="viewer@example.com",
    name="Fleet Viewer",
    role=UserRole.VIEWER,
    created_at=datetime(2024, 1, 1),
)


@pytest.fixture
def mongo_db():
    return AsyncMongoMockClient()["fleet_ops_test"]


@pytest.fixture
def anonymous_client(mongo_db):
    """Client with the database overridden but real authentication"""
    app.dependency_overrides[get_database] = lambda: mongo_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def client(mongo_db):
    """Client authenticated as an administrator"""
    app.dependency_overrides[get_database] = lambda: mongo_db
    app.dependency_overrides[get_current_user] = lambda: ADMIN
    sessions.clear()
    yield TestClient(app)
    app.dependency_overrides.clear()
    sessions.clear()


@pytest.fixture
def viewer_client(mongo_db):
    app.dependency_overrides[get_database] = lambda: mongo_db
    app.dependency_overrides[get_current_user] = lambda: VIEWER
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def aircraft(client):
    response = client.post("/api/aircraft", json={
        "registration": "hz-a42",
        "fleet_group": "A340",
        "aircraft_type": "A340-642 ACJ",
        "msn": "1234",
        "owner": "Royal Flight",
        "manufacture_date": "2008-05-01",
        "engines_count": 4,
    })
    assert response.status_code == 201, response.text
    return response.json()
