"""Pytest configuration and fixtures."""

import os

# Settings are read at import time, so they must be in place before the app loads
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "0")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret-with-enough-bytes-for-hs256-signing")
os.environ.setdefault("DB_INSERT_SAMPLES", "false")

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from listeners_club.db import connection
from listeners_club.http_api.auth import create_access_token, hash_password
from listeners_club.main import app


@pytest.fixture
def db():
    """In-memory database wired into the connection singleton."""
    database = mongomock.MongoClient()["listeners_club_test"]
    connection.use_database(database)
    yield database
    connection.close_connection()


@pytest.fixture
def client(db):
    """Test client; startup hooks are not run so no real MongoDB is touched."""
    return TestClient(app)


@pytest.fixture
def make_user(db):
    """Factory inserting a user straight into the store and returning auth headers."""

    def _make_user(username, role="user", password="secret123"):
        user = {
            "id": str(ObjectId()),
            "username": username,
            "email": f"{username}@example.com",
            "password_hash": hash_password(password),
            "role": role,
            "date_registered": "2024-01-01T00:00:00+00:00",
        }
        db.users.insert_one({**user})
        token = create_access_token(user)
        return {
            "id": user["id"],
            "username": username,
            "token": token,
            "headers": {"Authorization": f"Bearer {token}"},
        }

    return _make_user


@pytest.fixture
def admin(make_user):
    return make_user("club_admin", role="admin")


@pytest.fixture
def member(make_user):
    return make_user("listener_one")


@pytest.fixture
def other_member(make_user):
    return make_user("listener_two")


@pytest.fixture
def create_album(client, admin):
    """Factory adding an album through the API as the admin."""

    def _create_album(title="Album", artist="Artist", **fields):
        response = client.post(
            "/api/albums",
            json={"title": title, "artist": artist, **fields},
            headers=admin["headers"],
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _create_album
