"""API tests for accounts, authentication, activity and profiles."""

from datetime import timedelta
from types import SimpleNamespace

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from listeners_club.http_api import users as users_api
from listeners_club.http_api.auth import create_access_token


def _register(client, username="newbie", email="Newbie@Example.com", password="pa55word"):
    return client.post(
        "/api/users/register",
        json={"username": username, "email": email, "password": password},
    )


class TestRegistration:
    def test_register_and_login(self, client, db):
        response = _register(client)

        assert response.status_code == 201
        assert response.json()["msg"] == "User registered successfully"
        stored = db.users.find_one({"id": response.json()["id"]})
        assert stored["email"] == "newbie@example.com"
        assert stored["role"] == "user"
        assert stored["password_hash"] != "pa55word"

        login = client.post("/api/users/login", json={"email": "newbie@example.com", "password": "pa55word"})

        assert login.status_code == 200
        body = login.json()
        assert body["user"]["username"] == "newbie"
        assert "password_hash" not in body["user"]

        me = client.get("/api/users/me", headers={"Authorization": f"Bearer {body['token']}"})
        assert me.status_code == 200
        assert me.json()["id"] == response.json()["id"]

    def test_duplicate_email(self, client):
        _register(client)

        response = _register(client, username="someone_else", email="NEWBIE@example.com")

        assert response.status_code == 400
        assert response.json()["detail"] == "User already exists with that email"

    def test_duplicate_username(self, client):
        _register(client)

        response = _register(client, email="other@example.com")

        assert response.status_code == 400
        assert response.json()["detail"] == "Username already taken"

    def test_concurrent_duplicate_is_a_client_error(self, client, monkeypatch):
        class RacingUsers:
            """Both uniqueness checks pass, then the unique index rejects the insert"""

            def find_one(self, *args, **kwargs):
                return None

            def insert_one(self, document):
                raise DuplicateKeyError("E11000 duplicate key error collection: users index: email_1")

        monkeypatch.setattr(users_api, "get_db", lambda: SimpleNamespace(users=RacingUsers()))

        response = _register(client)

        assert response.status_code == 400
        assert response.json()["detail"] == "User already exists with that email or username"

    def test_blank_fields_rejected(self, client):
        response = _register(client, username="  ")
        assert response.status_code == 400

    def test_missing_fields_fail_validation(self, client):
        response = client.post("/api/users/register", json={"username": "x"})
        assert response.status_code == 422

    @pytest.mark.parametrize("email,password", [
        ("newbie@example.com", "wrong"),
        ("nobody@example.com", "pa55word"),
    ])
    def test_bad_credentials(self, client, email, password):
        _register(client)

        response = client.post("/api/users/login", json={"email": email, "password": password})

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid credentials"


class TestTokens:
    def test_missing_token(self, client):
        response = client.get("/api/users/me")

        assert response.status_code == 401
        assert response.json()["detail"] == "Not authorized, no token"

    def test_garbage_token(self, client):
        response = client.get("/api/users/me", headers={"Authorization": "Bearer not.a.jwt"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Not authorized, token failed"

    def test_expired_token(self, client, member):
        token = create_access_token({"id": member["id"], "username": member["username"]}, timedelta(minutes=-5))

        response = client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Token expired"

    def test_token_for_deleted_user(self, client, db, member):
        db.users.delete_one({"id": member["id"]})

        response = client.get("/api/users/me", headers=member["headers"])

        assert response.status_code == 401
        assert response.json()["detail"] == "User not found"

    def test_role_is_read_from_store(self, client, db, member):
        db.users.update_one({"id": member["id"]}, {"$set": {"role": "admin"}})

        response = client.get("/api/users", headers=member["headers"])

        assert response.status_code == 200


class TestActivity:
    def test_favorites_and_ratings(self, client, member, other_member, create_album):
        rated = create_album(title="Rated")
        loved = create_album(title="Loved")
        create_album(title="Untouched")
        client.post(f"/api/albums/{rated['id']}/score", json={"score": 6}, headers=member["headers"])
        client.post(f"/api/albums/{loved['id']}/favorite", headers=member["headers"])
        client.post(f"/api/albums/{loved['id']}/score", json={"score": 2}, headers=other_member["headers"])

        response = client.get(f"/api/users/{member['id']}/activity")

        assert response.status_code == 200
        body = response.json()
        assert [album["title"] for album in body["favorites"]] == ["Loved"]
        assert [(r["album"]["title"], r["score"]) for r in body["ratings"]] == [("Rated", 6)]

    def test_malformed_user_id(self, client):
        assert client.get("/api/users/xyz/activity").status_code == 400


class TestAdminUsers:
    def test_list_users_with_activity(self, client, admin, member, create_album):
        album = create_album()
        client.post(f"/api/albums/{album['id']}/score", json={"score": 5}, headers=member["headers"])
        client.post(f"/api/albums/{album['id']}/favorite", headers=member["headers"])
        client.post(f"/api/albums/{album['id']}/comments", json={"text": "hm"}, headers=member["headers"])

        response = client.get("/api/users", headers=admin["headers"])

        assert response.status_code == 200
        users = {user["username"]: user for user in response.json()}
        assert users[member["username"]]["activity"] == 3
        assert users[admin["username"]]["activity"] == 0
        assert all("password_hash" not in user for user in response.json())

    def test_list_users_requires_admin(self, client, member):
        assert client.get("/api/users", headers=member["headers"]).status_code == 403

    def test_delete_user_keeps_contributions(self, client, db, admin, member, create_album):
        album = create_album()
        client.post(f"/api/albums/{album['id']}/score", json={"score": 5}, headers=member["headers"])

        response = client.delete(f"/api/users/{member['id']}", headers=admin["headers"])

        assert response.status_code == 200
        assert db.users.find_one({"id": member["id"]}) is None
        view = client.get(f"/api/albums/{album['id']}").json()
        assert view["scores"] == [{"user_id": member["id"], "username": None, "score": 5}]

    def test_admin_cannot_delete_self(self, client, admin):
        response = client.delete(f"/api/users/{admin['id']}", headers=admin["headers"])
        assert response.status_code == 400

    def test_delete_unknown_user(self, client, admin):
        response = client.delete(f"/api/users/{ObjectId()}", headers=admin["headers"])
        assert response.status_code == 404

    def test_member_cannot_delete(self, client, member, other_member):
        response = client.delete(f"/api/users/{other_member['id']}", headers=member["headers"])
        assert response.status_code == 403


class TestProfiles:
    def test_profile_hides_private_fields(self, client, member):
        client.post("/api/personal-albums", json={"title": "Mine", "artist": "Me"}, headers=member["headers"])

        response = client.get(f"/api/profiles/{member['id']}")

        assert response.status_code == 200
        user = response.json()["user"]
        assert user["username"] == member["username"]
        assert "email" not in user
        assert "password_hash" not in user
        assert [album["title"] for album in response.json()["personal_albums"]] == ["Mine"]

    def test_unknown_profile(self, client):
        assert client.get(f"/api/profiles/{ObjectId()}").status_code == 404

    def test_update_settings_merges(self, client, db, member):
        response = client.put(
            "/api/profiles/settings",
            json={"background_color": "#000000", "text_color": "", "unknown": "x"},
            headers=member["headers"],
        )

        assert response.status_code == 200
        settings = db.users.find_one({"id": member["id"]})["profile_settings"]
        assert settings["background_color"] == "#000000"
        assert settings["text_color"] == "#e2e8f0"
        assert "unknown" not in settings

    def test_settings_start_from_defaults_when_none_stored(self, client, db, member):
        assert "profile_settings" not in db.users.find_one({"id": member["id"]})

        response = client.put("/api/profiles/settings", json={"accent_color": "#ff0000"}, headers=member["headers"])

        assert response.status_code == 200
        settings = response.json()["profile_settings"]
        assert settings["accent_color"] == "#ff0000"
        assert settings["layout_style"] == "default"

    def test_null_background_image_clears_it(self, client, db, member):
        client.put(
            "/api/profiles/settings",
            json={"background_image_url": "http://img.example/bg.png"},
            headers=member["headers"],
        )

        client.put("/api/profiles/settings", json={"background_image_url": None}, headers=member["headers"])

        settings = db.users.find_one({"id": member["id"]})["profile_settings"]
        assert settings["background_image_url"] is None

    def test_settings_require_login(self, client):
        assert client.put("/api/profiles/settings", json={}).status_code == 401
