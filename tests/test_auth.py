"""Tests for password auth, tokens and the service key."""

from __future__ import annotations

from datetime import timedelta

import pytest
from jose import jwt

from habitflow.config import TestConfig
from habitflow.errors import Unauthorized, ValidationError
from habitflow.services import auth
from habitflow.timeutil import utcnow


@pytest.fixture
def config(tmp_path, monkeypatch):
    monkeypatch.setenv("HABITFLOW_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("HABITFLOW_SECRET_KEY", "unit-test-secret")
    monkeypatch.setenv("HABITFLOW_SERVICE_API_KEY", "svc-key")
    return TestConfig()


class TestUsers:
    def test_create_and_authenticate(self, session_factory):
        user = auth.create_user(
            email="  Ada@Example.com ",
            password="difference-engine",
            display_name="Ada",
            timezone="Europe/London",
            session_factory=session_factory,
        )
        assert user.email == "ada@example.com"
        assert user.password_hash != "difference-engine"

        found = auth.authenticate(
            email="ADA@example.com", password="difference-engine", session_factory=session_factory
        )
        assert found is not None and found.id == user.id
        assert found.last_login is not None

    def test_wrong_password(self, session_factory):
        auth.create_user(email="bob@example.com", password="hunter2hunter2", session_factory=session_factory)
        assert auth.authenticate(email="bob@example.com", password="nope", session_factory=session_factory) is None
        assert auth.authenticate(email="who@example.com", password="nope", session_factory=session_factory) is None

    def test_duplicate_email(self, session_factory, user):
        with pytest.raises(ValidationError):
            auth.create_user(email=user.email, password="long-enough", session_factory=session_factory)

    @pytest.mark.parametrize(
        "email, password, tz",
        [
            ("not-an-email", "long-enough", None),
            ("x@example.com", "short", None),
            ("x@example.com", "long-enough", "Mars/Olympus"),
        ],
    )
    def test_invalid_registration(self, session_factory, email, password, tz):
        with pytest.raises(ValidationError):
            auth.create_user(email=email, password=password, timezone=tz, session_factory=session_factory)

    def test_update_profile(self, session_factory, user):
        updated = auth.update_profile(
            user_id=user.id, session_factory=session_factory, timezone="America/Chicago"
        )
        assert updated.timezone == "America/Chicago"
        assert updated.display_name == user.display_name


class TestTokens:
    def test_roundtrip(self, config, user):
        token = auth.issue_token(user, config)
        assert auth.verify_token(token, config) == user.id

    def test_expired_token(self, config, user):
        past = utcnow() - timedelta(hours=2)
        token = jwt.encode(
            {"sub": str(user.id), "exp": int(past.timestamp())}, config.SECRET_KEY, algorithm="HS256"
        )
        with pytest.raises(Unauthorized):
            auth.verify_token(token, config)

    def test_foreign_signature(self, config, user):
        token = jwt.encode({"sub": str(user.id)}, "someone-else", algorithm="HS256")
        with pytest.raises(Unauthorized):
            auth.verify_token(token, config)

    def test_service_key(self, config):
        assert auth.is_service_key("svc-key", config)
        assert not auth.is_service_key("svc-key-2", config)
        config.SERVICE_API_KEY = None
        assert not auth.is_service_key("svc-key", config)


class TestLoginRoutes:
    def test_login_and_me(self, client, register):
        register("login@example.com", name="Lin")
        response = client.post(
            "/api/auth/login", json={"email": "login@example.com", "password": "correct-horse"}
        )
        assert response.status_code == 200
        token = response.get_json()["data"]["token"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"}).get_json()
        assert me["data"]["email"] == "login@example.com"
        assert me["data"]["name"] == "Lin"

    def test_bad_credentials(self, client, register):
        register("login@example.com")
        response = client.post(
            "/api/auth/login", json={"email": "login@example.com", "password": "wrong-horse"}
        )
        assert response.status_code == 401
        assert response.get_json()["error"] == "Invalid email or password"

    def test_duplicate_registration(self, client, register):
        register("dup@example.com")
        response = client.post(
            "/api/auth/register", json={"email": "dup@example.com", "password": "correct-horse"}
        )
        assert response.status_code == 400

    def test_update_timezone(self, client, auth_headers):
        response = client.put("/api/auth/me", json={"timezone": "Asia/Kolkata"}, headers=auth_headers)
        assert response.get_json()["data"]["timezone"] == "Asia/Kolkata"
        response = client.put("/api/auth/me", json={"timezone": "Nowhere/Land"}, headers=auth_headers)
        assert response.status_code == 400
