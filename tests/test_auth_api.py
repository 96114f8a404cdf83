"""
HTTP tests for the auth blueprint and the protected post endpoint.

Mirrors the client flow: register, login, use the access token, rotate,
replay, logout.
"""

import importlib
import logging
import sys
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update

from conftest import auth_header, make_app
from models import storage
from models.auth_session import AuthSession

USER = {"username": "test", "email": "test@test.com", "password": "Password123"}


@pytest.fixture
def registered(client):
    response = client.post("/auth/register", json=USER)
    assert response.status_code == 200
    return response.get_json()["data"]


@pytest.fixture
def login(client, registered):
    response = client.post("/auth/login", json={"identifier": USER["email"], "password": USER["password"]})
    assert response.status_code == 200
    return response.get_json()


class TestRegister:
    def test_register(self, client):
        response = client.post("/auth/register", json=USER)

        assert response.status_code == 200
        body = response.get_json()["data"]
        assert body["username"] == "test"
        assert "password" not in body
        assert "password_hash" not in body

    def test_taken_username(self, client, registered):
        response = client.post("/auth/register", json=USER)

        assert response.status_code == 400
        assert response.get_json()["message"] == "username already taken"

    def test_used_email(self, client, registered):
        response = client.post(
            "/auth/register",
            json={"username": "other", "email": USER["email"], "password": USER["password"]},
        )

        assert response.status_code == 400
        assert response.get_json()["message"] == "email already used"

    def test_short_password_is_invalid_input(self, client):
        response = client.post("/auth/register", json={**USER, "password": "short"})

        assert response.status_code == 422
        assert "password" in response.get_json()["details"]


class TestLogin:
    @pytest.mark.parametrize("identifier", [USER["username"], USER["email"]])
    def test_login_with_username_or_email(self, client, registered, identifier):
        response = client.post("/auth/login", json={"identifier": identifier, "password": USER["password"]})

        assert response.status_code == 200
        body = response.get_json()
        assert body["accessToken"]
        assert body["refreshToken"]
        assert body["accessToken"] != body["refreshToken"]
        assert body["userId"] == registered["id"]

    @pytest.mark.parametrize(
        "identifier,password",
        [
            ("unregistered", USER["password"]),
            (USER["email"], "wrongPassword"),
            (USER["username"], "wrongPassword"),
        ],
    )
    def test_bad_credentials(self, client, registered, identifier, password):
        response = client.post("/auth/login", json={"identifier": identifier, "password": password})

        assert response.status_code == 400
        assert response.get_json()["message"] == "incorrect identifier or password"


class TestProtectedEndpoint:
    def test_no_header_is_401(self, client):
        response = client.post("/post", json={"text": "this is my test post"})

        assert response.status_code == 401

    @pytest.mark.parametrize("value", ["jwt", "Bearer abc", "jwt not-a-token", "garbage"])
    def test_malformed_header_is_403(self, client, value):
        response = client.post("/post", json={"text": "x"}, headers={"Authorization": value})

        assert response.status_code == 403

    def test_valid_access_token(self, client, login):
        response = client.post("/post", json={"text": "this is my test post"}, headers=auth_header(login["accessToken"]))

        assert response.status_code == 200
        assert response.get_json()["data"]["owner"] == login["userId"]

    def test_refresh_token_is_403(self, client, login):
        response = client.post("/post", json={"text": "x"}, headers=auth_header(login["refreshToken"]))

        assert response.status_code == 403

    def test_me(self, client, login):
        response = client.get("/auth/me", headers=auth_header(login["accessToken"]))

        assert response.status_code == 200
        assert response.get_json()["data"]["id"] == login["userId"]


class TestRefreshAndLogout:
    def test_refresh_rotates(self, client, login):
        response = client.get("/auth/refresh", headers=auth_header(login["refreshToken"]))

        assert response.status_code == 200
        body = response.get_json()
        assert body["accessToken"] != login["accessToken"]
        assert body["refreshToken"] != login["refreshToken"]
        assert body["userId"] == login["userId"]

    def test_refresh_without_header_is_401(self, client):
        assert client.get("/auth/refresh").status_code == 401

    def test_refresh_with_access_token_is_403(self, client, login):
        response = client.get("/auth/refresh", headers=auth_header(login["accessToken"]))

        assert response.status_code == 403
        assert response.get_json()["details"]["reason"] == "wrong_kind"

    def test_logout_with_access_token_is_403(self, client, login):
        response = client.get("/auth/logout", headers=auth_header(login["accessToken"]))

        assert response.status_code == 403

    def test_logout_with_garbage_is_403(self, client):
        response = client.get("/auth/logout", headers={"Authorization": "jwt garbage"})

        assert response.status_code == 403

    def test_double_logout_is_403(self, client, login):
        first = client.get("/auth/logout", headers=auth_header(login["refreshToken"]))
        second = client.get("/auth/logout", headers=auth_header(login["refreshToken"]))

        assert first.status_code == 200
        assert second.status_code == 403
        assert second.get_json()["details"]["reason"] == "already_revoked"

    def test_logout_all(self, client, login):
        other = client.post("/auth/login", json={"identifier": USER["username"], "password": USER["password"]}).get_json()

        response = client.post("/auth/logout/all", headers=auth_header(login["accessToken"]))

        assert response.status_code == 200
        assert response.get_json()["revoked"] == 2
        assert client.get("/auth/refresh", headers=auth_header(other["refreshToken"])).status_code == 403


class TestCredentialChanges:
    def test_wrong_old_password(self, client, login):
        response = client.post(
            "/auth/change/password",
            json={"oldPassword": USER["password"] + "1", "newPassword": USER["password"] + "1"},
            headers=auth_header(login["accessToken"]),
        )

        assert response.status_code == 400
        assert response.get_json()["message"] == "old password is incorrect"

    def test_change_password_keeps_current_token(self, client, login):
        response = client.post(
            "/auth/change/password",
            json={"oldPassword": USER["password"], "newPassword": USER["password"] + "1"},
            headers=auth_header(login["accessToken"]),
        )

        assert response.status_code == 200
        again = client.post("/post", json={"text": "still here"}, headers=auth_header(login["accessToken"]))
        assert again.status_code == 200
        relogin = client.post("/auth/login", json={"identifier": USER["username"], "password": USER["password"] + "1"})
        assert relogin.status_code == 200

    def test_change_email_and_username(self, client, login):
        headers = auth_header(login["accessToken"])

        assert client.post("/auth/change/email", json={"email": "another@test.com"}, headers=headers).status_code == 200
        assert client.post("/auth/change/username", json={"username": "testUser"}, headers=headers).status_code == 200
        me = client.get("/auth/me", headers=headers).get_json()["data"]
        assert me["email"] == "another@test.com"
        assert me["username"] == "testUser"

    def test_change_email_to_taken(self, client, login):
        client.post("/auth/register", json={"username": "other", "email": "other@test.com", "password": "Password123"})

        response = client.post(
            "/auth/change/email", json={"email": "other@test.com"}, headers=auth_header(login["accessToken"])
        )

        assert response.status_code == 400
        assert response.get_json()["message"] == "email already used"

    def test_change_without_token_is_401(self, client):
        response = client.post("/auth/change/username", json={"username": "x"})

        assert response.status_code == 401

    def test_revoke_others_policy(self, tmp_path):
        app = make_app(tmp_path, CREDENTIAL_CHANGE_POLICY="revoke_others")
        client = app.test_client()
        client.post("/auth/register", json=USER)
        creds = {"identifier": USER["username"], "password": USER["password"]}
        mine = client.post("/auth/login", json=creds).get_json()
        theirs = client.post("/auth/login", json=creds).get_json()

        response = client.post(
            "/auth/change/password",
            json={"oldPassword": USER["password"], "newPassword": "Another1234"},
            headers=auth_header(mine["accessToken"]),
        )

        assert response.status_code == 200
        assert response.get_json()["revokedSessions"] == 1
        assert client.get("/auth/refresh", headers=auth_header(theirs["refreshToken"])).status_code == 403
        assert client.get("/auth/refresh", headers=auth_header(mine["refreshToken"])).status_code == 200
        storage.close()


def test_end_to_end_scenario(client):
    assert client.post("/auth/register", json=USER).status_code == 200
    first = client.post("/auth/login", json={"identifier": "test", "password": USER["password"]}).get_json()

    assert client.post("/post", json={"text": "hello"}, headers=auth_header(first["accessToken"])).status_code == 200

    rotated = client.get("/auth/refresh", headers=auth_header(first["refreshToken"]))
    assert rotated.status_code == 200
    second = rotated.get_json()
    assert second["accessToken"] != first["accessToken"]
    assert second["refreshToken"] != first["refreshToken"]

    replay = client.get("/auth/refresh", headers=auth_header(first["refreshToken"]))
    assert replay.status_code == 403
    assert replay.get_json()["details"]["reason"] == "reused"

    assert client.post("/post", json={"text": "x"}, headers=auth_header(second["refreshToken"])).status_code == 403
    assert client.get("/auth/logout", headers=auth_header(second["refreshToken"])).status_code == 200
    assert client.get("/auth/refresh", headers=auth_header(second["refreshToken"])).status_code == 403


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"


def test_purge_sessions_command(app, tokens, user):
    tokens.issue(user)
    live = tokens.issue(user)
    session = storage.get_session()
    session.execute(
        update(AuthSession)
        .where(AuthSession.id != tokens.signer.verify(live.refresh_token)["sid"])
        .values(expires_at=datetime.now(timezone.utc) - timedelta(seconds=1))
    )
    session.commit()
    runner = app.test_cli_runner()

    result = runner.invoke(args=["purge-sessions"])

    assert result.exit_code == 0
    assert "purged 1 expired session(s)" in result.output
    assert tokens.refresh(live.refresh_token).user_id == user


def test_swagger_documents_every_auth_route(client):
    paths = client.get("/swagger.json").get_json()["paths"]

    for path in ("/auth/logout/all", "/auth/change/email", "/auth/change/username"):
        operation = paths[path]["post"]
        assert operation["tags"] == ["Auth"]
        assert operation["security"] == [{"Bearer": []}]
        assert "200" in operation["responses"]


def test_entrypoint_configures_logging_before_building_the_app(monkeypatch):
    import api

    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append("logging"))
    monkeypatch.setattr(api, "create_app", lambda *args, **kwargs: calls.append("app"))
    monkeypatch.delitem(sys.modules, "api.__main__", raising=False)

    importlib.import_module("api.__main__")

    assert calls == ["logging", "app"]


def test_production_refuses_dev_secret(tmp_path):
    with pytest.raises(RuntimeError):
        make_app(tmp_path, APP_ENV="production", JWT_SECRET="dev-secret-change-me")
