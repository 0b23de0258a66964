"""Tests for the HTTP routes."""

import pytest
from fastapi.testclient import TestClient

from okra.auth import SessionAuth
from okra.config import Settings
from okra.errors import DuplicateKey, DuplicateUser, Expired, InvalidSignature, NotFound, StorageUnavailable
from okra.registry import LedgerRegistry
from okra.server import create_app, status_for


@pytest.fixture
def settings(temp_dir):
    return Settings(data_dir=temp_dir, users_db=temp_dir / "users.sqlite")


@pytest.fixture
def app(settings):
    with SessionAuth(settings.users_db) as auth:
        auth.enroll("bob", "hunter2")
        auth.enroll("alice", "wonderland")
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


def ledger_for(settings, username):
    return LedgerRegistry(settings.ledger_dir).open(username)


def login(client, username="bob", password="hunter2"):
    return client.post("/users/login", json={"username": username, "password": password})


def set_token_cookie(client, app, token):
    """Install `token` as a correctly signed auth cookie."""
    client.cookies.set("auth", app.state.cookie_signer.sign(token).decode("utf-8"))


def test_status_for():
    assert status_for(NotFound("action", 1)) == 404
    assert status_for(DuplicateUser("bob")) == 409
    assert status_for(DuplicateKey("actions: UNIQUE")) == 409
    assert status_for(Expired("old")) == 401
    assert status_for(InvalidSignature("forged")) == 400
    assert status_for(StorageUnavailable("gone")) == 503


def test_login_sets_cookie(client):
    response = login(client)
    assert response.status_code == 200
    assert response.text == "hello bob"
    assert "auth" in response.cookies


def test_login_wrong_password(client):
    response = login(client, password="nope")
    assert response.status_code == 401
    assert response.json()["error"] == "InvalidCredentials"


def test_login_unknown_user(client):
    response = login(client, username="carol")
    assert response.status_code == 401
    assert response.json()["error"] == "UnknownUser"


def test_routes_require_cookie(client):
    for path in ["/action/get/10/0", "/activity/log/1", "/activity/search/0/10"]:
        assert client.get(path).status_code == 401


def test_expired_cookie(client, app):
    set_token_cookie(client, app, "123 bob")
    response = client.get("/action/get/10/0")
    assert response.status_code == 401
    assert response.json()["error"] == "Expired"


def test_malformed_cookie(client, app):
    set_token_cookie(client, app, "garbage")
    response = client.get("/action/get/10/0")
    assert response.status_code == 400
    assert response.json()["error"] == "Malformed"


def test_logout_clears_cookie(client):
    login(client)
    assert client.get("/users/logout").text == "OK"
    assert client.get("/action/get/10/0").status_code == 401


def test_actions(client, settings):
    with ledger_for(settings, "bob") as ledger:
        run = ledger.create_action("morning run")
        ledger.create_action("swim")
    login(client)

    response = client.get("/action/get/10/0")
    assert response.status_code == 200
    assert [a["name"] for a in response.json()] == ["morning run", "swim"]

    response = client.get("/action/get/10/0", params={"substring": "RUN"})
    assert response.json() == [{"id": run, "name": "morning run"}]

    response = client.get(f"/action/get_name/{run}")
    assert response.text == "morning run"


def test_unknown_action_name(client):
    login(client)
    response = client.get("/action/get_name/42")
    assert response.status_code == 404
    assert response.json()["error"] == "NotFound"


def test_log_notate_and_read_back(client, settings):
    with ledger_for(settings, "bob") as ledger:
        run = ledger.create_action("run")
    login(client)

    activity = int(client.get(f"/activity/log/{run}").text)
    note = int(client.get(f"/activity/notate/{activity}/felt great").text)

    response = client.get(f"/activity/notations/{activity}/0")
    assert response.json() == [{"id": note, "text": "felt great"}]

    response = client.get("/activity/search/0/99999999999999")
    found = response.json()
    assert [(a["id"], a["action_id"]) for a in found] == [(activity, run)]


def test_log_unknown_action(client):
    login(client)
    assert client.get("/activity/log/7").status_code == 404


def test_notations_unknown_activity(client):
    login(client)
    assert client.get("/activity/notations/7/0").status_code == 404


def test_users_see_only_their_own_ledger(client, settings):
    with ledger_for(settings, "alice") as ledger:
        ledger.create_action("tea party")
    login(client)
    assert client.get("/action/get/10/0").json() == []


def test_page_size_is_clamped(client, settings):
    with ledger_for(settings, "bob") as ledger:
        for i in range(settings.max_page_size + 5):
            ledger.create_action(f"action {i}")
    login(client)
    response = client.get("/action/get/1000/0")
    assert len(response.json()) == settings.max_page_size


def test_signed_tokens(temp_dir):
    settings = Settings(data_dir=temp_dir, users_db=temp_dir / "users.sqlite", secret_key="s3cret")
    with SessionAuth(settings.users_db) as auth:
        auth.enroll("bob", "hunter2")

    app = create_app(settings)
    with TestClient(app) as client:
        login(client)
        assert client.get("/action/get/10/0").status_code == 200

        client.cookies.clear()
        set_token_cookie(client, app, "99999999999999 bob")
        response = client.get("/action/get/10/0")
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidSignature"


def test_forged_cookie_is_rejected(client):
    client.cookies.set("auth", "99999999999999 alice")
    response = client.get("/action/get/10/0")
    assert response.status_code == 401


def test_cookie_from_another_app_is_rejected(client, settings):
    other = create_app(settings)
    set_token_cookie(client, other, "99999999999999 alice")
    assert client.get("/action/get/10/0").status_code == 401


def test_login_cookie_carries_signed_token(client, app):
    response = login(client)
    cookie = response.cookies["auth"].strip('"')
    token = app.state.cookie_signer.unsign(cookie).decode("utf-8")
    assert token.endswith(" bob")
    assert cookie != token


def test_oversized_expiry_is_malformed(client, app):
    set_token_cookie(client, app, "9" * 5000 + " alice")
    response = client.get("/action/get/10/0")
    assert response.status_code == 400
    assert response.json()["error"] == "Malformed"
