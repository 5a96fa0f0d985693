"""End-to-end login flow through the HTTP app."""

from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from authhub.api.main import create_app
from authhub.service import Service
from authhub.token import Claims

pytestmark = pytest.mark.integration


def dev_names_only(token: str, claims: Claims) -> bool:
    return claims.user is not None and claims.user.name.startswith("dev_")


@pytest.fixture
def client(opts, avatar_store):
    service = Service(
        replace(opts, validator=dev_names_only, disable_xsrf=True, avatar_store=avatar_store)
    )
    service.add_provider("dev", "", "")
    service.add_provider("github", "cid", "csecret")
    return TestClient(create_app(service))


def test_login_then_access(client):
    resp = client.get("/auth/dev/login?site=my-test-site&user=dev_alice")
    assert resp.status_code == 200

    resp = client.get("/user")

    assert resp.status_code == 200
    assert resp.json()["name"] == "dev_alice"
    assert resp.json()["id"].startswith("dev_")


def test_validator_rejects_user(client):
    resp = client.get("/auth/dev/login?site=my-test-site&user=bob")
    assert resp.status_code == 200

    assert client.get("/user").status_code == 401


def test_logout_ends_session(client):
    client.get("/auth/dev/login?user=dev_alice")
    assert client.get("/user").status_code == 200

    assert client.get("/auth/github/logout").status_code == 200

    assert client.get("/user").status_code == 401


def test_list_and_health(client):
    assert client.get("/auth/list").json() == ["dev", "github"]

    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.json()["providers"] == ["dev", "github"]


def test_unsupported_provider(client):
    resp = client.get("/auth/twitter/login")

    assert resp.status_code == 400
    assert resp.json() == {"error": "provider twitter not supported"}
