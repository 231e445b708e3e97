"""Tests for the HTTP surface of the authenticator."""

from __future__ import annotations
import asyncio
from typing import Iterator
import pytest
from fastapi.testclient import TestClient
from src.application.di import Container, get_container, set_container
from src.domain.models.identity_models import Principal
from src.domain.services.config_loader import ConfigLoader
from src.infrastructure.adapters.config import DictConfigSource
from src.infrastructure.adapters.session import JwtSessionStore
from src.main import app


@pytest.fixture()
def config_source(base_config) -> DictConfigSource:
    return DictConfigSource(base_config)


@pytest.fixture()
def client(config_source, directory) -> Iterator[TestClient]:
    loader = ConfigLoader(config_source)
    loader.load()
    set_container(
        Container(
            config_loader=loader,
            user_directory=directory,
            session_secret_key="test-session-secret",
            session_cookie_secure=False,
        )
    )
    # Not used as a context manager: lifespan startup would connect to Postgres
    yield TestClient(app)
    set_container(None)


STAFF = {"X-Remote-User": "Alice", "SHIB-EP-ENTITLEMENT": "staff"}


def test_me_requires_trusted_identity(client) -> None:
    response = client.get("/api/v1/auth/me")

    assert response.status_code == 401


def test_me_reconciles_and_sets_session_cookie(client, directory) -> None:
    response = client.get("/api/v1/auth/me", headers=STAFF)

    assert response.status_code == 200
    assert response.json()["username"] == "alice"
    assert "remote_user_session" in response.cookies
    assert directory.memberships["alice"] == {
        "confluence-users",
        "confluence-staff",
        "confluence-editors",
    }


def test_session_cookie_short_circuits_directory(client, directory) -> None:
    client.get("/api/v1/auth/me", headers=STAFF)
    calls = len(directory.calls)

    response = client.get("/api/v1/auth/me")

    assert response.status_code == 200
    assert response.json()["username"] == "alice"
    assert len(directory.calls) == calls


def test_logout_clears_session(client) -> None:
    client.get("/api/v1/auth/me", headers=STAFF)

    response = client.post("/api/v1/auth/logout")
    assert response.status_code == 200
    assert response.json() == {"authenticated": False, "username": None}

    assert client.get("/api/v1/auth/me").status_code == 401


def test_unknown_principal_is_unauthorized(client, config_source, base_config) -> None:
    config_source.update({**base_config, "create.users": "false"})
    get_container().get_config_loader().force_reload()

    response = client.get("/api/v1/auth/me", headers={"X-Remote-User": "bob"})

    assert response.status_code == 401


def test_status_does_not_fail_when_anonymous(client) -> None:
    response = client.get("/api/v1/auth/status")

    assert response.status_code == 200
    assert response.json() == {"authenticated": False, "username": None}


def test_mappings_lists_active_rules(client) -> None:
    response = client.get("/api/v1/mappings", headers=STAFF)

    assert response.status_code == 200
    body = response.json()
    assert body["default_roles"] == ["confluence-users"]
    assert body["watched_attributes"] == ["shib-ep-entitlement"]
    assert body["mappings"]["staff"] == ["confluence-staff", "confluence-editors"]
    assert body["last_error"] is None


def test_reload_failure_keeps_previous_rules(client, config_source, base_config) -> None:
    config_source.update({**base_config, "header.dynamicroles.staff": ""})

    response = client.post("/api/v1/mappings/reload", headers=STAFF)
    assert response.status_code == 422

    body = client.get("/api/v1/mappings", headers=STAFF).json()
    assert body["mappings"]["staff"] == ["confluence-staff", "confluence-editors"]
    assert body["last_error"] is not None


def test_reload_applies_new_rules(client, config_source, base_config) -> None:
    config_source.update({**base_config, "header.dynamicroles.staff": "staff-only"})

    response = client.post("/api/v1/mappings/reload", headers=STAFF)

    assert response.status_code == 200
    assert response.json()["mappings"]["staff"] == ["staff-only"]


def test_resolve_previews_groups(client, directory) -> None:
    client.get("/api/v1/auth/me", headers=STAFF)
    calls = len(directory.calls)

    response = client.post(
        "/api/v1/mappings/resolve",
        json={"headers": {"shib-ep-entitlement": "Unknown-Value; STUDENT"}},
    )

    assert response.status_code == 200
    assert response.json()["groups"] == ["confluence-students", "confluence-users"]
    assert len(directory.calls) == calls


def test_resolve_without_default_roles(client) -> None:
    response = client.post(
        "/api/v1/mappings/resolve",
        headers=STAFF,
        json={"headers": {"SHIB-EP-ENTITLEMENT": "unknown-value"}, "include_default_roles": False},
    )

    assert response.status_code == 200
    assert response.json()["groups"] == []


def test_health_reports_config_state(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["config"]["loaded"] is True


@pytest.fixture()
def unloaded_client(directory) -> Iterator[TestClient]:
    loader = ConfigLoader(DictConfigSource({"header.dynamicroles.staff": ""}))
    set_container(
        Container(
            config_loader=loader,
            user_directory=directory,
            session_secret_key="test-session-secret",
            session_cookie_secure=False,
        )
    )
    store = JwtSessionStore(None, "test-session-secret")
    asyncio.run(store.set_principal(Principal(username="alice")))

    client = TestClient(app)
    client.cookies.set(get_container().session_cookie_name, store.encode())
    yield client
    set_container(None)


@pytest.mark.parametrize(
    "method, path, body",
    [
        ("GET", "/api/v1/mappings", None),
        ("POST", "/api/v1/mappings/resolve", {"headers": {"SHIB-EP-ENTITLEMENT": "staff"}}),
    ],
)
def test_unloaded_configuration_is_service_unavailable(unloaded_client, method, path, body) -> None:
    response = unloaded_client.request(method, path, json=body)

    assert response.status_code == 503
