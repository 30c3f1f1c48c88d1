from __future__ import annotations

from typing import Optional

import pytest
from fastapi.testclient import TestClient

import profile_check.api as api_module
from profile_check.models import Credentials

from tests.fakes import FakeSearchClient

ENV_KEYS = (
    "DATAFORSEO_LOGIN",
    "DATAFORSEO_PASSWORD",
    "SEARCH_STRATEGY",
    "BATCH_SIZE",
    "DEFAULT_LOCATION_NAME",
    "DEFAULT_LANGUAGE_CODE",
    "DEFAULT_LOCATION_CODE",
    "SERVICE_API_KEY",
    "STATIC_DIR",
    "MAX_DOMAINS_PER_REQUEST",
)


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(login="user@example.com", password="secret")


@pytest.fixture
def fake_client() -> FakeSearchClient:
    return FakeSearchClient()


@pytest.fixture
def api_env(monkeypatch, tmp_path):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("BATCH_DELAY_SECONDS", "0")
    monkeypatch.setenv("EXPORT_DIR", str(tmp_path / "exports"))
    return monkeypatch


@pytest.fixture
def make_client(api_env, fake_client):
    """Build a TestClient around a fresh app; env tweaks go in before the call."""
    clients = []

    def _make(search_client: Optional[FakeSearchClient] = None, **env: str) -> TestClient:
        for key, value in env.items():
            api_env.setenv(key, value)
        api_env.setattr(api_module, "build_search_client", lambda config: search_client or fake_client)
        client = TestClient(api_module.create_app())
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.close()


@pytest.fixture
def client(make_client):
    return make_client()
