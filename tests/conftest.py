"""
Shared fixtures: an isolated config dir and a fake Memos server.
"""
from __future__ import annotations

import json

import httpx
import pytest

from fastmemos.client import MemoClient
from fastmemos.config import SettingsStore
from fastmemos.secret_store import MemorySecretStore


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep every test away from the real ~/.config and environment."""
    for name in ("FASTMEMOS_SERVER_URL", "FASTMEMOS_ACCESS_TOKEN", "FASTMEMOS_USERNAME"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("FASTMEMOS_CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.setenv("FASTMEMOS_SECRET_STORE", "file")
    return tmp_path / "config"


class FakeServer:
    """
    Records requests and answers from a path -> (status, body) table.

    Unlisted paths answer 404.
    """

    def __init__(self, routes=None, error=None):
        self.routes = dict(routes or {})
        self.error = error
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        status, body = self.routes.get(request.url.path, (404, "Not Found"))
        if isinstance(body, (dict, list)):
            return httpx.Response(status, json=body)
        return httpx.Response(status, text=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self) -> MemoClient:
        return MemoClient(transport=self.transport)

    @property
    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

    def body(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


@pytest.fixture
def secrets():
    return MemorySecretStore()


@pytest.fixture
def settings(isolated_config):
    return SettingsStore(isolated_config / "config.json")


@pytest.fixture
def make_server():
    return FakeServer
