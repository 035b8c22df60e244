"""Test fixtures and utilities for duplo."""

import json
from typing import Any, Callable, Dict, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest
import requests

from duplo.client import Endpoints, FileDescriptor, StorageClient


HOST = "http://test"


def make_response(
    status_code: int = 200,
    content: bytes = b"",
    headers: Optional[Dict[str, str]] = None,
) -> MagicMock:
    """Build a fake requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    response.content = content
    response.text = content.decode("utf-8", errors="replace")
    response.headers = headers or {}

    def iter_content(chunk_size: int = 1, decode_unicode: bool = False):
        return iter([content[i:i + chunk_size] for i in range(0, len(content), chunk_size)])

    response.iter_content.side_effect = iter_content
    response.__enter__.return_value = response
    return response


def listing_response(names: List[str]) -> MagicMock:
    return make_response(content=json.dumps([{"name": n} for n in names]).encode())


class FakeServer:
    """Routes patched requests.Session.request calls to canned responses.

    Usage:
        def test_something(fake_server):
            fake_server.add("GET", "http://test/api/common/", listing_response(["a"]))
            fake_server.add("POST", "http://test/common/remove/", make_response())
            # fake_server.calls records (method, url, kwargs) for every request

    A route value may also be an exception instance (raised) or a callable
    taking (method, url, kwargs) and returning a response. Unknown routes
    answer 404.
    """

    def __init__(self) -> None:
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []
        self.routes: Dict[Tuple[str, str], Any] = {}

    def add(self, method: str, url: str, response: Any) -> None:
        self.routes[(method, url)] = response

    def handle(self, method: str, url: str, **kwargs: Any) -> Any:
        self.calls.append((method, url, kwargs))
        route = self.routes.get((method, url))
        if route is None:
            return make_response(404, b"not found")
        if isinstance(route, BaseException):
            raise route
        if callable(route) and not isinstance(route, MagicMock):
            return route(method, url, kwargs)
        return route

    def urls(self, method: Optional[str] = None) -> List[str]:
        return [url for m, url, _ in self.calls if method is None or m == method]


@pytest.fixture
def fake_server(monkeypatch: pytest.MonkeyPatch) -> FakeServer:
    """Patch requests.Session.request so no real network is used."""
    server = FakeServer()

    def request(session: requests.Session, method: str, url: str, **kwargs: Any) -> Any:
        return server.handle(method, url, **kwargs)

    monkeypatch.setattr(requests.Session, "request", request)
    return server


@pytest.fixture
def client(fake_server: FakeServer) -> StorageClient:
    """Client for the "common" storage on the fake server."""
    return StorageClient(Endpoints(HOST, "common"))


@pytest.fixture
def sample_listing() -> List[FileDescriptor]:
    return [FileDescriptor("a.txt"), FileDescriptor("b.png"), FileDescriptor("c.doc")]


@pytest.fixture(autouse=True)
def isolated_config(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the user's real config file and DUPLO_* variables out of tests."""
    config_dir = tmp_path_factory.mktemp("config")
    monkeypatch.setenv("DUPLO_CONFIG", str(config_dir / "config.json"))
    monkeypatch.delenv("DUPLO_HOST", raising=False)
    monkeypatch.delenv("DUPLO_STORAGE", raising=False)


@pytest.fixture
def make_files(tmp_path) -> Callable[..., List[str]]:
    """Create local files from name -> content pairs and return their paths."""
    def _make(files: Dict[str, bytes]) -> List[str]:
        paths = []
        for name, content in files.items():
            path = tmp_path / name
            path.write_bytes(content)
            paths.append(str(path))
        return paths

    return _make
