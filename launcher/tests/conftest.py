"""
Shared fixtures: isolated settings/home dir and a fake urlopen for the fetcher.
"""

import hashlib
import io
import json
import urllib.error

import pytest

from minem.settings import Settings

MANIFEST_URL = "https://example.test/version_manifest.json"


class FakeResponse(io.BytesIO):
    def __init__(self, body: bytes, status: int = 200, headers=None):
        super().__init__(body)
        self.status = status
        self.headers = headers if headers is not None else {"Content-Length": str(len(body))}


class FakeHTTP:
    """Callable with the urlopen signature, serving canned bodies per URL."""

    def __init__(self):
        self.routes = {}
        self.requested = []

    def json(self, url, doc):
        self.routes[url] = json.dumps(doc).encode("utf-8")

    def blob(self, url, body: bytes):
        self.routes[url] = body

    def fail(self, url, exc):
        self.routes[url] = exc

    def __call__(self, req, timeout=None):
        url = getattr(req, "full_url", req)
        self.requested.append(url)
        route = self.routes.get(url)
        if route is None:
            raise urllib.error.HTTPError(url, 404, "Not Found", {}, None)
        if isinstance(route, BaseException):
            raise route
        if isinstance(route, FakeResponse):
            return route
        return FakeResponse(route)


def sha1_hex(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


@pytest.fixture
def home_dir(tmp_path):
    d = tmp_path / "home"
    d.mkdir()
    return d


@pytest.fixture
def settings(home_dir):
    return Settings(minem_home=home_dir, manifest_url=MANIFEST_URL, http_timeout=5)


@pytest.fixture
def project_dir(tmp_path):
    d = tmp_path / "survival"
    d.mkdir()
    return d


@pytest.fixture
def fake_http():
    return FakeHTTP()


@pytest.fixture
def jar_bytes():
    return b"PK\x03\x04 fake server jar " * 1000


@pytest.fixture
def mojang(fake_http, jar_bytes):
    """A manifest with a release, a snapshot and a client-only version."""
    fake_http.json(MANIFEST_URL, {
        "latest": {"release": "1.20.1", "snapshot": "23w31a"},
        "versions": [
            {"id": "23w31a", "type": "snapshot", "url": "https://example.test/23w31a.json"},
            {"id": "1.20.1", "type": "release", "url": "https://example.test/1.20.1.json"},
            {"id": "c0.0.11a", "type": "old_alpha", "url": "https://example.test/c0.0.11a.json"},
        ],
    })
    fake_http.json("https://example.test/1.20.1.json", {
        "id": "1.20.1",
        "downloads": {"server": {"url": "https://example.test/server-1.20.1.jar", "sha1": sha1_hex(jar_bytes)}},
    })
    fake_http.json("https://example.test/23w31a.json", {
        "id": "23w31a",
        "downloads": {"server": {"url": "https://example.test/server-23w31a.jar", "sha1": sha1_hex(b"snapshot")}},
    })
    fake_http.json("https://example.test/c0.0.11a.json", {
        "id": "c0.0.11a",
        "downloads": {"client": {"url": "https://example.test/client.jar", "sha1": "00"}},
    })
    fake_http.blob("https://example.test/server-1.20.1.jar", jar_bytes)
    fake_http.blob("https://example.test/server-23w31a.jar", b"snapshot")
    return fake_http
