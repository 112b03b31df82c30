"""
Tests for the artifact fetcher: manifest lookup, alias resolution,
streaming, SHA-1 verification and atomic placement.
"""

import http.client
import os
import socket
import stat
import urllib.error

import pytest

from minem.errors import (
    ArtifactNotAvailable,
    IntegrityMismatch,
    IoFailure,
    ManifestUnavailable,
    VersionNotFound,
)
from minem.fetcher import ArtifactFetcher
from minem.models import ArtifactDescriptor

from conftest import MANIFEST_URL, FakeResponse, sha1_hex


def _leftovers(directory):
    return [p.name for p in directory.iterdir() if p.name.endswith(".part")]


class CutShortResponse(FakeResponse):
    """Chunked body whose connection drops partway: read() raises IncompleteRead after `keep` bytes."""

    def __init__(self, body: bytes, keep: int):
        super().__init__(body, headers={"Transfer-Encoding": "chunked"})
        self.keep = keep

    def read(self, size=-1):
        left = self.keep - self.tell()
        if size is None or size < 0 or left <= 0:
            partial = super().read(max(left, 0))
            raise http.client.IncompleteRead(partial, len(self.getvalue()) - self.tell())
        return super().read(min(size, left))


@pytest.fixture
def fetcher(settings, mojang):
    return ArtifactFetcher(settings, urlopen=mojang)


@pytest.fixture
def dest(tmp_path):
    return tmp_path / "server"


class TestResolve:

    def test_latest_maps_to_release(self, fetcher):
        manifest = fetcher.fetch_manifest()
        assert fetcher.resolve(manifest, "latest").id == "1.20.1"

    def test_latest_snapshot_maps_to_snapshot(self, fetcher):
        manifest = fetcher.fetch_manifest()
        assert fetcher.resolve(manifest, "latest-snapshot").id == "23w31a"

    def test_literal_id(self, fetcher):
        manifest = fetcher.fetch_manifest()
        assert fetcher.resolve(manifest, "1.20.1").url == "https://example.test/1.20.1.json"

    def test_unknown_version(self, fetcher):
        manifest = fetcher.fetch_manifest()
        with pytest.raises(VersionNotFound):
            fetcher.resolve(manifest, "9.9.9")

    def test_alias_target_missing_from_entries(self, settings, fake_http):
        fake_http.json(MANIFEST_URL, {"latest": {"release": "1.21", "snapshot": "x"}, "versions": []})
        fetcher = ArtifactFetcher(settings, urlopen=fake_http)
        with pytest.raises(VersionNotFound):
            fetcher.fetch("latest", "unused", "server.jar")

    def test_list_versions_filters_by_type(self, fetcher):
        assert [v.id for v in fetcher.list_versions("release")] == ["1.20.1"]
        assert len(fetcher.list_versions()) == 3


class TestManifestErrors:

    def test_transport_error(self, settings, fake_http, dest):
        fake_http.fail(MANIFEST_URL, urllib.error.URLError("no route to host"))
        fetcher = ArtifactFetcher(settings, urlopen=fake_http)
        with pytest.raises(ManifestUnavailable):
            fetcher.fetch("latest", dest, "server.jar")

    def test_timeout(self, settings, fake_http, dest):
        fake_http.fail(MANIFEST_URL, socket.timeout("timed out"))
        fetcher = ArtifactFetcher(settings, urlopen=fake_http)
        with pytest.raises(ManifestUnavailable):
            fetcher.fetch("latest", dest, "server.jar")

    def test_non_2xx(self, settings, fake_http, dest):
        # no route registered -> HTTPError 404
        fetcher = ArtifactFetcher(settings, urlopen=fake_http)
        with pytest.raises(ManifestUnavailable):
            fetcher.fetch("latest", dest, "server.jar")

    def test_garbage_body(self, settings, fake_http, dest):
        fake_http.blob(MANIFEST_URL, b"<html>oops</html>")
        fetcher = ArtifactFetcher(settings, urlopen=fake_http)
        with pytest.raises(ManifestUnavailable):
            fetcher.fetch("latest", dest, "server.jar")

    def test_metadata_transport_error(self, settings, mojang, dest):
        mojang.fail("https://example.test/1.20.1.json", urllib.error.URLError("reset"))
        fetcher = ArtifactFetcher(settings, urlopen=mojang)
        with pytest.raises(ManifestUnavailable):
            fetcher.fetch("1.20.1", dest, "server.jar")

    def test_chunked_body_cut_short(self, settings, fake_http):
        fake_http.routes[MANIFEST_URL] = CutShortResponse(b'{"latest": {}, "versions": []}', keep=10)
        fetcher = ArtifactFetcher(settings, urlopen=fake_http)
        with pytest.raises(ManifestUnavailable) as exc:
            fetcher.fetch_manifest()
        assert isinstance(exc.value.__cause__, http.client.IncompleteRead)

    def test_bad_status_line(self, settings, fake_http):
        fake_http.fail(MANIFEST_URL, http.client.BadStatusLine("garbage"))
        with pytest.raises(ManifestUnavailable):
            ArtifactFetcher(settings, urlopen=fake_http).fetch_manifest()

    def test_timeout_is_passed_to_urlopen(self, settings, fake_http):
        seen = {}

        def opener(req, timeout=None):
            seen["timeout"] = timeout
            return FakeResponse(b'{"latest": {}, "versions": []}')

        ArtifactFetcher(settings, urlopen=opener).fetch_manifest()
        assert seen["timeout"] == settings.http_timeout


class TestArtifactNotAvailable:

    def test_client_only_version(self, fetcher, dest):
        with pytest.raises(ArtifactNotAvailable):
            fetcher.fetch("c0.0.11a", dest, "server.jar")
        assert not dest.exists() or list(dest.iterdir()) == []

    def test_missing_sha1_is_refused(self, settings, mojang, dest):
        mojang.json("https://example.test/1.20.1.json", {
            "downloads": {"server": {"url": "https://example.test/server-1.20.1.jar"}},
        })
        fetcher = ArtifactFetcher(settings, urlopen=mojang)
        with pytest.raises(ArtifactNotAvailable):
            fetcher.fetch("1.20.1", dest, "server.jar")
        assert "https://example.test/server-1.20.1.jar" not in mojang.requested

    def test_destination_dir_unchanged(self, fetcher, dest):
        dest.mkdir()
        (dest / "server.jar").write_bytes(b"old")
        with pytest.raises(ArtifactNotAvailable):
            fetcher.fetch("c0.0.11a", dest, "server.jar")
        assert sorted(p.name for p in dest.iterdir()) == ["server.jar"]
        assert (dest / "server.jar").read_bytes() == b"old"


class TestDownload:

    def test_latest_scenario(self, fetcher, mojang, dest, jar_bytes):
        path = fetcher.fetch("latest", dest, "server.jar")

        assert path == dest / "server.jar"
        assert mojang.requested == [
            MANIFEST_URL,
            "https://example.test/1.20.1.json",
            "https://example.test/server-1.20.1.jar",
        ]
        assert sha1_hex(path.read_bytes()) == sha1_hex(jar_bytes)
        assert _leftovers(dest) == []

    def test_creates_destination_dir(self, fetcher, tmp_path):
        target = tmp_path / "a" / "b"
        fetcher.fetch("latest", target, "server.jar")
        assert (target / "server.jar").is_file()

    def test_replaces_existing_artifact(self, fetcher, dest, jar_bytes):
        dest.mkdir()
        (dest / "server.jar").write_bytes(b"previous")
        fetcher.fetch("latest", dest, "server.jar")
        assert (dest / "server.jar").read_bytes() == jar_bytes

    def test_idempotent(self, fetcher, dest):
        first = fetcher.fetch("latest", dest, "server.jar").read_bytes()
        second = fetcher.fetch("latest", dest, "server.jar").read_bytes()
        assert first == second
        assert _leftovers(dest) == []

    def test_checksum_compare_is_case_insensitive(self, settings, mojang, dest, jar_bytes):
        mojang.json("https://example.test/1.20.1.json", {
            "downloads": {"server": {"url": "https://example.test/server-1.20.1.jar",
                                     "sha1": sha1_hex(jar_bytes).upper()}},
        })
        ArtifactFetcher(settings, urlopen=mojang).fetch("1.20.1", dest, "server.jar")
        assert (dest / "server.jar").is_file()

    def test_progress_reports_bytes(self, fetcher, dest, jar_bytes):
        calls = []
        fetcher.fetch("latest", dest, "server.jar", progress=lambda got, total: calls.append((got, total)))

        assert calls
        assert calls[-1] == (len(jar_bytes), len(jar_bytes))
        received = [c[0] for c in calls]
        assert received == sorted(received)

    def test_progress_without_content_length(self, settings, mojang, dest, jar_bytes):
        mojang.routes["https://example.test/server-1.20.1.jar"] = FakeResponse(jar_bytes, headers={})
        calls = []
        ArtifactFetcher(settings, urlopen=mojang).fetch(
            "latest", dest, "server.jar", progress=lambda got, total: calls.append(total))
        assert set(calls) == {None}


class TestIntegrity:

    def test_mismatch_keeps_destination_absent(self, settings, mojang, dest):
        mojang.blob("https://example.test/server-1.20.1.jar", b"tampered")
        fetcher = ArtifactFetcher(settings, urlopen=mojang)

        with pytest.raises(IntegrityMismatch) as exc:
            fetcher.fetch("latest", dest, "server.jar")

        assert exc.value.actual == sha1_hex(b"tampered")
        assert not (dest / "server.jar").exists()
        assert _leftovers(dest) == []

    def test_mismatch_keeps_previous_artifact(self, settings, mojang, dest):
        dest.mkdir()
        (dest / "server.jar").write_bytes(b"working jar")
        mojang.blob("https://example.test/server-1.20.1.jar", b"tampered")

        with pytest.raises(IntegrityMismatch):
            ArtifactFetcher(settings, urlopen=mojang).fetch("latest", dest, "server.jar")

        assert (dest / "server.jar").read_bytes() == b"working jar"
        assert _leftovers(dest) == []

    def test_truncated_stream_is_io_failure(self, settings, mojang, dest, jar_bytes):
        short = FakeResponse(jar_bytes[:100], headers={"Content-Length": str(len(jar_bytes))})
        mojang.routes["https://example.test/server-1.20.1.jar"] = short

        with pytest.raises(IoFailure):
            ArtifactFetcher(settings, urlopen=mojang).fetch("latest", dest, "server.jar")
        assert not (dest / "server.jar").exists()
        assert _leftovers(dest) == []

    def test_artifact_transport_error_is_io_failure(self, settings, mojang, dest):
        mojang.fail("https://example.test/server-1.20.1.jar", urllib.error.URLError("reset by peer"))
        with pytest.raises(IoFailure):
            ArtifactFetcher(settings, urlopen=mojang).fetch("latest", dest, "server.jar")
        assert _leftovers(dest) == []

    def test_download_direct(self, settings, fake_http, tmp_path):
        fake_http.blob("https://example.test/x.jar", b"abc")
        fetcher = ArtifactFetcher(settings, urlopen=fake_http)
        artifact = ArtifactDescriptor(url="https://example.test/x.jar", sha1=sha1_hex(b"abc"))
        fetcher.download(artifact, tmp_path / "x.jar")
        assert (tmp_path / "x.jar").read_bytes() == b"abc"

    def test_artifact_cut_short_is_io_failure(self, settings, mojang, dest, jar_bytes):
        mojang.routes["https://example.test/server-1.20.1.jar"] = CutShortResponse(jar_bytes, keep=len(jar_bytes) // 2)
        with pytest.raises(IoFailure) as exc:
            ArtifactFetcher(settings, urlopen=mojang).fetch("latest", dest, "server.jar")
        assert isinstance(exc.value.__cause__, http.client.IncompleteRead)
        assert not (dest / "server.jar").exists()
        assert _leftovers(dest) == []


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
class TestPublishedMode:

    def test_new_artifact_follows_umask(self, fetcher, dest):
        umask = os.umask(0o022)
        try:
            path = fetcher.fetch("latest", dest, "server.jar")
        finally:
            os.umask(umask)
        assert stat.S_IMODE(path.stat().st_mode) == 0o644

    def test_replacement_keeps_previous_mode(self, fetcher, dest):
        dest.mkdir()
        old = dest / "server.jar"
        old.write_bytes(b"previous")
        old.chmod(0o640)
        fetcher.fetch("latest", dest, "server.jar")
        assert stat.S_IMODE(old.stat().st_mode) == 0o640
