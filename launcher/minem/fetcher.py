"""
fetcher.py: downloads and verifies server artifacts
----------------------------------------------------
Two-hop lookup (version manifest -> per-version metadata), then streams the
server jar into a private temp file next to the destination, checks its SHA-1
and renames it into place. The destination is either absent, the previous
artifact, or the new verified artifact; never a partial file.
"""

from __future__ import annotations
import hashlib
import http.client
import json
import os
import tempfile
import urllib.error
import urllib.request
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from pydantic import ValidationError
from .errors import IntegrityMismatch, IoFailure, ManifestUnavailable, VersionNotFound
from .models import ArtifactDescriptor, ManifestEntry, VersionManifest, VersionMetadata
from .settings import Settings
from .fs_layout import published_mode
from .logging_setup import get_logger

log = get_logger("minem.fetcher")

CHUNK_SIZE = 65536
USER_AGENT = "minem"

ProgressCallback = Callable[[int, Optional[int]], None]


class ArtifactFetcher:
    def __init__(self, settings: Settings, *, urlopen: Optional[Callable[..., Any]] = None):
        self.settings = settings
        self._urlopen = urlopen or urllib.request.urlopen

    # ------------------------------------------------------------------ #
    def _open(self, url: str):
        req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
        return self._urlopen(req, timeout=self.settings.http_timeout)

    def _get_json(self, url: str) -> Dict[str, Any]:
        try:
            with self._open(url) as resp:
                status = getattr(resp, "status", 200)
                if not 200 <= status < 300:
                    raise ManifestUnavailable(url, f"HTTP {status}")
                data = json.loads(resp.read().decode("utf-8"))
        except ManifestUnavailable:
            raise
        except (urllib.error.URLError, http.client.HTTPException, OSError, ValueError) as e:
            # HTTPError is a URLError; a chunked body cut short is http.client.IncompleteRead
            raise ManifestUnavailable(url, e) from e
        if not isinstance(data, dict):
            raise ManifestUnavailable(url, "document root is not an object")
        return data

    def fetch_manifest(self) -> VersionManifest:
        url = self.settings.manifest_url
        log.debug("Fetching version manifest: %s", url)
        try:
            return VersionManifest.model_validate(self._get_json(url))
        except ValidationError as e:
            raise ManifestUnavailable(url, f"invalid manifest: {e}") from e

    def fetch_metadata(self, entry: ManifestEntry) -> VersionMetadata:
        log.debug("Fetching metadata for %s: %s", entry.id, entry.url)
        try:
            return VersionMetadata.model_validate(self._get_json(entry.url))
        except ValidationError as e:
            raise ManifestUnavailable(entry.url, f"invalid version metadata: {e}") from e

    def resolve(self, manifest: VersionManifest, selector: str) -> ManifestEntry:
        version_id = manifest.resolve_alias(selector)
        entry = manifest.find(version_id)
        if entry is None:
            raise VersionNotFound(selector, version_id)
        return entry

    def list_versions(self, kind: Optional[str] = None) -> List[ManifestEntry]:
        manifest = self.fetch_manifest()
        return [e for e in manifest.entries if kind is None or e.type == kind]

    # ------------------------------------------------------------------ #
    def fetch(self, selector: str, destination_dir: Path, destination_filename: str,
              progress: Optional[ProgressCallback] = None) -> Path:
        """
        Resolve `selector` (a version id, `latest` or `latest-snapshot`), download
        the server artifact and publish it as destination_dir/destination_filename.

        Raises a FetchError subclass on failure; the destination is untouched then.
        """
        manifest = self.fetch_manifest()
        entry = self.resolve(manifest, selector)
        metadata = self.fetch_metadata(entry)
        artifact = metadata.server_artifact(entry.id)

        destination_dir = Path(destination_dir)
        destination = destination_dir / destination_filename
        log.info("downloading minecraft server version %s as %s", entry.id, destination_filename)
        self.download(artifact, destination, progress=progress)
        log.info("server hash verified")
        return destination

    def download(self, artifact: ArtifactDescriptor, destination: Path,
                 progress: Optional[ProgressCallback] = None) -> None:
        destination = Path(destination)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{destination.name}.", suffix=".part",
                                            dir=str(destination.parent))
        except OSError as e:
            raise IoFailure(e) from e

        tmp = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as out:
                actual = self._stream(artifact.url, out, progress)
            if actual.lower() != artifact.sha1.lower():
                raise IntegrityMismatch(artifact.sha1, actual)
            os.chmod(tmp, published_mode(destination))
            os.replace(tmp, destination)
        except (urllib.error.URLError, http.client.HTTPException, OSError) as e:
            tmp.unlink(missing_ok=True)
            raise IoFailure(e) from e
        except BaseException:
            # IntegrityMismatch, IoFailure from _stream, KeyboardInterrupt
            tmp.unlink(missing_ok=True)
            raise

    def _stream(self, url: str, out, progress: Optional[ProgressCallback]) -> str:
        """Copy the response body into `out` chunk by chunk. Returns the hex SHA-1 of what was written."""
        sha1 = hashlib.sha1()
        received = 0
        with self._open(url) as resp:
            status = getattr(resp, "status", 200)
            if not 200 <= status < 300:
                raise IoFailure(f"HTTP {status} for {url}")
            length = resp.headers.get("Content-Length") if getattr(resp, "headers", None) else None
            total = int(length) if length and str(length).isdigit() else None
            while True:
                chunk = resp.read(CHUNK_SIZE)
                if not chunk:
                    break
                out.write(chunk)
                sha1.update(chunk)
                received += len(chunk)
                if progress:
                    progress(received, total)
        if total is not None and received != total:
            raise IoFailure(f"connection closed after {received} of {total} bytes")
        return sha1.hexdigest()
