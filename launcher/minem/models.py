from __future__ import annotations
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

from .errors import ArtifactNotAvailable

HEAP_PATTERN = r"^\d+[KkMmGg]?$"


# --- project config (minem.json) ---
class MemConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: str = Field(default="1G", pattern=HEAP_PATTERN)
    max: str = Field(default="2G", pattern=HEAP_PATTERN)

class ServerConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    serverFile: str = "server.jar"
    serverDir: str = "server"
    mem: MemConfig = Field(default_factory=MemConfig)
    args: List[str] = Field(default_factory=list)
    javaArgs: List[str] = Field(default_factory=list)


# --- mojang manifest ---
class LatestBlock(BaseModel):
    release: Optional[str] = None
    snapshot: Optional[str] = None

class ManifestEntry(BaseModel):
    id: str
    url: str
    type: Optional[str] = None
    releaseTime: Optional[str] = None

class VersionManifest(BaseModel):
    latest: LatestBlock = Field(default_factory=LatestBlock)
    versions: List[ManifestEntry] = Field(default_factory=list)

    @property
    def latest_release(self) -> Optional[str]:
        return self.latest.release

    @property
    def latest_snapshot(self) -> Optional[str]:
        return self.latest.snapshot

    @property
    def entries(self) -> List[ManifestEntry]:
        return self.versions

    def resolve_alias(self, selector: str) -> Optional[str]:
        """Map `latest`/`latest-snapshot` to their ids; other selectors are literal ids."""
        if selector == "latest":
            return self.latest_release
        if selector == "latest-snapshot":
            return self.latest_snapshot
        return selector

    def find(self, version_id: Optional[str]) -> Optional[ManifestEntry]:
        if not version_id:
            return None
        for entry in self.versions:
            if entry.id == version_id:
                return entry
        return None


# --- per-version metadata ---
class ArtifactDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    sha1: str
    size: Optional[int] = None

class DownloadInfo(BaseModel):
    url: Optional[str] = None
    sha1: Optional[str] = None
    size: Optional[int] = None

class VersionDownloads(BaseModel):
    server: Optional[DownloadInfo] = None
    client: Optional[DownloadInfo] = None

class VersionMetadata(BaseModel):
    id: Optional[str] = None
    downloads: VersionDownloads = Field(default_factory=VersionDownloads)

    @property
    def download_url(self) -> Optional[str]:
        return self.downloads.server.url if self.downloads.server else None

    @property
    def expected_checksum(self) -> Optional[str]:
        return self.downloads.server.sha1 if self.downloads.server else None

    def server_artifact(self, version: str) -> ArtifactDescriptor:
        server = self.downloads.server
        if server is None or not server.url:
            raise ArtifactNotAvailable(version)
        if not server.sha1:
            raise ArtifactNotAvailable(version, reason="no sha1 published, refusing to trust an unverified binary")
        return ArtifactDescriptor(url=server.url, sha1=server.sha1, size=server.size)


# --- global registry (~/.minem.json) ---
class RegistryEntry(BaseModel):
    name: str
    path: str
    status: Literal["online", "offline"] = "offline"

class Registry(BaseModel):
    model_config = ConfigDict(extra="allow")

    servers: List[RegistryEntry] = Field(default_factory=list)

    def find(self, name: str) -> Optional[RegistryEntry]:
        return next((s for s in self.servers if s.name == name), None)


# --- server.properties ---
class PropertyLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int
    key: str
    value: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "value": self.value}
