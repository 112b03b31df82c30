from __future__ import annotations
from typing import Optional


class MinemError(Exception):
    """Base exception for minem. Handled at the command boundary."""


# --- config ---
class ConfigError(MinemError):
    pass

class ConfigMissing(ConfigError):
    def __init__(self, path):
        self.path = path
        super().__init__(f"no minem.json was found at {path}, use 'minem init' to create one")

class ConfigMalformed(ConfigError):
    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path} is malformed: {reason}")


# --- fetcher ---
class FetchError(MinemError):
    pass

class ManifestUnavailable(FetchError):
    """Transport failure, non-2xx status or undecodable body for a manifest/metadata document."""

    def __init__(self, url: str, cause: object):
        self.url = url
        self.cause = cause
        super().__init__(f"unable to retrieve {url}: {cause}")

class VersionNotFound(FetchError):
    def __init__(self, selector: str, resolved: Optional[str] = None):
        self.selector = selector
        self.resolved = resolved
        if resolved and resolved != selector:
            msg = f"unable to find minecraft version {selector!r} (resolved to {resolved!r})"
        else:
            msg = f"unable to find minecraft version {selector!r}"
        super().__init__(msg)

class ArtifactNotAvailable(FetchError):
    """The version exists but publishes no verifiable server download."""

    def __init__(self, version: str, reason: str = "no server download"):
        self.version = version
        self.reason = reason
        super().__init__(f"unable to find a server download for version {version} ({reason})")

class IntegrityMismatch(FetchError):
    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f"expected server hash to equal {expected}, but got {actual}")

class IoFailure(FetchError):
    def __init__(self, cause: object):
        self.cause = cause
        super().__init__(f"error while downloading server: {cause}")


# --- launcher ---
class LaunchError(MinemError):
    pass

class ArtifactMissing(LaunchError):
    def __init__(self, path):
        self.path = path
        super().__init__(f"{path} wasn't found, use 'minem download latest' to download the latest version")

class RuntimeNotFound(LaunchError):
    def __init__(self, runtime: str):
        self.runtime = runtime
        super().__init__(f"java runtime {runtime!r} was not found on PATH, install java or set JAVA_BINARY")

class SpawnFailed(LaunchError):
    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(f"unable to start server process: {cause}")


# --- server.properties ---
class PropertiesError(MinemError):
    pass

class PropertiesMissing(PropertiesError):
    def __init__(self, path):
        self.path = path
        super().__init__(f"{path} wasn't found, start the server once to generate it")

class SettingNotFound(PropertiesError):
    def __init__(self, key: str):
        self.key = key
        super().__init__(f"setting {key!r} not found in server.properties")

class InvalidValue(PropertiesError):
    def __init__(self, key: str, value: str):
        self.key = key
        self.value = value
        super().__init__(f"invalid value {value!r} for {key}: only letters, digits and spaces are allowed")


# --- global registry ---
class RegistryError(MinemError):
    pass

class ServerNotFound(RegistryError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"no server named {name!r} is registered, use 'minem server' to list servers")
