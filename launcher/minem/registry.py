"""
Global server registry
----------------------
Keeps the list of named servers in the user's home directory (~/.minem.json)
so `minem start <name>` works from anywhere.
"""

from __future__ import annotations
import json
from pathlib import Path
from typing import List
from pydantic import ValidationError
from .errors import ConfigMalformed, ServerNotFound
from .fs_layout import atomic_write_text
from .models import Registry, RegistryEntry
from .logging_setup import get_logger

log = get_logger("minem.registry")

class ServerRegistry:
    def __init__(self, path: Path):
        self.path = Path(path)

    def ensure(self) -> None:
        if not self.path.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            atomic_write_text(self.path, "{}")

    def load(self) -> Registry:
        self.ensure()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
            return Registry.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as e:
            raise ConfigMalformed(self.path, str(e)) from e

    def save(self, registry: Registry) -> None:
        atomic_write_text(self.path, json.dumps(registry.model_dump(), indent=2))

    def entries(self) -> List[RegistryEntry]:
        return list(self.load().servers)

    def find(self, name: str) -> RegistryEntry:
        entry = self.load().find(name)
        if entry is None:
            raise ServerNotFound(name)
        return entry

    def register(self, name: str, path: Path) -> bool:
        """Add a server entry. Existing names are left alone; returns whether one was added."""
        registry = self.load()
        if registry.find(name) is not None:
            log.debug("Server %s already registered", name)
            return False
        registry.servers.append(RegistryEntry(name=name, path=str(Path(path).resolve()), status="offline"))
        self.save(registry)
        return True

    def set_status(self, name: str, status: str) -> None:
        registry = self.load()
        entry = registry.find(name)
        if entry is None:
            raise ServerNotFound(name)
        entry.status = status
        self.save(registry)

    def find_by_path(self, path: Path) -> RegistryEntry | None:
        target = str(Path(path).resolve())
        return next((s for s in self.load().servers if s.path == target), None)
