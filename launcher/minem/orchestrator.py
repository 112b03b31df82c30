from __future__ import annotations
from pathlib import Path
from typing import List, Optional
from .config_loader import load_config, write_default_config
from .fetcher import ArtifactFetcher, ProgressCallback
from .fs_layout import EULA_URL, Layout, accept_eula, build_layout, config_path, ensure_dirs
from .models import ManifestEntry, PropertyLine, RegistryEntry, ServerConfig
from .process_runner import LaunchHandle, ProcessRunner
from .properties import get_property, list_properties, set_property
from .registry import ServerRegistry
from .settings import Settings
from .logging_setup import get_logger

log = get_logger("minem.orch")

class Orchestrator:
    """
    Per-invocation context: settings, the project directory and its minem.json.

    The config is loaded lazily on first use and never reloaded, so one command
    sees one consistent ServerConfig.
    """

    def __init__(self, settings: Settings, project_dir: Optional[Path] = None, *,
                 fetcher: Optional[ArtifactFetcher] = None, runner: Optional[ProcessRunner] = None):
        self.settings = settings
        self.project_dir = Path(project_dir) if project_dir is not None else Path.cwd()
        self.registry = ServerRegistry(settings.registry_path)
        self.fetcher = fetcher or ArtifactFetcher(settings)
        self.runner = runner or ProcessRunner(settings.java_binary, stop_timeout=settings.stop_timeout)
        self._cfg: Optional[ServerConfig] = None

    @classmethod
    def for_server(cls, settings: Settings, name: str, **kwargs) -> "Orchestrator":
        entry = ServerRegistry(settings.registry_path).find(name)
        return cls(settings, Path(entry.path), **kwargs)

    @property
    def cfg(self) -> ServerConfig:
        if self._cfg is None:
            self._cfg = load_config(config_path(self.project_dir))
        return self._cfg

    @property
    def layout(self) -> Layout:
        return build_layout(self.project_dir, self.cfg)

    @property
    def name(self) -> str:
        return self.project_dir.resolve().name

    # --- commands ---
    def init_project(self, *, force: bool = False) -> Layout:
        log.info("creating minem.json")
        if not write_default_config(config_path(self.project_dir), force=force):
            log.warning("minem.json already exists, keeping it (use --force to overwrite)")
        layout = self.layout

        log.info("creating server directory")
        ensure_dirs(layout)

        log.info("creating eula.txt")
        log.info("(you agree to this): %s", EULA_URL)
        accept_eula(layout)

        if self.registry.register(self.name, self.project_dir):
            log.info("registered server %s", self.name)
        return layout

    def download(self, selector: str, progress: Optional[ProgressCallback] = None) -> Path:
        layout = self.layout
        return self.fetcher.fetch(selector, layout.server_dir, self.cfg.serverFile, progress=progress)

    def versions(self, kind: Optional[str] = None) -> List[ManifestEntry]:
        return self.fetcher.list_versions(kind)

    def start(self, *, detach: bool = False) -> LaunchHandle:
        cfg = self.cfg
        layout = self.layout
        entry = self.registry.find_by_path(self.project_dir)

        log.info("starting server")
        if detach or entry is None:
            return self._launch(cfg, layout, detach)

        self.registry.set_status(entry.name, "online")
        try:
            return self._launch(cfg, layout, detach)
        finally:
            self.registry.set_status(entry.name, "offline")

    def _launch(self, cfg: ServerConfig, layout: Layout, detach: bool) -> LaunchHandle:
        return self.runner.launch(
            layout.server_dir,
            cfg.serverFile,
            cfg.mem.min,
            cfg.mem.max,
            launcher_args=cfg.javaArgs,
            runtime_args=cfg.args,
            detach=detach,
        )

    def get_setting(self, key: str) -> Optional[str]:
        return get_property(self.layout.properties, key)

    def set_setting(self, key: str, value: str) -> None:
        set_property(self.layout.properties, key, value)
        log.info("set %s to %s", key, value)

    def list_settings(self) -> List[PropertyLine]:
        return list_properties(self.layout.properties)

    def servers(self) -> List[RegistryEntry]:
        return self.registry.entries()
