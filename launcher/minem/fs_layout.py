from __future__ import annotations
import os
import stat
import tempfile
from dataclasses import dataclass
from pathlib import Path
from .config_loader import CONFIG_FILENAME
from .models import ServerConfig

EULA_URL = "https://account.mojang.com/documents/minecraft_eula"

@dataclass(frozen=True)
class Layout:
    project_dir: Path
    config_file: Path
    server_dir: Path
    artifact: Path
    eula: Path
    properties: Path
    logs: Path

def config_path(project_dir: Path) -> Path:
    return Path(project_dir) / CONFIG_FILENAME

def build_layout(project_dir: Path, cfg: ServerConfig) -> Layout:
    project_dir = Path(project_dir)
    server_dir = project_dir / cfg.serverDir
    return Layout(
        project_dir=project_dir,
        config_file=config_path(project_dir),
        server_dir=server_dir,
        artifact=server_dir / cfg.serverFile,
        eula=server_dir / "eula.txt",
        properties=server_dir / "server.properties",
        logs=server_dir / "logs",
    )

def ensure_dirs(layout: Layout) -> None:
    layout.server_dir.mkdir(parents=True, exist_ok=True)

def accept_eula(layout: Layout) -> None:
    layout.eula.write_text("eula=true", encoding="utf-8")

def published_mode(path: Path) -> int:
    """Mode for a file published via a temp file: the mode it has now, or the umask default."""
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask

def atomic_write_text(path: Path, text: str, *, newline: str = "") -> None:
    """Write `text` to a sibling temp file, then rename it over `path`."""
    path = Path(path)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline=newline) as f:
            f.write(text)
        os.chmod(tmp, published_mode(path))
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
