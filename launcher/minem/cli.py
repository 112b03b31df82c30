from __future__ import annotations
import argparse
import sys
from contextlib import contextmanager
from typing import Iterator, Optional
import uvicorn
from tqdm import tqdm
from . import __version__
from .api import create_app
from .errors import MinemError, SettingNotFound
from .fetcher import ProgressCallback
from .logging_setup import get_logger, setup_logging
from .orchestrator import Orchestrator
from .settings import Settings

log = get_logger("minem.cli")

_GREEN = "\033[32m"
_RED = "\033[31m"
_BOLD = "\033[1m"
_RESET = "\033[0m"

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="minem", description="minecraft server manager")
    parser.add_argument("-v", "--version", action="version", version=__version__)
    sub = parser.add_subparsers(dest="cmd", required=True)

    init_p = sub.add_parser("init", help="creates a minem.json at the current directory")
    init_p.add_argument("--force", action="store_true", help="overwrite an existing minem.json")

    dl_p = sub.add_parser("download", aliases=["get"],
                          help="downloads minecraft server version <version>, use 'latest' for the latest "
                               "release and 'latest-snapshot' for the latest snapshot")
    dl_p.add_argument("version")

    ver_p = sub.add_parser("versions", help="lists versions published in the version manifest")
    ver_p.add_argument("--type", dest="kind", default=None, help="only list this type (release, snapshot, ...)")

    start_p = sub.add_parser("start", help="starts the server in the current directory or the registered server [name]")
    start_p.add_argument("name", nargs="?")
    start_p.add_argument("--detach", action="store_true", help="run in the background without attached I/O")

    cfg_p = sub.add_parser("config", help="reads or changes a server.properties setting")
    cfg_p.add_argument("setting", nargs="?")
    cfg_p.add_argument("value", nargs="?")
    cfg_p.add_argument("--list", action="store_true", help="list all settings")

    sub.add_parser("server", help="lists the global list of servers")

    api_p = sub.add_parser("api", help="Run REST API (FastAPI)")
    api_p.add_argument("--host", default="127.0.0.1")
    api_p.add_argument("--port", type=int, default=8000)
    return parser

@contextmanager
def progress_bar(desc: str) -> Iterator[ProgressCallback]:
    bar: Optional[tqdm] = None

    def _update(received: int, total: Optional[int]) -> None:
        nonlocal bar
        if bar is None:
            bar = tqdm(desc=desc, total=total, unit="iB", unit_scale=True, unit_divisor=1024,
                       file=sys.stderr, leave=False)
        bar.update(received - bar.n)

    try:
        yield _update
    finally:
        if bar is not None:
            bar.close()

def _paint_status(status: str) -> str:
    color = _GREEN if status == "online" else _RED
    return f"{color}{status}{_RESET}" if sys.stderr.isatty() else status

def _bold(text: str) -> str:
    return f"{_BOLD}{text}{_RESET}" if sys.stderr.isatty() else text

def exit_status(returncode: Optional[int]) -> int:
    # Popen reports death by signal N as -N; shells report 128 + N
    rc = int(returncode or 0)
    return 128 - rc if rc < 0 else rc

def _run(args: argparse.Namespace, settings: Settings) -> int:
    if args.cmd == "api":
        app = create_app(settings)
        uvicorn.run(app, host=args.host, port=args.port, log_level=settings.log_level.lower())
        return 0

    if args.cmd == "start" and args.name:
        orch = Orchestrator.for_server(settings, args.name)
    else:
        orch = Orchestrator(settings)

    if args.cmd == "init":
        orch.init_project(force=args.force)
        return 0

    if args.cmd in ("download", "get"):
        with progress_bar(orch.cfg.serverFile) as cb:
            orch.download(args.version, progress=cb)
        return 0

    if args.cmd == "versions":
        for entry in orch.versions(args.kind):
            print(f"{entry.id}\t{entry.type or ''}")
        return 0

    if args.cmd == "start":
        handle = orch.start(detach=args.detach)
        if handle.detached:
            return 0
        return exit_status(handle.returncode)

    if args.cmd == "config":
        if args.list:
            for prop in orch.list_settings():
                print(f"{prop.key}={prop.value}")
            return 0
        if not args.setting:
            log.error("missing <setting>, or use --list")
            return 2
        if args.value is None:
            value = orch.get_setting(args.setting)
            if value is None:
                raise SettingNotFound(args.setting)
            print(value)
            return 0
        orch.set_setting(args.setting, args.value)
        return 0

    if args.cmd == "server":
        for s in orch.servers():
            log.info("name: %s, path: %s, status: %s", _bold(s.name), _bold(s.path), _paint_status(s.status))
        return 0

    return 2

def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = Settings()
    setup_logging(settings)

    try:
        return _run(args, settings)
    except MinemError as e:
        log.error("%s", e)
        return 1
    except KeyboardInterrupt:
        log.error("interrupted")
        return 130
    except Exception as e:
        log.exception("unexpected error: %s", e)
        return 1
