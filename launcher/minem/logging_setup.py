from __future__ import annotations
import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from .settings import Settings

# ANSI sequences
_RESET = "\033[0m"
_BOLD = "\033[1m"
_UNDERLINE = "\033[4m"
_BG_BLACK = "\033[40m"
_YELLOW = "\033[33m"
_RED_BRIGHT = "\033[91m"

class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)

class ConsoleFormatter(logging.Formatter):
    """
    `info: message` style output for terminals.

    info is bold yellow, errors are bold red with an underlined message.
    Colors are dropped when `color` is False (pipes, files).
    """

    def __init__(self, color: bool = True):
        super().__init__()
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        level = record.levelname.lower()
        msg = record.getMessage()
        if record.exc_info:
            msg = f"{msg}\n{self.formatException(record.exc_info)}"
        if not self.color:
            return f"{level}: {msg}"
        if record.levelno >= logging.ERROR:
            return f"{_BG_BLACK}{_BOLD}{_RED_BRIGHT}{level}{_RESET}{_BG_BLACK}: {_UNDERLINE}{msg}{_RESET}"
        if record.levelno == logging.INFO:
            return f"{_BG_BLACK}{_BOLD}{_YELLOW}{level}{_RESET}{_BG_BLACK}: {msg}{_RESET}"
        return f"{_BG_BLACK}{level}: {msg}{_RESET}"

def setup_logging(settings: Settings, stream=None) -> None:
    stream = stream if stream is not None else sys.stderr

    root = logging.getLogger("minem")
    root.handlers.clear()
    root.setLevel(settings.log_level.upper())
    root.propagate = False

    if settings.log_json:
        fmt: logging.Formatter = _JsonFormatter()
    else:
        fmt = ConsoleFormatter(color=hasattr(stream, "isatty") and stream.isatty())

    ch = logging.StreamHandler(stream)
    ch.setFormatter(fmt)
    root.addHandler(ch)

    if settings.log_file:
        try:
            settings.log_file.parent.mkdir(parents=True, exist_ok=True)
            fh = RotatingFileHandler(settings.log_file, maxBytes=5_000_000, backupCount=3, encoding="utf-8")
        except OSError as e:
            root.warning("Could not open log file '%s' (%s), continuing with console logging only.", settings.log_file, e)
        else:
            fh.setFormatter(_JsonFormatter() if settings.log_json else logging.Formatter(
                fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S"
            ))
            root.addHandler(fh)

def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
