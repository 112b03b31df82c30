"""
Reading the server's own console logs in <serverDir>/logs.

The server writes latest.log (and debug.log) and, on startup, gzips the
previous latest.log into a dated archive such as 2026-10-17-1.log.gz.
Cursors are "<inode>.<offset>" so a follow notices that rotation.
"""

import gzip
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

LOG_SUFFIXES = (".log", ".log.gz")

@dataclass
class LogChunk:
    entries: List[str]
    cursor: str
    truncated: bool

def _encode_cursor(inode: int, offset: int) -> str:
    return f"{inode}.{offset}"

def _decode_cursor(cursor: str) -> Optional[Tuple[int, int]]:
    inode, sep, offset = (cursor or "").partition(".")
    if not sep or not inode.isdigit() or not offset.isdigit():
        return None
    return int(inode), int(offset)

def _log_id(name: str) -> Optional[str]:
    for suffix in LOG_SUFFIXES:
        if name.endswith(suffix) and len(name) > len(suffix):
            return name[: -len(suffix)]
    return None

def list_logs(logs_dir: Path) -> list[dict]:
    out = []
    for p in sorted(logs_dir.iterdir()):
        log_id = _log_id(p.name)
        if log_id is None or not p.is_file():
            continue
        st = p.stat()
        out.append({
            "id": log_id,
            "name": p.name,
            "size_bytes": st.st_size,
            "modified": datetime.fromtimestamp(st.st_mtime, tz=timezone.utc).isoformat(),
            "archived": p.name.endswith(".gz"),
        })
    return out

def find_log(logs_dir: Path, log_id: str) -> Optional[Path]:
    """Live log first, then its archive. None for unknown ids or ids that try to leave logs_dir."""
    if not log_id or "/" in log_id or "\\" in log_id:
        return None
    for suffix in LOG_SUFFIXES:
        p = logs_dir / f"{log_id}{suffix}"
        if p.is_file():
            return p
    return None

def is_archive(path: Path) -> bool:
    return path.name.endswith(".gz")

def read_tail(path: Path, tail_lines: int = 200, max_bytes: int = 256_000) -> LogChunk:
    """Last `tail_lines` lines (all of them for 0). Archives are decompressed whole."""
    st = path.stat()
    if is_archive(path):
        with gzip.open(path, "rb") as f:
            data = f.read()
        start = 0
    else:
        start = max(0, st.st_size - max_bytes)
        with path.open("rb") as f:
            f.seek(start)
            data = f.read(st.st_size - start)

    lines = data.splitlines()
    if start and lines:
        # window starts mid-line
        lines = lines[1:]
    kept = lines[-tail_lines:] if tail_lines else lines
    return LogChunk(
        entries=[l.decode("utf-8", errors="replace") for l in kept],
        cursor=_encode_cursor(st.st_ino, st.st_size),
        truncated=bool(start) or len(kept) < len(lines),
    )

def read_from_cursor(path: Path, cursor: str, max_lines: int = 200, max_bytes: int = 256_000) -> LogChunk:
    """
    Lines appended since `cursor`. Only complete lines are returned; a line the
    server is still writing stays behind the cursor until its newline arrives.
    """
    st = path.stat()
    decoded = _decode_cursor(cursor)
    pos = 0
    # a different inode or a shorter file means latest.log was rotated: start over
    if decoded is not None and decoded[0] == st.st_ino and decoded[1] <= st.st_size:
        pos = decoded[1]

    with path.open("rb") as f:
        f.seek(pos)
        data = f.read(min(max_bytes, st.st_size - pos))

    raw_lines = data.splitlines(keepends=True)
    # a single line longer than max_bytes is returned in pieces rather than stalling
    if raw_lines and not raw_lines[-1].endswith(b"\n") and not (len(raw_lines) == 1 and len(data) == max_bytes):
        raw_lines.pop()

    taken = raw_lines[:max_lines]
    consumed = sum(len(l) for l in taken)
    entries = [l.decode("utf-8", errors="replace").rstrip("\r\n") for l in taken]
    return LogChunk(entries=entries, cursor=_encode_cursor(st.st_ino, pos + consumed),
                    truncated=len(raw_lines) > len(taken))
