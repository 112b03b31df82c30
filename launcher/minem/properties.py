from __future__ import annotations
import re
from pathlib import Path
from typing import List, Optional
from .errors import InvalidValue, PropertiesMissing, SettingNotFound
from .fs_layout import atomic_write_text
from .models import PropertyLine

# key=value with an optional value; anything else that isn't a comment is skipped
PROPERTY_RE = re.compile(r"^([0-9a-z\-.]+)=([0-9a-z ]*)$", re.IGNORECASE)
VALUE_RE = re.compile(r"[0-9a-z ]*", re.IGNORECASE)

def _read_lines(path: Path) -> List[str]:
    path = Path(path)
    if not path.is_file():
        raise PropertiesMissing(path)
    with path.open("r", encoding="utf-8", newline="") as f:
        return f.read().splitlines(keepends=True)

def parse_line(index: int, raw: str) -> Optional[PropertyLine]:
    text = raw.rstrip("\r\n")
    if not text or text.startswith("#"):
        return None
    m = PROPERTY_RE.match(text)
    if not m:
        return None
    return PropertyLine(index=index, key=m.group(1), value=m.group(2))

def parse(lines: List[str]) -> List[PropertyLine]:
    out = []
    for i, raw in enumerate(lines):
        prop = parse_line(i, raw)
        if prop is not None:
            out.append(prop)
    return out

def _find(props: List[PropertyLine], key: str) -> Optional[PropertyLine]:
    return next((p for p in props if p.key.lower() == key.lower()), None)

def list_properties(path: Path) -> List[PropertyLine]:
    return parse(_read_lines(path))

def get_property(path: Path, key: str) -> Optional[str]:
    prop = _find(list_properties(path), key)
    return prop.value if prop else None

def set_property(path: Path, key: str, value: str) -> None:
    """
    Replace the first line whose key matches with `key=value`. Other lines stay byte-identical.

    The key keeps the spelling it has in the file. Values the parser would not
    read back are refused with InvalidValue before anything is written.
    """
    if not VALUE_RE.fullmatch(value):
        raise InvalidValue(key, value)
    lines = _read_lines(path)
    prop = _find(parse(lines), key)
    if prop is None:
        raise SettingNotFound(key)

    old = lines[prop.index]
    ending = old[len(old.rstrip("\r\n")):]
    lines[prop.index] = f"{prop.key}={value}{ending}"
    atomic_write_text(Path(path), "".join(lines))
