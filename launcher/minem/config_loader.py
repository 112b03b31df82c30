from __future__ import annotations
import json
from pathlib import Path
from typing import Any, Dict
from jsonschema import validate, ValidationError as SchemaValidationError
from pydantic import ValidationError
from .errors import ConfigMalformed, ConfigMissing
from .models import ServerConfig
from .logging_setup import get_logger

log = get_logger("minem.config")

CONFIG_FILENAME = "minem.json"

DEFAULT_CONFIG: Dict[str, Any] = {
    "serverFile": "server.jar",
    "serverDir": "server",
    "mem": {
        "min": "1G",
        "max": "2G",
    },
}

CONFIG_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "serverFile": {"type": "string", "minLength": 1},
        "serverDir": {"type": "string", "minLength": 1},
        "mem": {
            "type": "object",
            "properties": {
                "min": {"type": "string"},
                "max": {"type": "string"},
            },
        },
        "args": {"type": "array", "items": {"type": "string"}},
        "javaArgs": {"type": "array", "items": {"type": "string"}},
    },
}

def load_json(path: Path) -> Dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigMalformed(path, f"invalid JSON ({e})") from e
    if not isinstance(data, dict):
        raise ConfigMalformed(path, "config root must be an object")
    return data

def load_config(config_path: Path) -> ServerConfig:
    config_path = Path(config_path)
    if not config_path.is_file():
        raise ConfigMissing(config_path)
    log.debug("Loading config: %s", config_path)
    data = load_json(config_path)

    try:
        validate(instance=data, schema=CONFIG_SCHEMA)
    except SchemaValidationError as e:
        location = "/".join(str(p) for p in e.path) or "<root>"
        raise ConfigMalformed(config_path, f"{e.message} (at {location})") from e

    try:
        return ServerConfig.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        location = "/".join(str(p) for p in first["loc"])
        raise ConfigMalformed(config_path, f"{first['msg']} (at {location})") from e

def write_default_config(config_path: Path, *, force: bool = False) -> bool:
    """Write the default minem.json. Returns False if one exists and force is not set."""
    config_path = Path(config_path)
    if config_path.exists() and not force:
        return False
    config_path.write_text(json.dumps(DEFAULT_CONFIG, indent=2) + "\n", encoding="utf-8")
    return True
