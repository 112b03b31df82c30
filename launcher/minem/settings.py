from __future__ import annotations
from pathlib import Path
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MOJANG_MANIFEST_URL = "https://launchermeta.mojang.com/mc/game/version_manifest.json"

class Settings(BaseSettings):
    minem_home: Path = Field(default_factory=Path.home, alias="MINEM_HOME")
    manifest_url: str = Field(default=MOJANG_MANIFEST_URL, alias="MINEM_MANIFEST_URL")
    http_timeout: float = Field(default=30.0, gt=0, alias="MINEM_HTTP_TIMEOUT")

    java_binary: str = Field(default="java", alias="JAVA_BINARY")
    stop_timeout: float = Field(default=30.0, gt=0, alias="MINEM_STOP_TIMEOUT")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")
    log_file: Optional[Path] = Field(default=None, alias="LOG_FILE")

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    @property
    def registry_path(self) -> Path:
        return self.minem_home / ".minem.json"
