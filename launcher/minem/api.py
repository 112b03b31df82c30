from __future__ import annotations
from pathlib import Path
from typing import Optional
from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel
from . import __version__
from .errors import (
    ArtifactNotAvailable, ConfigError, FetchError, IntegrityMismatch, InvalidValue, MinemError, PropertiesMissing,
    ServerNotFound, SettingNotFound, VersionNotFound,
)
from .log_reader import find_log, is_archive, list_logs, read_from_cursor, read_tail
from .orchestrator import Orchestrator
from .settings import Settings

class ActionResult(BaseModel):
    ok: bool
    detail: str | None = None
    data: dict | None = None

class DownloadRequest(BaseModel):
    version: str = "latest"

class PropertyValue(BaseModel):
    value: str

def _http_error(e: MinemError) -> HTTPException:
    if isinstance(e, (SettingNotFound, PropertiesMissing, ServerNotFound, VersionNotFound, ArtifactNotAvailable)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, InvalidValue):
        return HTTPException(status_code=422, detail=str(e))
    if isinstance(e, IntegrityMismatch):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, ConfigError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, FetchError):
        return HTTPException(status_code=502, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))

def create_app(settings: Settings, project_dir: Optional[Path] = None, *, orchestrator_factory=Orchestrator) -> FastAPI:
    app = FastAPI(title="minem API", version=__version__)
    project_dir = Path(project_dir) if project_dir is not None else Path.cwd()

    def orch() -> Orchestrator:
        # fresh context per request, so edits to minem.json are picked up
        return orchestrator_factory(settings, project_dir)

    @app.get("/health")
    def health():
        return {"ok": True}

    @app.get("/config")
    def get_config():
        try:
            return orch().cfg.model_dump()
        except MinemError as e:
            raise _http_error(e)

    @app.get("/servers")
    def servers():
        try:
            return {"ok": True, "servers": [s.model_dump() for s in orch().servers()]}
        except MinemError as e:
            raise _http_error(e)

    @app.get("/versions")
    def versions(kind: str | None = Query(default=None, alias="type", description="release, snapshot, ...")):
        try:
            return {"ok": True, "versions": [v.model_dump() for v in orch().versions(kind)]}
        except MinemError as e:
            raise _http_error(e)

    @app.post("/download", response_model=ActionResult)
    def download(body: DownloadRequest):
        try:
            path = orch().download(body.version)
        except MinemError as e:
            raise _http_error(e)
        return ActionResult(ok=True, detail="downloaded", data={"path": str(path)})

    @app.get("/properties")
    def properties():
        try:
            return {"ok": True, "properties": [p.to_dict() for p in orch().list_settings()]}
        except MinemError as e:
            raise _http_error(e)

    @app.get("/properties/{key}")
    def get_property(key: str):
        try:
            value = orch().get_setting(key)
        except MinemError as e:
            raise _http_error(e)
        if value is None:
            raise _http_error(SettingNotFound(key))
        return {"ok": True, "key": key, "value": value}

    @app.put("/properties/{key}", response_model=ActionResult)
    def put_property(key: str, body: PropertyValue):
        try:
            orch().set_setting(key, body.value)
        except MinemError as e:
            raise _http_error(e)
        return ActionResult(ok=True, detail="updated", data={"key": key, "value": body.value})

    def _logs_dir() -> Path:
        try:
            return orch().layout.logs
        except MinemError as e:
            raise _http_error(e)

    @app.get("/logs")
    def logs():
        logs_dir = _logs_dir()
        return {"ok": True, "logs": list_logs(logs_dir) if logs_dir.is_dir() else []}

    @app.get("/logs/{log_id}")
    def get_log(
        log_id: str,
        tail: int = Query(default=200, ge=0, le=5000),
        cursor: str | None = None,
        max_lines: int = Query(default=200, ge=1, le=5000),
    ):
        path = find_log(_logs_dir(), log_id)
        if path is None:
            raise HTTPException(status_code=404, detail="log_not_found")

        # archives are complete, so there is nothing to follow
        if cursor and not is_archive(path):
            chunk = read_from_cursor(path, cursor=cursor, max_lines=max_lines)
        else:
            chunk = read_tail(path, tail_lines=tail)

        return {
            "ok": True,
            "id": log_id,
            "cursor": chunk.cursor,
            "entries": [{"n": i + 1, "line": line} for i, line in enumerate(chunk.entries)],
            "truncated": chunk.truncated,
        }
    return app
