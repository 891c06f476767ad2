from __future__ import annotations

import os
from typing import Any, Mapping

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse, Response
from pydantic import BaseModel

from campuscal.config_manager import ConfigManager
from campuscal.ics_export import build_calendar
from campuscal.scheduler import SyncScheduler
from campuscal.snapshot_store import SnapshotStore
from campuscal.sync_engine import SyncEngine


ICS_MEDIA_TYPE = "text/calendar; charset=utf-8"


class SyncTriggerResponse(BaseModel):
    message: str


class AppContext:
    def __init__(self, config_path: str, environ: Mapping[str, str] | None = None) -> None:
        self.config_manager = ConfigManager(config_path, environ=environ)
        self.store = SnapshotStore()
        self.sync_engine = SyncEngine(self.config_manager, self.store)
        self.scheduler = SyncScheduler(self.sync_engine, self.config_manager)


def create_app(context: AppContext | None = None, start_scheduler: bool = True) -> FastAPI:
    if context is None:
        context = AppContext(config_path=os.getenv("CAMPUSCAL_CONFIG_PATH", "config.yaml"))

    app = FastAPI(title="campuscal", version="0.1.0")
    app.state.context = context

    @app.on_event("startup")
    def _startup() -> None:
        if start_scheduler:
            app.state.context.scheduler.start()

    @app.on_event("shutdown")
    def _shutdown() -> None:
        if start_scheduler:
            app.state.context.scheduler.stop()

    @app.get("/calendar.ics")
    def calendar_ics() -> Response:
        snapshot = app.state.context.store.export_snapshot()
        calendar_name = app.state.context.config_manager.load().sync.calendar_name
        body = build_calendar(snapshot.values(), name=calendar_name)
        return Response(content=body, media_type=ICS_MEDIA_TYPE)

    @app.get("/health", response_class=PlainTextResponse)
    def health() -> str:
        return "OK"

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/status")
    def status() -> dict[str, Any]:
        store = app.state.context.store
        sync_engine = app.state.context.sync_engine
        last_result = sync_engine.last_result
        return {
            "events": len(store),
            "version": store.version,
            "last_sync": last_result.to_dict() if last_result else None,
            "recent_changes": [change.to_dict() for change in sync_engine.recent_changes],
        }

    @app.get("/api/config")
    def get_config() -> dict[str, Any]:
        return app.state.context.config_manager.masked()

    @app.post("/api/sync", response_model=SyncTriggerResponse)
    def trigger_sync() -> SyncTriggerResponse:
        app.state.context.scheduler.trigger_manual()
        return SyncTriggerResponse(message="sync triggered")

    return app
