"""FastAPI application that exposes the flow graphs and icons as a JSON API."""

from __future__ import annotations

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict

from .backend import ActivityBackend, SqliteBackend
from .config import ORIENTATIONS, DashboardSettings
from .icon_cache import UNAVAILABLE, IconCache
from .models import FlowRecord
from .paths import get_db_path
from .views import AppFlowView, TimelineFlowView

logger = logging.getLogger(__name__)


class TransitionNotification(BaseModel):
    from_app: str
    to_app: str
    transition_type: str = "switch"
    time: Optional[str] = None
    created_at: Optional[int] = None
    timestamp: Optional[int] = None

    model_config = ConfigDict(extra="forbid")

    def to_record(self) -> FlowRecord:
        created_at = self.created_at if self.created_at is not None else self.timestamp
        return FlowRecord(
            from_app=self.from_app,
            to_app=self.to_app,
            transition_type=self.transition_type,
            time=self.time or "",
            created_at=created_at or 0,
        )


def create_app(
    *,
    db_path: Optional[Path] = None,
    settings: Optional[DashboardSettings] = None,
    backend: Optional[ActivityBackend] = None,
) -> FastAPI:
    """Instantiate the FastAPI application.

    The backend and icon cache are shared by every request. Each graph request
    loads into its own view; the shared app flow view only follows the most
    recently requested range so transition notifications can refresh it.
    """
    resolved_db_path = Path(db_path or get_db_path())
    resolved_settings = settings or DashboardSettings()
    resolved_backend = backend or SqliteBackend(resolved_db_path)
    icon_cache = IconCache(resolved_backend.fetch_icon)

    app = FastAPI(title="Focus Flow", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.db_path = resolved_db_path
    app.state.settings = resolved_settings
    app.state.backend = resolved_backend
    app.state.icon_cache = icon_cache
    app.state.app_flow_view = AppFlowView(resolved_backend, resolved_settings.app_graph)

    @app.on_event("startup")
    async def _startup() -> None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        icon_cache.close()

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        return {
            "database_path": str(request.app.state.db_path),
            "realtime": resolved_settings.realtime,
            "timeline_layout": resolved_settings.timeline.to_payload(),
            "app_graph_layout": resolved_settings.app_graph.to_payload(),
            "cached_icons": len(request.app.state.icon_cache),
        }

    @app.get("/api/flow/timeline")
    async def timeline(
        request: Request,
        date: Optional[str] = Query(
            default=None,
            description="Target date in YYYY-MM-DD format.",
        ),
        session_id: Optional[int] = Query(
            default=None,
            description="Restrict the timeline to one session.",
        ),
        orientation: Optional[str] = Query(
            default=None,
            description="Grid order: horizontal (row-major) or vertical.",
        ),
    ) -> Dict[str, Any]:
        if orientation is not None and orientation not in ORIENTATIONS:
            raise HTTPException(status_code=400, detail="Invalid orientation")
        view = TimelineFlowView(request.app.state.backend, resolved_settings.timeline)
        await view.load(
            day=_parse_date(date), session_id=session_id, orientation=orientation
        )
        if view.error:
            raise HTTPException(status_code=502, detail=view.error)
        return view.snapshot()

    @app.get("/api/flow/apps")
    async def app_flow(
        request: Request,
        date: Optional[str] = Query(
            default=None,
            description="Target date in YYYY-MM-DD format.",
        ),
        session: bool = Query(
            default=False,
            description="Show the most recent session instead of a day.",
        ),
        session_id: Optional[int] = Query(default=None),
    ) -> Dict[str, Any]:
        day = _parse_date(date)
        live: AppFlowView = request.app.state.app_flow_view
        live.select(day=day, session=session, session_id=session_id)
        view = AppFlowView(request.app.state.backend, resolved_settings.app_graph)
        await view.load(day=day, session=session, session_id=session_id)
        if view.error:
            raise HTTPException(status_code=502, detail=view.error)
        return view.snapshot()

    @app.post("/api/notifications/app-transition")
    async def app_transition(
        payload: TransitionNotification, request: Request
    ) -> Dict[str, Any]:
        if not resolved_settings.realtime:
            return {"refreshed": False}
        view: AppFlowView = request.app.state.app_flow_view
        refreshed = await view.handle_transition(payload.to_record())
        if refreshed:
            logger.info(
                "App flow refreshed after %s -> %s", payload.from_app, payload.to_app
            )
        return {"refreshed": refreshed, "stats": view.stats.to_payload()}

    @app.get("/api/icons/{app_id:path}")
    async def icon(app_id: str, request: Request) -> Dict[str, Any]:
        cache: IconCache = request.app.state.icon_cache
        src = await cache.resolve(app_id)
        available = src != UNAVAILABLE
        return {
            "app_id": app_id,
            "src": src if available else None,
            "available": available,
        }

    return app


def _parse_date(value: Optional[str]) -> date:
    if not value:
        return date.today()
    try:
        parsed = datetime.strptime(value, "%Y-%m-%d")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid date format") from exc
    return parsed.date()
