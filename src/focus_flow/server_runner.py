"""Serve the flow API with uvicorn."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import uvicorn

from .config import DashboardSettings
from .paths import get_db_path
from .webapp import create_app

logger = logging.getLogger(__name__)


def build_server(
    *,
    host: str = "127.0.0.1",
    port: int = 8766,
    db_path: Optional[Path] = None,
    settings: Optional[DashboardSettings] = None,
    log_level: str = "info",
) -> uvicorn.Server:
    resolved_db_path = Path(db_path or get_db_path())
    resolved_settings = settings or DashboardSettings()
    app = create_app(db_path=resolved_db_path, settings=resolved_settings)
    config = uvicorn.Config(app, host=host, port=port, log_level=log_level)
    logger.info(
        "Flow API for %s on http://%s:%d (interactive docs at /docs, realtime %s)",
        resolved_db_path,
        host,
        port,
        "on" if resolved_settings.realtime else "off",
    )
    return uvicorn.Server(config)


def run_dashboard(
    *,
    host: str = "127.0.0.1",
    port: int = 8766,
    db_path: Optional[Path] = None,
    settings: Optional[DashboardSettings] = None,
    log_level: str = "info",
) -> None:
    """Block serving the API until interrupted."""
    server = build_server(
        host=host, port=port, db_path=db_path, settings=settings, log_level=log_level
    )
    server.run()
