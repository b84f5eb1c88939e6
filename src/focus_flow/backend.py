"""Backend calls consumed by the flow views and the icon cache."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from datetime import date, datetime
from pathlib import Path
from typing import Optional, Protocol

from .db import (
    database_connection,
    fetch_icon_base64,
    fetch_latest_session_id,
    fetch_timeline_rows,
    fetch_timeline_rows_for_session,
    fetch_transitions_for_day,
    fetch_transitions_for_session,
    row_to_flow_record,
    rows_to_timeline_events,
)
from .models import FlowRecord, TimelineEvent

logger = logging.getLogger(__name__)


class FetchFailure(Exception):
    """A backend call failed; the message is shown to the caller as-is."""


class IconNotFound(LookupError):
    """No icon could be produced for an application id."""


class ActivityBackend(Protocol):
    async def fetch_timeline_events(self, start: int, end: int) -> list[TimelineEvent]:
        """Events with ``start <= ts <= end``, newest first."""
        ...

    async def fetch_timeline_events_for_session(
        self, session_id: int
    ) -> list[TimelineEvent]:
        ...

    async def fetch_app_lifecycle_flow(self, day: date) -> list[FlowRecord]:
        ...

    async def fetch_session_flow(
        self, session_id: Optional[int] = None
    ) -> list[FlowRecord]:
        ...

    async def fetch_icon(self, app_id: str) -> str:
        ...


class SqliteBackend:
    """Read-only backend over the activity database.

    Every call opens its own connection in a worker thread so the event loop
    is only suspended while the query runs.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)

    async def fetch_timeline_events(self, start: int, end: int) -> list[TimelineEvent]:
        return await self._run(self._timeline_events, start, end)

    async def fetch_timeline_events_for_session(
        self, session_id: int
    ) -> list[TimelineEvent]:
        return await self._run(self._timeline_events_for_session, session_id)

    async def fetch_app_lifecycle_flow(self, day: date) -> list[FlowRecord]:
        return await self._run(self._app_lifecycle_flow, day)

    async def fetch_session_flow(
        self, session_id: Optional[int] = None
    ) -> list[FlowRecord]:
        return await self._run(self._session_flow, session_id)

    async def fetch_icon(self, app_id: str) -> str:
        icon = await self._run(self._icon, app_id)
        if not icon:
            raise IconNotFound(f"No icon stored for {app_id}")
        return icon

    async def _run(self, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except sqlite3.Error as exc:
            logger.error("Backend query %s failed: %s", func.__name__, exc)
            raise FetchFailure(str(exc)) from exc

    def _timeline_events(self, start: int, end: int) -> list[TimelineEvent]:
        with database_connection(self.db_path) as conn:
            rows = fetch_timeline_rows(conn, start, end)
        return rows_to_timeline_events(rows)

    def _timeline_events_for_session(self, session_id: int) -> list[TimelineEvent]:
        with database_connection(self.db_path) as conn:
            rows = fetch_timeline_rows_for_session(conn, session_id)
        return rows_to_timeline_events(rows)

    def _app_lifecycle_flow(self, day: date) -> list[FlowRecord]:
        target = datetime(day.year, day.month, day.day)
        with database_connection(self.db_path) as conn:
            rows = fetch_transitions_for_day(conn, target)
        return [row_to_flow_record(row) for row in rows]

    def _session_flow(self, session_id: Optional[int]) -> list[FlowRecord]:
        with database_connection(self.db_path) as conn:
            if session_id is None:
                session_id = fetch_latest_session_id(conn)
            if session_id is None:
                return []
            rows = fetch_transitions_for_session(conn, session_id)
        return [row_to_flow_record(row) for row in rows]

    def _icon(self, app_id: str) -> Optional[str]:
        with database_connection(self.db_path) as conn:
            return fetch_icon_base64(conn, app_id)
