"""SQLite access to the activity database written by the native backend."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Iterator, Optional

from .models import (
    WINDOW_EVENT_TYPES,
    AppTransition,
    FlowRecord,
    Screenshot,
    TimelineEvent,
    WindowEvent,
)

logger = logging.getLogger(__name__)

TIME_FMT = "%H:%M:%S"


def open_database(path: Path, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    enable_foreign_keys(conn)
    initialize_schema(conn)
    return conn


@contextmanager
def database_connection(
    path: Path, *, check_same_thread: bool = True
) -> Iterator[sqlite3.Connection]:
    conn = open_database(path, check_same_thread=check_same_thread)
    try:
        yield conn
    finally:
        conn.close()


def enable_foreign_keys(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA foreign_keys = ON;")


def initialize_schema(conn: sqlite3.Connection) -> None:
    """Create the backend tables if a fresh database is opened."""
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS sessions (
            id INTEGER PRIMARY KEY,
            started_at INTEGER NOT NULL,
            ended_at INTEGER
        );

        CREATE TABLE IF NOT EXISTS app_transitions (
            id INTEGER PRIMARY KEY,
            ts INTEGER NOT NULL,
            from_app TEXT NOT NULL,
            to_app TEXT NOT NULL,
            transition_type TEXT NOT NULL DEFAULT 'switch',
            session_id INTEGER REFERENCES sessions(id)
        );

        CREATE TABLE IF NOT EXISTS window_events (
            id INTEGER PRIMARY KEY,
            ts INTEGER NOT NULL,
            event_type TEXT NOT NULL,
            window_title TEXT,
            app_id TEXT,
            session_id INTEGER REFERENCES sessions(id)
        );

        CREATE TABLE IF NOT EXISTS screenshots (
            id INTEGER PRIMARY KEY,
            ts INTEGER NOT NULL,
            file_path TEXT NOT NULL,
            session_id INTEGER REFERENCES sessions(id)
        );

        CREATE TABLE IF NOT EXISTS app_icons (
            app_id TEXT PRIMARY KEY,
            icon_base64 TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_transitions_ts ON app_transitions(ts);
        CREATE INDEX IF NOT EXISTS idx_window_events_ts ON window_events(ts);
        CREATE INDEX IF NOT EXISTS idx_screenshots_ts ON screenshots(ts);
        """
    )


_TIMELINE_SELECT = """
    SELECT 'AppTransition' AS kind, ts, from_app, to_app, transition_type,
           NULL AS event_type, NULL AS window_title, NULL AS app_id,
           NULL AS file_path, id
    FROM app_transitions WHERE {where}
    UNION ALL
    SELECT 'WindowEvent' AS kind, ts, NULL, NULL, NULL,
           event_type, window_title, app_id, NULL, id
    FROM window_events WHERE {where}
    UNION ALL
    SELECT 'Screenshot' AS kind, ts, NULL, NULL, NULL,
           NULL, NULL, NULL, file_path, id
    FROM screenshots WHERE {where}
    ORDER BY ts DESC, id DESC
"""


def fetch_timeline_rows(
    conn: sqlite3.Connection, start_ts: int, end_ts: int
) -> list[sqlite3.Row]:
    """Fetch every timeline row with ``start_ts <= ts <= end_ts``, newest first."""
    query = _TIMELINE_SELECT.format(where="ts BETWEEN ? AND ?")
    return list(conn.execute(query, (start_ts, end_ts) * 3))


def fetch_timeline_rows_for_session(
    conn: sqlite3.Connection, session_id: int
) -> list[sqlite3.Row]:
    query = _TIMELINE_SELECT.format(where="session_id = ?")
    return list(conn.execute(query, (session_id,) * 3))


def row_to_timeline_event(row: Any) -> Optional[TimelineEvent]:
    kind = row["kind"]
    if kind == "AppTransition":
        return AppTransition(
            from_app=row["from_app"],
            to_app=row["to_app"],
            ts=int(row["ts"]),
            transition_type=row["transition_type"],
        )
    if kind == "WindowEvent":
        if row["event_type"] not in WINDOW_EVENT_TYPES:
            return None
        return WindowEvent(
            event_type=row["event_type"],
            window_title=row["window_title"] or "",
            app_id=row["app_id"] or "",
            ts=int(row["ts"]),
        )
    if kind == "Screenshot":
        return Screenshot(path=row["file_path"], ts=int(row["ts"]))
    return None


def rows_to_timeline_events(rows: list[Any]) -> list[TimelineEvent]:
    events: list[TimelineEvent] = []
    for row in rows:
        event = row_to_timeline_event(row)
        if event is None:
            logger.debug("Skipping unrecognised timeline row: %s", dict(row))
            continue
        events.append(event)
    return events


def fetch_transitions_for_day(
    conn: sqlite3.Connection, day: datetime
) -> list[sqlite3.Row]:
    """Fetch the app transitions recorded on the provided (local) day."""
    start_ts, end_ts = day_bounds(day)
    return list(
        conn.execute(
            """
            SELECT id, ts, from_app, to_app, transition_type
            FROM app_transitions
            WHERE ts >= ? AND ts < ?
            ORDER BY ts, id;
            """,
            (start_ts, end_ts),
        )
    )


def fetch_transitions_for_session(
    conn: sqlite3.Connection, session_id: int
) -> list[sqlite3.Row]:
    return list(
        conn.execute(
            """
            SELECT id, ts, from_app, to_app, transition_type
            FROM app_transitions
            WHERE session_id = ?
            ORDER BY ts, id;
            """,
            (session_id,),
        )
    )


def fetch_latest_session_id(conn: sqlite3.Connection) -> Optional[int]:
    row = conn.execute(
        "SELECT id FROM sessions ORDER BY started_at DESC, id DESC LIMIT 1;"
    ).fetchone()
    return None if row is None else int(row["id"])


def row_to_flow_record(row: Any) -> FlowRecord:
    ts = int(row["ts"])
    return FlowRecord(
        from_app=row["from_app"],
        to_app=row["to_app"],
        transition_type=row["transition_type"],
        time=datetime.fromtimestamp(ts).strftime(TIME_FMT),
        created_at=ts,
    )


def fetch_icon_base64(conn: sqlite3.Connection, app_id: str) -> Optional[str]:
    row = conn.execute(
        "SELECT icon_base64 FROM app_icons WHERE app_id = ?;", (app_id,)
    ).fetchone()
    return None if row is None else row["icon_base64"]


def day_bounds(day: datetime) -> tuple[int, int]:
    """Return ``[start, end)`` epoch seconds of the local day containing ``day``."""
    start = day.replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=1)
    return int(start.timestamp()), int(end.timestamp())
