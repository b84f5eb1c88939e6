"""Shared fixtures: a seeded activity database and an in-memory backend."""

from __future__ import annotations

import asyncio
from datetime import date, datetime
from pathlib import Path
from typing import Optional

import pytest

from focus_flow.backend import FetchFailure, IconNotFound
from focus_flow.db import database_connection
from focus_flow.models import FlowRecord, TimelineEvent

DAY = date(2024, 5, 1)
NEXT_DAY = date(2024, 5, 2)


def ts_at(hour: int, minute: int = 0, second: int = 0, day: date = DAY) -> int:
    return int(datetime(day.year, day.month, day.day, hour, minute, second).timestamp())


def record(from_app: str, to_app: str, transition_type: str = "switch", ts: int = 0) -> FlowRecord:
    return FlowRecord(
        from_app=from_app,
        to_app=to_app,
        transition_type=transition_type,
        time="09:00:00",
        created_at=ts,
    )


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Activity database with two sessions on DAY and one transition on NEXT_DAY."""
    path = tmp_path / "activity.sqlite3"
    with database_connection(path) as conn:
        conn.executemany(
            "INSERT INTO sessions (id, started_at, ended_at) VALUES (?, ?, ?)",
            [(1, ts_at(8), ts_at(12)), (2, ts_at(13), None)],
        )
        conn.executemany(
            """
            INSERT INTO app_transitions (ts, from_app, to_app, transition_type, session_id)
            VALUES (?, ?, ?, ?, ?)
            """,
            [
                (ts_at(9), "Code", "Firefox", "switch", 1),
                (ts_at(9, 30), "Firefox", "Slack", "switch", 1),
                (ts_at(10), "Slack", "Code", "new", 1),
                (ts_at(13, 30), "Code", "Firefox", "switch", 2),
                (ts_at(8, day=NEXT_DAY), "Terminal", "Code", "switch", None),
            ],
        )
        conn.executemany(
            """
            INSERT INTO window_events (ts, event_type, window_title, app_id, session_id)
            VALUES (?, ?, ?, ?, ?)
            """,
            [
                (ts_at(9, 10), "minimize", "Docs", "Firefox", 1),
                (ts_at(9, 45), "focus", "general", "Slack", 1),
                (ts_at(13, 40), "close", "Docs", "Firefox", 2),
            ],
        )
        conn.execute(
            "INSERT INTO screenshots (ts, file_path, session_id) VALUES (?, ?, ?)",
            (ts_at(9, 20), "/shots/0920.png", 1),
        )
        conn.execute(
            "INSERT INTO app_icons (app_id, icon_base64) VALUES (?, ?)",
            ("Code", "Y29kZQ=="),
        )
    return path


class FakeBackend:
    """In-memory backend; individual calls can be gated or made to fail."""

    def __init__(
        self,
        events: Optional[list[TimelineEvent]] = None,
        flows_by_day: Optional[dict[date, list[FlowRecord]]] = None,
        session_flow: Optional[list[FlowRecord]] = None,
        icons: Optional[dict[str, str]] = None,
    ) -> None:
        self.events = events or []
        self.flows_by_day = flows_by_day or {}
        self.session_flow = session_flow or []
        self.icons = icons or {}
        self.fail_with: Optional[str] = None
        self.gates: dict[date, asyncio.Event] = {}
        self.calls: list[tuple] = []

    async def fetch_timeline_events(self, start: int, end: int) -> list[TimelineEvent]:
        self.calls.append(("timeline", start, end))
        self._maybe_fail()
        return [event for event in self.events if start <= event.ts <= end]

    async def fetch_timeline_events_for_session(self, session_id: int) -> list[TimelineEvent]:
        self.calls.append(("timeline_session", session_id))
        self._maybe_fail()
        return list(self.events)

    async def fetch_app_lifecycle_flow(self, day: date) -> list[FlowRecord]:
        self.calls.append(("app_flow", day))
        gate = self.gates.get(day)
        if gate is not None:
            await gate.wait()
        self._maybe_fail()
        return list(self.flows_by_day.get(day, []))

    async def fetch_session_flow(self, session_id: Optional[int] = None) -> list[FlowRecord]:
        self.calls.append(("session_flow", session_id))
        self._maybe_fail()
        return list(self.session_flow)

    async def fetch_icon(self, app_id: str) -> str:
        self.calls.append(("icon", app_id))
        if app_id not in self.icons:
            raise IconNotFound(app_id)
        return self.icons[app_id]

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise FetchFailure(self.fail_with)


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()
