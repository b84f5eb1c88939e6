"""Stateful flow views: fetch from the backend, rebuild, publish atomically."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, Optional

from .aggregate_flow import build_aggregate_flow, compute_flow_stats
from .backend import ActivityBackend, FetchFailure
from .config import AppGraphLayout, TimelineLayout
from .db import day_bounds
from .models import FlowGraph, FlowRecord, FlowStats
from .session_flow import build_session_flow

logger = logging.getLogger(__name__)


class _GenerationGuard:
    """Tracks the newest issued request so slower, older responses are dropped."""

    def __init__(self) -> None:
        self._latest = 0

    def issue(self) -> int:
        self._latest += 1
        return self._latest

    def is_current(self, generation: int) -> bool:
        return generation == self._latest


class TimelineFlowView:
    """Chronological focus timeline for one day or one session."""

    def __init__(
        self, backend: ActivityBackend, layout: Optional[TimelineLayout] = None
    ) -> None:
        self._backend = backend
        self.layout = layout or TimelineLayout()
        self._generations = _GenerationGuard()
        self.graph = FlowGraph.empty()
        self.is_loading = False
        self.error: Optional[str] = None
        self.day: Optional[date] = None
        self.session_id: Optional[int] = None
        self.orientation: str = self.layout.orientation

    async def load(
        self,
        day: Optional[date] = None,
        session_id: Optional[int] = None,
        orientation: Optional[str] = None,
    ) -> FlowGraph:
        generation = self._generations.issue()
        target_day = day or date.today()
        target_orientation = orientation or self.layout.orientation
        self.is_loading = True
        self.error = None
        try:
            if session_id is not None:
                events = await self._backend.fetch_timeline_events_for_session(
                    session_id
                )
            else:
                start, end = day_bounds(datetime.combine(target_day, datetime.min.time()))
                events = await self._backend.fetch_timeline_events(start, end - 1)
        except FetchFailure as exc:
            if self._generations.is_current(generation):
                logger.warning("Timeline fetch failed: %s", exc)
                self.error = str(exc)
                self.graph = FlowGraph.empty()
                self.is_loading = False
            return self.graph

        if not self._generations.is_current(generation):
            logger.debug("Discarding stale timeline response #%d", generation)
            return self.graph

        # The backend reports newest first.
        graph = build_session_flow(
            list(reversed(events)),
            orientation=target_orientation,
            layout=self.layout,
        )
        self.graph = graph
        self.day = None if session_id is not None else target_day
        self.session_id = session_id
        self.orientation = target_orientation
        self.is_loading = False
        return graph

    def snapshot(self) -> Dict[str, Any]:
        payload = self.graph.to_payload()
        payload.update(
            {
                "date": self.day.isoformat() if self.day else None,
                "session_id": self.session_id,
                "orientation": self.orientation,
                "is_loading": self.is_loading,
                "error": self.error,
            }
        )
        return payload


class AppFlowView:
    """Aggregate app-to-app transition graph for a day or a session."""

    def __init__(
        self, backend: ActivityBackend, layout: Optional[AppGraphLayout] = None
    ) -> None:
        self._backend = backend
        self.layout = layout or AppGraphLayout()
        self._generations = _GenerationGuard()
        self.graph = FlowGraph.empty()
        self.records: list[FlowRecord] = []
        self.stats = FlowStats()
        self.is_loading = False
        self.error: Optional[str] = None
        self.last_fetched: Optional[datetime] = None
        self.day: date = date.today()
        self.session_mode = False
        self.session_id: Optional[int] = None

    async def load(
        self,
        day: Optional[date] = None,
        session: bool = False,
        session_id: Optional[int] = None,
    ) -> FlowGraph:
        generation = self._generations.issue()
        session_mode = session or session_id is not None
        target_day = day or date.today()
        self.is_loading = True
        self.error = None
        try:
            if session_mode:
                records = await self._backend.fetch_session_flow(session_id)
            else:
                records = await self._backend.fetch_app_lifecycle_flow(target_day)
        except FetchFailure as exc:
            if self._generations.is_current(generation):
                logger.warning("App flow fetch failed: %s", exc)
                self.error = str(exc) or "Failed to fetch lifecycle flow data"
                self.graph = FlowGraph.empty()
                self.records = []
                self.stats = FlowStats()
                self.is_loading = False
            return self.graph

        if not self._generations.is_current(generation):
            logger.debug("Discarding stale app flow response #%d", generation)
            return self.graph

        graph = build_aggregate_flow(records, self.layout)
        self.graph = graph
        self.records = list(records)
        self.stats = compute_flow_stats(records)
        self.day = target_day
        self.session_mode = session_mode
        self.session_id = session_id
        self.last_fetched = datetime.now()
        self.is_loading = False
        logger.debug("App flow loaded: %s", self.stats)
        return graph

    def select(
        self,
        day: Optional[date] = None,
        session: bool = False,
        session_id: Optional[int] = None,
    ) -> None:
        """Point the view at a range without fetching; ``refresh`` loads it."""
        self.day = day or date.today()
        self.session_mode = session or session_id is not None
        self.session_id = session_id

    async def refresh(self) -> FlowGraph:
        return await self.load(
            day=self.day, session=self.session_mode, session_id=self.session_id
        )

    def is_relevant(self, record: FlowRecord, now: Optional[datetime] = None) -> bool:
        """Whether a pushed transition belongs to what is currently displayed."""
        if self.session_mode:
            return True
        if record.created_at:
            occurred = datetime.fromtimestamp(record.created_at).date()
        else:
            occurred = (now or datetime.now()).date()
        return occurred == self.day

    async def handle_transition(
        self, record: FlowRecord, now: Optional[datetime] = None
    ) -> bool:
        """Re-fetch when a pushed transition is relevant; return whether it did."""
        if not self.is_relevant(record, now):
            logger.debug(
                "Ignoring transition %s -> %s outside the displayed range",
                record.from_app,
                record.to_app,
            )
            return False
        await self.refresh()
        return True

    def snapshot(self) -> Dict[str, Any]:
        payload = self.graph.to_payload()
        payload.update(
            {
                "date": None if self.session_mode else self.day.isoformat(),
                "session": self.session_mode,
                "session_id": self.session_id,
                "stats": self.stats.to_payload(),
                "last_fetched": (
                    self.last_fetched.isoformat() if self.last_fetched else None
                ),
                "is_loading": self.is_loading,
                "error": self.error,
            }
        )
        return payload
