"""Domain models for timeline events and flow graphs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Union

logger = logging.getLogger(__name__)

WINDOW_EVENT_TYPES = frozenset({"minimize", "maximize", "close"})


@dataclass(slots=True)
class AppTransition:
    """Window focus moved from one application to another."""

    from_app: str
    to_app: str
    ts: int
    transition_type: str

    def to_payload(self) -> Dict[str, Any]:
        return {
            "from_app": self.from_app,
            "to_app": self.to_app,
            "ts": self.ts,
            "transition_type": self.transition_type,
        }


@dataclass(slots=True)
class WindowEvent:
    """A window was minimized, maximized or closed."""

    event_type: str
    window_title: str
    app_id: str
    ts: int

    def to_payload(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type,
            "window_title": self.window_title,
            "app_id": self.app_id,
            "ts": self.ts,
        }


@dataclass(slots=True)
class Screenshot:
    path: str
    ts: int

    def to_payload(self) -> Dict[str, Any]:
        return {"path": self.path, "ts": self.ts}


TimelineEvent = Union[AppTransition, WindowEvent, Screenshot]
AttachedEvent = Union[WindowEvent, Screenshot]


def event_type_name(event: TimelineEvent) -> str:
    return type(event).__name__


def parse_timeline_event(raw: Any) -> Optional[TimelineEvent]:
    """Convert a ``{"type": ..., "payload": {...}}`` mapping into an event.

    Returns ``None`` for anything that does not describe a well-formed event.
    """
    if not isinstance(raw, Mapping):
        return None
    payload = raw.get("payload")
    if not isinstance(payload, Mapping):
        return None
    ts = _coerce_ts(payload.get("ts"))
    if ts is None:
        return None

    kind = raw.get("type")
    try:
        if kind == "AppTransition":
            return AppTransition(
                from_app=str(payload["from_app"]),
                to_app=str(payload["to_app"]),
                ts=ts,
                transition_type=str(payload["transition_type"]),
            )
        if kind == "WindowEvent":
            event_type = payload["event_type"]
            if event_type not in WINDOW_EVENT_TYPES:
                return None
            return WindowEvent(
                event_type=event_type,
                window_title=str(payload.get("window_title") or ""),
                app_id=str(payload["app_id"]),
                ts=ts,
            )
        if kind == "Screenshot":
            return Screenshot(path=str(payload["path"]), ts=ts)
    except KeyError:
        return None
    return None


def parse_timeline_events(raws: Iterable[Any]) -> list[TimelineEvent]:
    events: list[TimelineEvent] = []
    for raw in raws:
        event = parse_timeline_event(raw)
        if event is None:
            logger.debug("Skipping malformed timeline event: %r", raw)
            continue
        events.append(event)
    return events


def timeline_event_to_payload(event: TimelineEvent) -> Dict[str, Any]:
    return {"type": event_type_name(event), "payload": event.to_payload()}


def _coerce_ts(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


@dataclass(slots=True)
class FlowRecord:
    """One app-to-app transition as reported for the aggregate view."""

    from_app: str
    to_app: str
    transition_type: str
    time: str
    created_at: int

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "FlowRecord":
        return cls(
            from_app=str(payload["from_app"]),
            to_app=str(payload["to_app"]),
            transition_type=str(payload["transition_type"]),
            time=str(payload.get("time") or ""),
            created_at=int(payload.get("created_at") or 0),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "from_app": self.from_app,
            "to_app": self.to_app,
            "transition_type": self.transition_type,
            "time": self.time,
            "created_at": self.created_at,
        }


@dataclass(slots=True, frozen=True)
class Position:
    x: float
    y: float

    def to_payload(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}


@dataclass(slots=True)
class FocusNode:
    """A contiguous span during which one application held focus."""

    id: str
    app_name: str
    start_timestamp: int
    end_timestamp: Optional[int]
    position: Position
    attached_events: list[AttachedEvent] = field(default_factory=list)

    def contains(self, ts: int) -> bool:
        """Half-open membership test; an open end extends forever."""
        if ts < self.start_timestamp:
            return False
        return self.end_timestamp is None or ts < self.end_timestamp

    @property
    def is_open(self) -> bool:
        return self.end_timestamp is None

    @property
    def duration_seconds(self) -> Optional[int]:
        if self.end_timestamp is None:
            return None
        return self.end_timestamp - self.start_timestamp

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": "appNode",
            "position": self.position.to_payload(),
            "data": {
                "appName": self.app_name,
                "startTimestamp": self.start_timestamp,
                "endTimestamp": self.end_timestamp,
                "events": [
                    timeline_event_to_payload(event) for event in self.attached_events
                ],
            },
        }


@dataclass(slots=True)
class FocusEdge:
    id: str
    source: str
    target: str
    label: str

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "type": "smoothstep",
            "label": self.label,
        }


@dataclass(slots=True)
class AppNode:
    """A distinct application in the aggregate transition graph."""

    id: str
    app_name: str
    position: Position
    time: str
    transition_type: str
    created_at: int

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": "appNode",
            "position": self.position.to_payload(),
            "data": {
                "app_name": self.app_name,
                "time": self.time,
                "transition_type": self.transition_type,
                "created_at": self.created_at,
            },
        }


@dataclass(slots=True)
class AppEdge:
    id: str
    source: str
    target: str
    label: str
    transition_type: str
    stroke: str
    animated: bool = True
    time: str = ""

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "type": "smoothstep",
            "label": self.label,
            "animated": self.animated,
            "data": {"transition_type": self.transition_type, "time": self.time},
            "style": {"stroke": self.stroke, "strokeWidth": 2},
            "markerEnd": {"type": "arrowclosed", "color": self.stroke},
        }


GraphNode = Union[FocusNode, AppNode]
GraphEdge = Union[FocusEdge, AppEdge]


@dataclass(slots=True)
class FlowGraph:
    """Nodes and edges handed to the rendering layer as one unit."""

    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "FlowGraph":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.nodes and not self.edges

    def to_payload(self) -> Dict[str, Any]:
        return {
            "nodes": [node.to_payload() for node in self.nodes],
            "edges": [edge.to_payload() for edge in self.edges],
        }


@dataclass(slots=True, frozen=True)
class FlowStats:
    apps: int = 0
    transitions: int = 0

    def to_payload(self) -> Dict[str, int]:
        return {"apps": self.apps, "transitions": self.transitions}
