"""Configuration models for flow layouts and the dashboard."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional

Orientation = Literal["horizontal", "vertical"]
ORIENTATIONS: tuple[str, ...] = ("horizontal", "vertical")


@dataclass(slots=True)
class TimelineLayout:
    """Grid geometry for the chronological focus timeline."""

    node_width: int = 320
    node_height: int = 140
    gap: int = 80
    orientation: Orientation = "horizontal"

    def to_payload(self) -> Dict[str, Any]:
        return {
            "node_width": self.node_width,
            "node_height": self.node_height,
            "gap": self.gap,
            "orientation": self.orientation,
        }


@dataclass(slots=True)
class AppGraphLayout:
    """Row-wrapping placement for the aggregate app transition graph."""

    node_spacing: int = 300
    max_nodes_per_row: int = 4
    row_height: int = 200
    animated: bool = True

    def to_payload(self) -> Dict[str, Any]:
        return {
            "node_spacing": self.node_spacing,
            "max_nodes_per_row": self.max_nodes_per_row,
            "row_height": self.row_height,
            "animated": self.animated,
        }


@dataclass(slots=True)
class DashboardSettings:
    """Runtime configuration shared by the web app and CLI."""

    timeline: TimelineLayout = field(default_factory=TimelineLayout)
    app_graph: AppGraphLayout = field(default_factory=AppGraphLayout)
    realtime: bool = True

    @classmethod
    def from_options(
        cls,
        orientation: Optional[str] = None,
        node_spacing: Optional[int] = None,
        max_nodes_per_row: Optional[int] = None,
        row_height: Optional[int] = None,
        realtime: bool = True,
    ) -> "DashboardSettings":
        timeline = TimelineLayout()
        if orientation is not None:
            if orientation not in ORIENTATIONS:
                raise ValueError(f"Unknown orientation: {orientation!r}")
            timeline.orientation = orientation  # type: ignore[assignment]
        app_graph = AppGraphLayout()
        if node_spacing is not None:
            app_graph.node_spacing = node_spacing
        if max_nodes_per_row is not None:
            app_graph.max_nodes_per_row = max(1, max_nodes_per_row)
        if row_height is not None:
            app_graph.row_height = row_height
        return cls(timeline=timeline, app_graph=app_graph, realtime=realtime)
