"""Summarize app-to-app transition records as a deduplicated graph."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from .config import AppGraphLayout
from .models import AppEdge, AppNode, FlowGraph, FlowRecord, FlowStats, Position

logger = logging.getLogger(__name__)

SWITCH_TRANSITION = "switch"
PRIMARY_STROKE = "hsl(var(--primary))"
SECONDARY_STROKE = "hsl(var(--chart-2))"


def app_node_id(app_name: str) -> str:
    return f"app-{app_name}"


def edge_stroke(transition_type: str) -> str:
    return PRIMARY_STROKE if transition_type == SWITCH_TRANSITION else SECONDARY_STROKE


class _RowPlacer:
    """Hands out left-to-right slots, wrapping after ``max_nodes_per_row``."""

    def __init__(self, layout: AppGraphLayout) -> None:
        self._layout = layout
        self._slot = 0
        self._y = 0

    def next_position(self) -> Position:
        if self._slot >= max(1, self._layout.max_nodes_per_row):
            self._slot = 0
            self._y += self._layout.row_height
        position = Position(x=self._slot * self._layout.node_spacing, y=self._y)
        self._slot += 1
        return position


def build_aggregate_flow(
    records: Iterable[Any], layout: Optional[AppGraphLayout] = None
) -> FlowGraph:
    """Build one node per distinct app and one edge per ordered app pair.

    The first record seen for a pair decides the edge label and style; later
    records for the same pair are ignored.
    """
    layout = layout or AppGraphLayout()
    placer = _RowPlacer(layout)
    nodes: dict[str, AppNode] = {}
    edges: dict[tuple[str, str], AppEdge] = {}

    for index, record in enumerate(records or ()):
        if not isinstance(record, FlowRecord):
            logger.debug("Skipping malformed flow record: %r", record)
            continue
        for app_name in (record.from_app, record.to_app):
            if app_name not in nodes:
                nodes[app_name] = AppNode(
                    id=app_node_id(app_name),
                    app_name=app_name,
                    position=placer.next_position(),
                    time=record.time,
                    transition_type=record.transition_type,
                    created_at=record.created_at,
                )

        pair = (record.from_app, record.to_app)
        if pair in edges:
            continue
        edges[pair] = AppEdge(
            id=f"edge-{index}",
            source=app_node_id(record.from_app),
            target=app_node_id(record.to_app),
            label=record.transition_type,
            transition_type=record.transition_type,
            stroke=edge_stroke(record.transition_type),
            animated=layout.animated,
            time=record.time,
        )

    logger.debug("Built app flow graph: %d nodes, %d edges", len(nodes), len(edges))
    return FlowGraph(nodes=list(nodes.values()), edges=list(edges.values()))


def compute_flow_stats(records: Iterable[Any]) -> FlowStats:
    apps: set[str] = set()
    transitions = 0
    for record in records or ():
        if not isinstance(record, FlowRecord):
            continue
        apps.add(record.from_app)
        apps.add(record.to_app)
        transitions += 1
    return FlowStats(apps=len(apps), transitions=transitions)
