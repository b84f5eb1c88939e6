"""Build the chronological focus timeline for a day or a single session."""

from __future__ import annotations

import logging
import math
from bisect import bisect_right
from typing import Any, Iterable, Optional

from .config import TimelineLayout
from .models import (
    AppTransition,
    AttachedEvent,
    FlowGraph,
    FocusEdge,
    FocusNode,
    Position,
    Screenshot,
    WindowEvent,
)

logger = logging.getLogger(__name__)


def build_session_flow(
    events: Iterable[Any],
    orientation: Optional[str] = None,
    layout: Optional[TimelineLayout] = None,
) -> FlowGraph:
    """Turn an ascending event stream into a linear chain of focus intervals.

    Node ``i`` covers ``[start, end)`` where the boundaries are the timestamps
    of the transitions on either side of it. The first node starts one second
    before the first transition and the last node is left open. Window events
    and screenshots are attached to the node whose interval contains them.
    Malformed or empty input yields an empty graph.
    """
    layout = layout or TimelineLayout()
    orientation = orientation or layout.orientation

    transitions: list[AppTransition] = []
    others: list[AttachedEvent] = []
    for event in events or ():
        if isinstance(event, AppTransition):
            transitions.append(event)
        elif isinstance(event, (WindowEvent, Screenshot)):
            others.append(event)

    if not transitions:
        return FlowGraph.empty()

    sequence = [transitions[0].from_app] + [t.to_app for t in transitions]
    total = len(sequence)
    side = math.ceil(math.sqrt(total))

    nodes: list[FocusNode] = []
    edges: list[FocusEdge] = []
    for i, app_name in enumerate(sequence):
        start = transitions[i - 1].ts if i > 0 else transitions[0].ts - 1
        end = transitions[i].ts if i < total - 1 else None
        nodes.append(
            FocusNode(
                id=f"node-{i}",
                app_name=app_name,
                start_timestamp=start,
                end_timestamp=end,
                position=_grid_position(i, side, orientation, layout),
            )
        )
        if i > 0:
            edges.append(
                FocusEdge(
                    id=f"edge-{i - 1}",
                    source=f"node-{i - 1}",
                    target=f"node-{i}",
                    label=transitions[i - 1].transition_type,
                )
            )

    starts = [node.start_timestamp for node in nodes]
    for event in others:
        node = _find_interval(nodes, starts, event.ts)
        if node is None:
            # Anything older than the first boundary has no interval.
            logger.debug("No focus interval contains event at ts=%s; dropped.", event.ts)
            continue
        node.attached_events.append(event)

    logger.debug(
        "Built session flow: %d nodes, %d edges, %d attached events",
        len(nodes),
        len(edges),
        sum(len(node.attached_events) for node in nodes),
    )
    return FlowGraph(nodes=nodes, edges=edges)


def _grid_position(
    index: int, side: int, orientation: str, layout: TimelineLayout
) -> Position:
    if orientation == "vertical":
        row, col = index % side, index // side
    else:
        col, row = index % side, index // side
    return Position(
        x=col * (layout.node_width + layout.gap),
        y=row * (layout.node_height + layout.gap),
    )


def _find_interval(
    nodes: list[FocusNode], starts: list[int], ts: int
) -> Optional[FocusNode]:
    # Intervals are contiguous and ordered, so the last start <= ts is the
    # only candidate.
    index = bisect_right(starts, ts) - 1
    if index < 0:
        return None
    node = nodes[index]
    return node if node.contains(ts) else None
