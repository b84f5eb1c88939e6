"""Simple reporting utilities for CLI output."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from .models import AppEdge, AppNode, FlowGraph, FlowStats, FocusNode, Screenshot


class FlowPrinter:
    """Render human-readable flow graphs in the console."""

    def print_timeline(self, graph: FlowGraph, title: str) -> None:
        if graph.is_empty:
            print("No app transitions recorded for the selected range.")
            return

        print(f"Focus timeline for {title}")
        print("-" * 60)
        for node in graph.nodes:
            if not isinstance(node, FocusNode):
                continue
            start = format_clock(node.start_timestamp)
            end = format_clock(node.end_timestamp) if node.end_timestamp is not None else "now"
            duration = (
                format_duration(node.duration_seconds)
                if node.duration_seconds is not None
                else "(active)"
            )
            screenshots = sum(
                1 for event in node.attached_events if isinstance(event, Screenshot)
            )
            window_events = len(node.attached_events) - screenshots
            print(
                f"  {start} - {end:<8} {node.app_name[:30]:<30} {duration:>10}"
                f"  {window_events} window / {screenshots} screenshots"
            )
        print()
        print(f"{len(graph.edges)} transitions")

    def print_app_graph(self, graph: FlowGraph, stats: FlowStats, title: str) -> None:
        if graph.is_empty:
            print("No app transitions recorded for the selected range.")
            return

        names = {
            node.id: node.app_name for node in graph.nodes if isinstance(node, AppNode)
        }
        print(f"App flow for {title}")
        print("-" * 60)
        print(f"Apps: {stats.apps}   Transitions: {stats.transitions}")
        print()
        for edge in graph.edges:
            source = names.get(edge.source, edge.source)
            target = names.get(edge.target, edge.target)
            when = f"{edge.time} - " if isinstance(edge, AppEdge) and edge.time else ""
            print(f"  {source[:24]:<24} -> {target[:24]:<24} {when}{edge.label}")


def format_clock(ts: Optional[int]) -> str:
    if ts is None:
        return "--:--:--"
    return datetime.fromtimestamp(ts).strftime("%H:%M:%S")


def format_duration(seconds: float) -> str:
    total_seconds = int(round(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
