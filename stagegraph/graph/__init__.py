"""Staged graph construction and layout for workflow steps."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from ..models import StepRecord
from .edges import GraphEdge, synthesize_edges
from .grouping import Stage, group_steps
from .layout import AxisSpacing, Position, layout_stages, stage_bases
from .presentation import GraphNode, RenderableGraph, SelectCallback, present

logger = logging.getLogger(__name__)


def build_graph(
    steps: Iterable[StepRecord],
    selection: Optional[str] = None,
    on_select: Optional[SelectCallback] = None,
    spacing: Optional[AxisSpacing] = None,
) -> RenderableGraph:
    """Run grouping, layout, edge synthesis and presentation in one pass."""
    stages = group_steps(steps)
    positions = layout_stages(stages, spacing)
    edges = synthesize_edges(stages)
    graph = present(stages, positions, edges, selection, on_select)
    logger.debug(
        f"Built graph with {len(stages)} stages, {len(graph.nodes)} nodes and {len(graph.edges)} edges"
    )
    return graph


__all__ = [
    "AxisSpacing",
    "GraphEdge",
    "GraphNode",
    "Position",
    "RenderableGraph",
    "SelectCallback",
    "Stage",
    "build_graph",
    "group_steps",
    "layout_stages",
    "present",
    "stage_bases",
    "synthesize_edges",
]
