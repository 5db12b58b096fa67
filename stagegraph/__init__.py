"""stagegraph: staged graph construction and layout for approval workflows."""

from .builder import WorkflowBuilder
from .config import StagegraphConfig, load_config
from .graph import (
    AxisSpacing,
    GraphEdge,
    GraphNode,
    Position,
    RenderableGraph,
    Stage,
    build_graph,
    group_steps,
    layout_stages,
    present,
    synthesize_edges,
)
from .models import StepPatch, StepRecord, Workflow, WorkflowPatch, parse_step
from .persistence import get_repository

__version__ = "0.1.0"
__all__ = [
    "AxisSpacing",
    "GraphEdge",
    "GraphNode",
    "Position",
    "RenderableGraph",
    "Stage",
    "StagegraphConfig",
    "StepPatch",
    "StepRecord",
    "Workflow",
    "WorkflowBuilder",
    "WorkflowPatch",
    "build_graph",
    "get_repository",
    "group_steps",
    "layout_stages",
    "load_config",
    "parse_step",
    "present",
    "synthesize_edges",
]
