"""Assemble positioned nodes and edges into a renderable graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional, Sequence

from ..constants import NODE_KIND
from ..models import StepRecord
from .edges import GraphEdge
from .grouping import Stage
from .layout import Position

SelectCallback = Callable[[str], None]


def _ignore_selection(step_id: str) -> None:
    return None


@dataclass(frozen=True)
class GraphNode:
    """A positioned workflow step.

    ``stack_index`` orders nodes that share a position because their stage
    does not fan out; it is 0 for every node of a fanned-out stage.
    The payload is left out of the hash.
    """

    id: str
    position: Position
    payload: StepRecord = field(hash=False)
    selected: bool = False
    stack_index: int = 0
    kind: str = NODE_KIND
    on_select: SelectCallback = field(
        default=_ignore_selection, compare=False, repr=False
    )

    def click(self) -> None:
        self.on_select(self.id)


@dataclass(frozen=True)
class RenderableGraph:
    nodes: tuple[GraphNode, ...] = ()
    edges: tuple[GraphEdge, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.nodes

    def node(self, step_id: str) -> Optional[GraphNode]:
        for node in self.nodes:
            if node.id == step_id:
                return node
        return None

    def select(self, step_id: str) -> None:
        """Dispatch an interaction event on the node ``step_id``."""
        node = self.node(step_id)
        if node is None:
            raise KeyError(step_id)
        node.click()


def present(
    stages: Sequence[Stage],
    positions: Mapping[str, Position],
    edges: Sequence[GraphEdge],
    selection: Optional[str] = None,
    on_select: Optional[SelectCallback] = None,
) -> RenderableGraph:
    """Build one node per step and pass ``edges`` through unmodified.

    ``selection`` is owned by the caller and threaded in on every call; the
    node whose id matches it is flagged as selected.
    """
    callback = on_select or _ignore_selection
    nodes: list[GraphNode] = []
    for stage in stages:
        stacked = not stage.is_parallel
        for k, step in enumerate(stage.steps):
            nodes.append(
                GraphNode(
                    id=step.id,
                    position=positions[step.id],
                    payload=step,
                    selected=step.id == selection,
                    stack_index=k if stacked else 0,
                    on_select=callback,
                )
            )
    return RenderableGraph(nodes=tuple(nodes), edges=tuple(edges))
