"""Stage-to-stage precedence edges."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from .grouping import Stage


@dataclass(frozen=True)
class GraphEdge:
    source: str
    target: str
    directed: bool = True
    id: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", f"{self.source}-{self.target}")


def synthesize_edges(stages: Sequence[Stage]) -> list[GraphEdge]:
    """Join every step of each stage to every step of the next one.

    All steps of a stage are treated as required predecessors of every step
    in the following stage, whatever their ``is_required`` flag or step type.
    Steps within one stage are never connected to each other.
    """
    edges: list[GraphEdge] = []
    for previous, current in zip(stages, stages[1:]):
        for source in previous.steps:
            for target in current.steps:
                edges.append(GraphEdge(source=source.id, target=target.id))
    return edges
