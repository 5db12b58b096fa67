"""Interactive builder session over one workflow's staged graph."""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional

from .config import load_config
from .graph import AxisSpacing, RenderableGraph, build_graph
from .models import BaseStep, StepPatch, StepRecord
from .persistence import WorkflowRepository, get_repository

logger = logging.getLogger(__name__)

_ORDERING_KEYS = ("step_number", "sequence_group")


class WorkflowBuilder:
    """Owns the selected step and the rendered graph of the open workflow.

    Every successful step mutation and every workflow switch reloads the
    step collection and recomputes the whole graph. A failed load leaves the
    previously rendered graph in place.
    """

    def __init__(
        self,
        repository: WorkflowRepository | None = None,
        spacing: Optional[AxisSpacing] = None,
        on_step_selected: Optional[Callable[[StepRecord], None]] = None,
    ) -> None:
        self._repository = repository or get_repository()
        self._spacing = spacing or AxisSpacing.from_config(load_config().layout)
        self._on_step_selected = on_step_selected
        self._workflow_id: Optional[str] = None
        self._selected_step_id: Optional[str] = None
        self._steps: list[StepRecord] = []
        self._graph = RenderableGraph()

    @property
    def workflow_id(self) -> Optional[str]:
        return self._workflow_id

    @property
    def selected_step_id(self) -> Optional[str]:
        return self._selected_step_id

    @property
    def steps(self) -> list[StepRecord]:
        return list(self._steps)

    @property
    def graph(self) -> RenderableGraph:
        return self._graph

    def _require_open(self) -> str:
        if self._workflow_id is None:
            raise ValueError("No workflow is open")
        return self._workflow_id

    def _render(self) -> RenderableGraph:
        self._graph = build_graph(
            self._steps,
            selection=self._selected_step_id,
            on_select=self.select_step,
            spacing=self._spacing,
        )
        return self._graph

    # ------------------------------------------------------------------
    async def open_workflow(self, workflow_id: str) -> RenderableGraph:
        """Switch to ``workflow_id``, dropping the current selection."""
        logger.info(f"Opening workflow {workflow_id}")
        self._workflow_id = workflow_id
        self._selected_step_id = None
        self._steps = []
        self._graph = RenderableGraph()
        return await self.reload()

    async def reload(self) -> RenderableGraph:
        """Fetch the open workflow's steps and recompute the graph.

        The most recently completed load wins, except that a load for a
        workflow that is no longer open is discarded.
        """
        workflow_id = self._require_open()
        try:
            steps = await self._repository.list_steps(workflow_id)
        except Exception as e:
            logger.error(f"Failed to load steps for workflow {workflow_id}: {e}")
            raise

        if workflow_id != self._workflow_id:
            logger.debug(
                f"Discarding steps of workflow {workflow_id}; {self._workflow_id} is open"
            )
            return self._graph

        self._steps = steps
        if self._selected_step_id not in {step.id for step in steps}:
            self._selected_step_id = None
        return self._render()

    def select_step(self, step_id: str) -> RenderableGraph:
        """Selection callback wired into every node of the graph."""
        for step in self._steps:
            if step.id == step_id:
                break
        else:
            raise KeyError(step_id)
        self._selected_step_id = step_id
        graph = self._render()
        if self._on_step_selected is not None:
            self._on_step_selected(step)
        return graph

    def clear_selection(self) -> RenderableGraph:
        self._selected_step_id = None
        return self._render()

    # ------------------------------------------------------------------
    def next_step_number(self) -> int:
        return len(self._steps) + 1

    def _with_default_ordering(
        self, step: StepRecord | Mapping[str, Any]
    ) -> dict[str, Any]:
        if isinstance(step, BaseStep):
            data = step.model_dump(exclude_unset=True)
            data["step_type"] = step.step_type
        else:
            data = dict(step)
        next_number = self.next_step_number()
        for key in _ORDERING_KEYS:
            if data.get(key) is None:
                data[key] = next_number
        return data

    async def add_step(self, step: StepRecord | Mapping[str, Any]) -> StepRecord:
        """Create a step, appending it as a new stage unless placed explicitly."""
        workflow_id = self._require_open()
        created = await self._repository.create_step(
            workflow_id, self._with_default_ordering(step)
        )
        await self.reload()
        return created

    async def edit_step(
        self, step_id: str, patch: StepPatch | Mapping[str, Any]
    ) -> StepRecord:
        workflow_id = self._require_open()
        if not isinstance(patch, StepPatch):
            patch = StepPatch(**patch)
        updated = await self._repository.update_step(workflow_id, step_id, patch)
        await self.reload()
        return updated

    async def remove_step(self, step_id: str) -> None:
        workflow_id = self._require_open()
        await self._repository.delete_step(workflow_id, step_id)
        if self._selected_step_id == step_id:
            self._selected_step_id = None
        await self.reload()
