"""Repository abstraction for workflow and step persistence."""

from __future__ import annotations

from typing import Any, Mapping, Protocol

from ..models import StepPatch, StepRecord, Workflow, WorkflowPatch


class RecordNotFoundError(LookupError):
    """Raised when a workflow or step id does not resolve to a record."""


WORKFLOW_NOT_FOUND = "Workflow not found"
STEP_NOT_FOUND = "Workflow step not found"


class WorkflowRepository(Protocol):
    """Protocol for workflow persistence backends.

    The repository is the sole source of step and workflow ids.
    """

    async def create_workflow(self, workflow: Workflow) -> Workflow:
        """Persist a new workflow."""

    async def get_workflow(self, workflow_id: str) -> Workflow | None:
        """Retrieve a workflow by id."""

    async def list_workflows(self) -> list[Workflow]:
        """Return all workflows, newest first."""

    async def update_workflow(self, workflow_id: str, patch: WorkflowPatch) -> Workflow:
        """Apply a partial update to a workflow."""

    async def delete_workflow(self, workflow_id: str) -> None:
        """Delete a workflow together with its steps."""

    async def list_steps(self, workflow_id: str) -> list[StepRecord]:
        """Return the steps of a workflow in creation order."""

    async def create_step(
        self, workflow_id: str, step: StepRecord | Mapping[str, Any]
    ) -> StepRecord:
        """Persist a new step and return it with its generated id."""

    async def update_step(
        self, workflow_id: str, step_id: str, patch: StepPatch
    ) -> StepRecord:
        """Apply a partial update to a step."""

    async def delete_step(self, workflow_id: str, step_id: str) -> None:
        """Delete a step."""
