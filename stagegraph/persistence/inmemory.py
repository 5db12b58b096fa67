"""In-memory implementation of the workflow repository."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping

from ..models import (
    StepPatch,
    StepRecord,
    Workflow,
    WorkflowPatch,
    apply_step_patch,
    apply_workflow_patch,
    new_id,
    parse_step,
)
from .repository import (
    STEP_NOT_FOUND,
    WORKFLOW_NOT_FOUND,
    RecordNotFoundError,
    WorkflowRepository,
)

logger = logging.getLogger(__name__)


class InMemoryWorkflowRepository(WorkflowRepository):
    """Store workflows and steps in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._workflows: Dict[str, Workflow] = {}
        self._steps: Dict[str, List[StepRecord]] = {}

    def _require_workflow(self, workflow_id: str) -> Workflow:
        wf = self._workflows.get(workflow_id)
        if wf is None:
            raise RecordNotFoundError(WORKFLOW_NOT_FOUND)
        return wf

    def _step_index(self, workflow_id: str, step_id: str) -> int:
        self._require_workflow(workflow_id)
        for index, step in enumerate(self._steps[workflow_id]):
            if step.id == step_id:
                return index
        raise RecordNotFoundError(STEP_NOT_FOUND)

    # ------------------------------------------------------------------
    async def create_workflow(self, workflow: Workflow) -> Workflow:
        self._workflows[workflow.id] = workflow
        self._steps[workflow.id] = []
        logger.info(f"Created workflow {workflow.id} ({workflow.name})")
        return workflow

    async def get_workflow(self, workflow_id: str) -> Workflow | None:
        return self._workflows.get(workflow_id)

    async def list_workflows(self) -> list[Workflow]:
        return sorted(
            self._workflows.values(), key=lambda wf: wf.created_at, reverse=True
        )

    async def update_workflow(self, workflow_id: str, patch: WorkflowPatch) -> Workflow:
        wf = apply_workflow_patch(self._require_workflow(workflow_id), patch)
        self._workflows[workflow_id] = wf
        return wf

    async def delete_workflow(self, workflow_id: str) -> None:
        self._require_workflow(workflow_id)
        del self._workflows[workflow_id]
        self._steps.pop(workflow_id, None)
        logger.info(f"Deleted workflow {workflow_id}")

    async def list_steps(self, workflow_id: str) -> list[StepRecord]:
        self._require_workflow(workflow_id)
        return list(self._steps[workflow_id])

    async def create_step(
        self, workflow_id: str, step: StepRecord | Mapping[str, Any]
    ) -> StepRecord:
        self._require_workflow(workflow_id)
        created = parse_step(step).model_copy(update={"id": new_id()})
        self._steps[workflow_id].append(created)
        logger.info(f"Created step {created.id} in workflow {workflow_id}")
        return created

    async def update_step(
        self, workflow_id: str, step_id: str, patch: StepPatch
    ) -> StepRecord:
        index = self._step_index(workflow_id, step_id)
        updated = apply_step_patch(self._steps[workflow_id][index], patch)
        self._steps[workflow_id][index] = updated
        logger.info(f"Updated step {step_id} in workflow {workflow_id}")
        return updated

    async def delete_step(self, workflow_id: str, step_id: str) -> None:
        index = self._step_index(workflow_id, step_id)
        del self._steps[workflow_id][index]
        logger.info(f"Deleted step {step_id} from workflow {workflow_id}")
