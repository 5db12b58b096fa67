"""PostgreSQL implementation of the workflow repository."""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping

import asyncpg

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

_WORKFLOW_COLUMNS = (
    "id, name, description, workflow_type, entity_type, trigger_event, is_active, created_at"
)


def _load_json(value: Any) -> dict:
    # asyncpg hands JSONB back as text unless a codec is registered
    if isinstance(value, str):
        return json.loads(value)
    return dict(value)


class PostgresWorkflowRepository(WorkflowRepository):
    """Persist workflows and steps using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflows (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                description TEXT,
                workflow_type TEXT NOT NULL,
                entity_type TEXT NOT NULL DEFAULT '',
                trigger_event TEXT,
                is_active BOOLEAN NOT NULL DEFAULT TRUE,
                created_at TIMESTAMPTZ NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_steps (
                row_id BIGSERIAL PRIMARY KEY,
                id TEXT NOT NULL UNIQUE,
                workflow_id TEXT NOT NULL REFERENCES workflows(id) ON DELETE CASCADE,
                step_type TEXT NOT NULL,
                step_number INTEGER NOT NULL DEFAULT 0,
                sequence_group INTEGER NOT NULL DEFAULT 0,
                data JSONB NOT NULL
            )
            """
        )

    @staticmethod
    def _row_to_workflow(row: asyncpg.Record) -> Workflow:
        return Workflow(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            workflow_type=row["workflow_type"],
            entity_type=row["entity_type"],
            trigger_event=row["trigger_event"],
            is_active=row["is_active"],
            created_at=row["created_at"],
        )

    async def _require_workflow(self, workflow_id: str) -> Workflow:
        wf = await self.get_workflow(workflow_id)
        if wf is None:
            raise RecordNotFoundError(WORKFLOW_NOT_FOUND)
        return wf

    # ------------------------------------------------------------------
    async def create_workflow(self, workflow: Workflow) -> Workflow:
        conn = await self._connect()
        try:
            await conn.execute(
                f"INSERT INTO workflows ({_WORKFLOW_COLUMNS}) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)",
                workflow.id,
                workflow.name,
                workflow.description,
                workflow.workflow_type,
                workflow.entity_type,
                workflow.trigger_event,
                workflow.is_active,
                workflow.created_at,
            )
        finally:
            await conn.close()
        logger.info(f"Created workflow {workflow.id} ({workflow.name})")
        return workflow

    async def get_workflow(self, workflow_id: str) -> Workflow | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                f"SELECT {_WORKFLOW_COLUMNS} FROM workflows WHERE id = $1",
                workflow_id,
            )
        finally:
            await conn.close()
        if not row:
            return None
        return self._row_to_workflow(row)

    async def list_workflows(self) -> list[Workflow]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                f"SELECT {_WORKFLOW_COLUMNS} FROM workflows ORDER BY created_at DESC"
            )
        finally:
            await conn.close()
        return [self._row_to_workflow(r) for r in rows]

    async def update_workflow(self, workflow_id: str, patch: WorkflowPatch) -> Workflow:
        wf = apply_workflow_patch(await self._require_workflow(workflow_id), patch)
        conn = await self._connect()
        try:
            await conn.execute(
                """
                UPDATE workflows
                SET name = $1, description = $2, workflow_type = $3, entity_type = $4,
                    trigger_event = $5, is_active = $6
                WHERE id = $7
                """,
                wf.name,
                wf.description,
                wf.workflow_type,
                wf.entity_type,
                wf.trigger_event,
                wf.is_active,
                workflow_id,
            )
        finally:
            await conn.close()
        return wf

    async def delete_workflow(self, workflow_id: str) -> None:
        conn = await self._connect()
        try:
            status = await conn.execute("DELETE FROM workflows WHERE id = $1", workflow_id)
        finally:
            await conn.close()
        if status.endswith(" 0"):
            raise RecordNotFoundError(WORKFLOW_NOT_FOUND)
        logger.info(f"Deleted workflow {workflow_id}")

    async def list_steps(self, workflow_id: str) -> list[StepRecord]:
        await self._require_workflow(workflow_id)
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                "SELECT data FROM workflow_steps WHERE workflow_id = $1 ORDER BY row_id",
                workflow_id,
            )
        finally:
            await conn.close()
        return [parse_step(_load_json(r["data"])) for r in rows]

    async def create_step(
        self, workflow_id: str, step: StepRecord | Mapping[str, Any]
    ) -> StepRecord:
        await self._require_workflow(workflow_id)
        created = parse_step(step).model_copy(update={"id": new_id()})
        conn = await self._connect()
        try:
            await conn.execute(
                """
                INSERT INTO workflow_steps (id, workflow_id, step_type, step_number, sequence_group, data)
                VALUES ($1, $2, $3, $4, $5, $6::jsonb)
                """,
                created.id,
                workflow_id,
                created.step_type,
                created.step_number,
                created.sequence_group,
                created.model_dump_json(),
            )
        finally:
            await conn.close()
        logger.info(f"Created step {created.id} in workflow {workflow_id}")
        return created

    async def update_step(
        self, workflow_id: str, step_id: str, patch: StepPatch
    ) -> StepRecord:
        await self._require_workflow(workflow_id)
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT data FROM workflow_steps WHERE id = $1 AND workflow_id = $2",
                step_id,
                workflow_id,
            )
            if row is None:
                raise RecordNotFoundError(STEP_NOT_FOUND)
            updated = apply_step_patch(parse_step(_load_json(row["data"])), patch)
            await conn.execute(
                """
                UPDATE workflow_steps
                SET step_type = $1, step_number = $2, sequence_group = $3, data = $4::jsonb
                WHERE id = $5 AND workflow_id = $6
                """,
                updated.step_type,
                updated.step_number,
                updated.sequence_group,
                updated.model_dump_json(),
                step_id,
                workflow_id,
            )
        finally:
            await conn.close()
        logger.info(f"Updated step {step_id} in workflow {workflow_id}")
        return updated

    async def delete_step(self, workflow_id: str, step_id: str) -> None:
        await self._require_workflow(workflow_id)
        conn = await self._connect()
        try:
            status = await conn.execute(
                "DELETE FROM workflow_steps WHERE id = $1 AND workflow_id = $2",
                step_id,
                workflow_id,
            )
        finally:
            await conn.close()
        if status.endswith(" 0"):
            raise RecordNotFoundError(STEP_NOT_FOUND)
        logger.info(f"Deleted step {step_id} from workflow {workflow_id}")
