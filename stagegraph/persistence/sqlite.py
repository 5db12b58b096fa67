"""SQLite implementation of the workflow repository."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping

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


class SQLiteWorkflowRepository(WorkflowRepository):
    """Persist workflows and steps using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflows (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                description TEXT,
                workflow_type TEXT NOT NULL,
                entity_type TEXT NOT NULL DEFAULT '',
                trigger_event TEXT,
                is_active INTEGER NOT NULL DEFAULT 1,
                created_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_steps (
                row_id INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                workflow_id TEXT NOT NULL REFERENCES workflows(id) ON DELETE CASCADE,
                step_type TEXT NOT NULL,
                step_number INTEGER NOT NULL DEFAULT 0,
                sequence_group INTEGER NOT NULL DEFAULT 0,
                data TEXT NOT NULL
            )
            """
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_workflow_steps_workflow_id ON workflow_steps(workflow_id)"
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()
        return cur.rowcount

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    @staticmethod
    def _row_to_workflow(row: sqlite3.Row) -> Workflow:
        return Workflow(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            workflow_type=row["workflow_type"],
            entity_type=row["entity_type"],
            trigger_event=row["trigger_event"],
            is_active=bool(row["is_active"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    async def _require_workflow(self, workflow_id: str) -> Workflow:
        wf = await self.get_workflow(workflow_id)
        if wf is None:
            raise RecordNotFoundError(WORKFLOW_NOT_FOUND)
        return wf

    async def _get_step(self, workflow_id: str, step_id: str) -> StepRecord:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT data FROM workflow_steps WHERE id = ? AND workflow_id = ?",
            step_id,
            workflow_id,
        )
        if row is None:
            raise RecordNotFoundError(STEP_NOT_FOUND)
        return parse_step(json.loads(row["data"]))

    # ------------------------------------------------------------------
    # Repository API
    async def create_workflow(self, workflow: Workflow) -> Workflow:
        await asyncio.to_thread(
            self._execute,
            f"INSERT INTO workflows ({_WORKFLOW_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            workflow.id,
            workflow.name,
            workflow.description,
            workflow.workflow_type,
            workflow.entity_type,
            workflow.trigger_event,
            int(workflow.is_active),
            workflow.created_at.isoformat(),
        )
        logger.info(f"Created workflow {workflow.id} ({workflow.name})")
        return workflow

    async def get_workflow(self, workflow_id: str) -> Workflow | None:
        row = await asyncio.to_thread(
            self._fetchone,
            f"SELECT {_WORKFLOW_COLUMNS} FROM workflows WHERE id = ?",
            workflow_id,
        )
        if not row:
            return None
        return self._row_to_workflow(row)

    async def list_workflows(self) -> list[Workflow]:
        rows = await asyncio.to_thread(
            self._fetchall,
            f"SELECT {_WORKFLOW_COLUMNS} FROM workflows ORDER BY created_at DESC",
        )
        return [self._row_to_workflow(row) for row in rows]

    async def update_workflow(self, workflow_id: str, patch: WorkflowPatch) -> Workflow:
        wf = apply_workflow_patch(await self._require_workflow(workflow_id), patch)
        await asyncio.to_thread(
            self._execute,
            """
            UPDATE workflows
            SET name = ?, description = ?, workflow_type = ?, entity_type = ?,
                trigger_event = ?, is_active = ?
            WHERE id = ?
            """,
            wf.name,
            wf.description,
            wf.workflow_type,
            wf.entity_type,
            wf.trigger_event,
            int(wf.is_active),
            workflow_id,
        )
        return wf

    async def delete_workflow(self, workflow_id: str) -> None:
        await self._require_workflow(workflow_id)
        await asyncio.to_thread(
            self._execute, "DELETE FROM workflow_steps WHERE workflow_id = ?", workflow_id
        )
        await asyncio.to_thread(
            self._execute, "DELETE FROM workflows WHERE id = ?", workflow_id
        )
        logger.info(f"Deleted workflow {workflow_id}")

    async def list_steps(self, workflow_id: str) -> list[StepRecord]:
        await self._require_workflow(workflow_id)
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT data FROM workflow_steps WHERE workflow_id = ? ORDER BY row_id",
            workflow_id,
        )
        return [parse_step(json.loads(row["data"])) for row in rows]

    async def create_step(
        self, workflow_id: str, step: StepRecord | Mapping[str, Any]
    ) -> StepRecord:
        await self._require_workflow(workflow_id)
        created = parse_step(step).model_copy(update={"id": new_id()})
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO workflow_steps (id, workflow_id, step_type, step_number, sequence_group, data)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            created.id,
            workflow_id,
            created.step_type,
            created.step_number,
            created.sequence_group,
            created.model_dump_json(),
        )
        logger.info(f"Created step {created.id} in workflow {workflow_id}")
        return created

    async def update_step(
        self, workflow_id: str, step_id: str, patch: StepPatch
    ) -> StepRecord:
        await self._require_workflow(workflow_id)
        updated = apply_step_patch(await self._get_step(workflow_id, step_id), patch)
        await asyncio.to_thread(
            self._execute,
            """
            UPDATE workflow_steps
            SET step_type = ?, step_number = ?, sequence_group = ?, data = ?
            WHERE id = ? AND workflow_id = ?
            """,
            updated.step_type,
            updated.step_number,
            updated.sequence_group,
            updated.model_dump_json(),
            step_id,
            workflow_id,
        )
        logger.info(f"Updated step {step_id} in workflow {workflow_id}")
        return updated

    async def delete_step(self, workflow_id: str, step_id: str) -> None:
        await self._require_workflow(workflow_id)
        deleted = await asyncio.to_thread(
            self._execute,
            "DELETE FROM workflow_steps WHERE id = ? AND workflow_id = ?",
            step_id,
            workflow_id,
        )
        if not deleted:
            raise RecordNotFoundError(STEP_NOT_FOUND)
        logger.info(f"Deleted step {step_id} from workflow {workflow_id}")

    def close(self) -> None:
        self._conn.close()
