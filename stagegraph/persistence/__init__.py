"""Persistence layer for stagegraph workflows and steps."""

from __future__ import annotations

import os
from typing import Optional

from ..config import StagegraphConfig, load_config
from .inmemory import InMemoryWorkflowRepository
from .repository import RecordNotFoundError, WorkflowRepository
from .sqlite import SQLiteWorkflowRepository

try:  # pragma: no cover - optional dependency
    from .postgres import PostgresWorkflowRepository
except ImportError:  # pragma: no cover - optional dependency
    PostgresWorkflowRepository = None  # type: ignore

_repository_instance: WorkflowRepository | None = None


def _replace_instance(repository: WorkflowRepository) -> WorkflowRepository:
    global _repository_instance
    previous = _repository_instance
    if isinstance(previous, SQLiteWorkflowRepository) and previous is not repository:
        previous.close()
    _repository_instance = repository
    return repository


def get_repository(
    database_url: Optional[str] = None, config: Optional[StagegraphConfig] = None
) -> WorkflowRepository:
    """Factory function to obtain a workflow repository.

    The repository backend is selected based on ``database_url`` which can be
    provided explicitly, via environment variable ``STAGEGRAPH_DATABASE_URL`` or
    ``DATABASE_URL``, or from loaded configuration. When no database is
    configured, an in-memory repository is returned.
    """

    if _repository_instance is not None and database_url is None and config is None:
        return _repository_instance

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("STAGEGRAPH_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or getattr(config, "database_url", None)
    )

    if not database_url:
        return _replace_instance(InMemoryWorkflowRepository())

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        return _replace_instance(SQLiteWorkflowRepository(path))
    if database_url.startswith("postgres://") or database_url.startswith(
        "postgresql://"
    ):
        if PostgresWorkflowRepository is None:
            raise RuntimeError("Postgres support not available")
        return _replace_instance(PostgresWorkflowRepository(database_url))
    raise ValueError(f"Unsupported database backend: {database_url}")


__all__ = [
    "RecordNotFoundError",
    "WorkflowRepository",
    "SQLiteWorkflowRepository",
    "PostgresWorkflowRepository",
    "InMemoryWorkflowRepository",
    "get_repository",
]
