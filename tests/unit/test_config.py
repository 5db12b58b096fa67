"""Tests for configuration loading."""

import sqlite3

import pytest

import stagegraph.persistence as persistence
from stagegraph.config import load_config
from stagegraph.persistence import (
    InMemoryWorkflowRepository,
    SQLiteWorkflowRepository,
    get_repository,
)


def test_load_config_defaults(tmp_path, monkeypatch):
    monkeypatch.setenv("STAGEGRAPH_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.delenv("STAGEGRAPH_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)

    config = load_config()
    assert config.layout.primary_spacing == 300
    assert config.layout.secondary_spacing == 150
    assert config.layout.cumulative_base is True
    assert config.database_url is None


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
layout:
  primary_spacing: 1
  secondary_spacing: 2
  cumulative_base: false
database_url: sqlite://ignored.db
"""
    )
    monkeypatch.setenv("STAGEGRAPH_CONFIG", str(config_path))
    monkeypatch.setenv("STAGEGRAPH_DATABASE_URL", "sqlite://override.db")

    config = load_config()
    assert config.layout.primary_spacing == 1
    assert config.layout.secondary_spacing == 2
    assert config.layout.cumulative_base is False
    assert config.database_url == "sqlite://override.db"


def test_get_repository_uses_config(tmp_path, monkeypatch):
    db_path = tmp_path / "wf.db"
    config_path = tmp_path / "config.yaml"
    config_path.write_text(f"database_url: sqlite://{db_path}\n")
    monkeypatch.setenv("STAGEGRAPH_CONFIG", str(config_path))
    monkeypatch.delenv("STAGEGRAPH_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setattr(persistence, "_repository_instance", None)

    repo = get_repository()
    assert isinstance(repo, SQLiteWorkflowRepository)
    assert repo.db_path == str(db_path)
    assert get_repository() is repo


def test_get_repository_defaults_to_memory(tmp_path, monkeypatch):
    monkeypatch.setenv("STAGEGRAPH_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.delenv("STAGEGRAPH_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setattr(persistence, "_repository_instance", None)

    assert isinstance(get_repository(), InMemoryWorkflowRepository)


def test_get_repository_rejects_unknown_backend(monkeypatch):
    monkeypatch.setattr(persistence, "_repository_instance", None)
    try:
        get_repository("mysql://localhost/db")
    except ValueError as exc:
        assert "Unsupported database backend" in str(exc)
    else:
        raise AssertionError("expected ValueError")


def test_get_repository_closes_replaced_sqlite_connection(tmp_path, monkeypatch):
    monkeypatch.setattr(persistence, "_repository_instance", None)

    first = get_repository(f"sqlite://{tmp_path / 'first.db'}")
    second = get_repository(f"sqlite://{tmp_path / 'second.db'}")

    assert second is not first
    with pytest.raises(sqlite3.ProgrammingError):
        first._conn.execute("SELECT 1")
    second._conn.execute("SELECT 1")
    second.close()
