import asyncio

import pytest
from typer.testing import CliRunner

import stagegraph.persistence as persistence
from stagegraph.cli import app
from stagegraph.models import ApprovalStep, Workflow
from stagegraph.persistence import InMemoryWorkflowRepository


@pytest.fixture(autouse=True)
def _no_config_file(tmp_path, monkeypatch):
    monkeypatch.setenv("STAGEGRAPH_CONFIG", str(tmp_path / "missing.yaml"))


def _setup_repo() -> InMemoryWorkflowRepository:
    repo = InMemoryWorkflowRepository()
    persistence._repository_instance = repo
    return repo


def _seed_example(repo: InMemoryWorkflowRepository) -> Workflow:
    wf = asyncio.run(repo.create_workflow(Workflow(name="Expenses")))
    for name, seq, num, parallel in (
        ("Submit", 1, 1, False),
        ("Finance", 2, 1, True),
        ("Legal", 2, 2, True),
    ):
        asyncio.run(
            repo.create_step(
                wf.id,
                ApprovalStep(
                    step_name=name, sequence_group=seq, step_number=num, is_parallel=parallel
                ),
            )
        )
    return wf


def test_workflow_list_and_create():
    repo = _setup_repo()
    runner = CliRunner()

    result = runner.invoke(app, ["workflow", "list"])
    assert result.exit_code == 0
    assert "No workflows found" in result.stdout

    result = runner.invoke(
        app, ["workflow", "create", "Purchase", "--type", "automation", "--entity-type", "po"]
    )
    assert result.exit_code == 0, result.stdout
    workflows = asyncio.run(repo.list_workflows())
    assert len(workflows) == 1
    assert workflows[0].workflow_type == "automation"
    assert workflows[0].id in result.stdout

    result = runner.invoke(app, ["workflow", "list"])
    assert "Purchase" in result.stdout
    assert "active" in result.stdout


def test_workflow_create_rejects_unknown_type():
    _setup_repo()
    result = CliRunner().invoke(app, ["workflow", "create", "Bad", "--type", "batch"])
    assert result.exit_code == 1
    assert "Invalid workflow" in result.stdout


def test_workflow_show_details_and_missing():
    repo = _setup_repo()
    wf = _seed_example(repo)
    runner = CliRunner()

    result = runner.invoke(app, ["workflow", "show", wf.id])
    assert result.exit_code == 0, result.stdout
    assert "Expenses" in result.stdout
    assert "Finance" in result.stdout

    result_missing = runner.invoke(app, ["workflow", "show", "missing-id"])
    assert result_missing.exit_code == 1
    assert "Workflow not found" in result_missing.stdout


def test_step_add_update_delete():
    repo = _setup_repo()
    wf = asyncio.run(repo.create_workflow(Workflow(name="Leave")))
    runner = CliRunner()

    result = runner.invoke(app, ["step", "add", wf.id, "Manager"])
    assert result.exit_code == 0, result.stdout
    result = runner.invoke(
        app,
        ["step", "add", wf.id, "Gate", "--type", "condition", "--condition", "days > 5"],
    )
    assert result.exit_code == 0, result.stdout

    steps = asyncio.run(repo.list_steps(wf.id))
    assert [(s.sequence_group, s.step_number) for s in steps] == [(1, 1), (2, 2)]
    assert steps[1].condition_expression == "days > 5"

    result = runner.invoke(
        app, ["step", "update", wf.id, steps[0].id, "--parallel", "--group", "2"]
    )
    assert result.exit_code == 0, result.stdout
    updated = asyncio.run(repo.list_steps(wf.id))[0]
    assert updated.is_parallel is True
    assert updated.sequence_group == 2

    result = runner.invoke(app, ["step", "update", wf.id, steps[0].id])
    assert result.exit_code == 1
    assert "No valid fields to update" in result.stdout

    result = runner.invoke(app, ["step", "delete", wf.id, steps[0].id])
    assert result.exit_code == 0
    assert len(asyncio.run(repo.list_steps(wf.id))) == 1

    result = runner.invoke(app, ["step", "delete", wf.id, "missing"])
    assert result.exit_code == 1
    assert "Workflow step not found" in result.stdout


def test_graph_show_prints_stages_and_edges():
    repo = _setup_repo()
    wf = _seed_example(repo)

    result = CliRunner().invoke(
        app, ["graph", "show", wf.id, "--primary", "1", "--secondary", "1"]
    )

    assert result.exit_code == 0, result.stdout
    output = result.stdout
    assert "Stage 1 (group 1)" in output
    assert "Stage 2 (group 2, parallel)" in output
    assert "Submit [approval] @ (0, 0)" in output
    assert "Finance [approval] @ (1, 1)" in output
    assert "Legal [approval] @ (1, 2)" in output
    assert "Submit -> Finance" in output
    assert "Submit -> Legal" in output


def test_graph_show_empty_and_missing():
    repo = _setup_repo()
    wf = asyncio.run(repo.create_workflow(Workflow(name="Empty")))
    runner = CliRunner()

    result = runner.invoke(app, ["graph", "show", wf.id])
    assert result.exit_code == 0
    assert "No steps defined" in result.stdout

    result = runner.invoke(app, ["graph", "show", "missing"])
    assert result.exit_code == 1
    assert "Workflow not found" in result.stdout


def test_step_add_rejects_unknown_approver_type():
    repo = _setup_repo()
    wf = asyncio.run(repo.create_workflow(Workflow(name="Leave")))

    result = CliRunner().invoke(app, ["step", "add", wf.id, "Lead", "--approver-type", "team"])

    assert result.exit_code == 1
    assert "Invalid approver type: team" in result.stdout
    assert asyncio.run(repo.list_steps(wf.id)) == []
