import pytest

from stagegraph.models import (
    INT_MAX,
    INT_MIN,
    ApprovalStep,
    ConditionStep,
    StepPatch,
    Workflow,
    WorkflowPatch,
)
from stagegraph.persistence import (
    InMemoryWorkflowRepository,
    RecordNotFoundError,
    SQLiteWorkflowRepository,
)


@pytest.fixture(params=["memory", "sqlite"])
def repo(request, tmp_path):
    if request.param == "memory":
        return InMemoryWorkflowRepository()
    return SQLiteWorkflowRepository(tmp_path / "wf.db")


@pytest.mark.asyncio
async def test_repository_workflow_crud(repo):
    wf = await repo.create_workflow(
        Workflow(name="Expenses", entity_type="expense", trigger_event="submitted")
    )

    fetched = await repo.get_workflow(wf.id)
    assert fetched is not None
    assert fetched.name == "Expenses"
    assert fetched.entity_type == "expense"
    assert fetched.trigger_event == "submitted"
    assert fetched.is_active is True

    updated = await repo.update_workflow(wf.id, WorkflowPatch(is_active=False))
    assert updated.is_active is False
    assert (await repo.get_workflow(wf.id)).is_active is False

    all_wfs = await repo.list_workflows()
    assert any(w.id == wf.id for w in all_wfs)

    await repo.delete_workflow(wf.id)
    assert await repo.get_workflow(wf.id) is None
    with pytest.raises(RecordNotFoundError, match="Workflow not found"):
        await repo.list_steps(wf.id)


@pytest.mark.asyncio
async def test_repository_step_crud(repo):
    wf = await repo.create_workflow(Workflow(name="Purchase"))

    first = await repo.create_step(
        wf.id, ApprovalStep(step_name="Manager", sequence_group=1, step_number=1)
    )
    second = await repo.create_step(
        wf.id,
        {
            "step_name": "Budget check",
            "step_type": "condition",
            "sequence_group": 2,
            "step_number": 1,
            "condition_expression": "amount > 500",
        },
    )

    assert first.id and second.id and first.id != second.id
    steps = await repo.list_steps(wf.id)
    assert [s.id for s in steps] == [first.id, second.id]
    assert isinstance(steps[1], ConditionStep)
    assert steps[1].condition_expression == "amount > 500"

    updated = await repo.update_step(wf.id, first.id, StepPatch(is_parallel=True, step_number=4))
    assert updated.is_parallel is True
    assert updated.step_number == 4
    reloaded = {s.id: s for s in await repo.list_steps(wf.id)}
    assert reloaded[first.id].is_parallel is True
    assert reloaded[first.id].step_name == "Manager"

    await repo.delete_step(wf.id, first.id)
    assert [s.id for s in await repo.list_steps(wf.id)] == [second.id]

    with pytest.raises(RecordNotFoundError, match="Workflow not found"):
        await repo.update_step("missing", second.id, StepPatch(step_name="x"))
    with pytest.raises(RecordNotFoundError, match="Workflow not found"):
        await repo.delete_step("missing", second.id)
    assert [s.id for s in await repo.list_steps(wf.id)] == [second.id]


@pytest.mark.asyncio
async def test_repository_missing_records(repo):
    wf = await repo.create_workflow(Workflow(name="Leave"))

    with pytest.raises(RecordNotFoundError, match="Workflow not found"):
        await repo.create_step("missing", ApprovalStep(step_name="x"))
    with pytest.raises(RecordNotFoundError, match="Workflow step not found"):
        await repo.update_step(wf.id, "missing", StepPatch(step_name="y"))
    with pytest.raises(RecordNotFoundError, match="Workflow step not found"):
        await repo.delete_step(wf.id, "missing")
    with pytest.raises(RecordNotFoundError):
        await repo.delete_workflow("missing")


@pytest.mark.asyncio
async def test_repository_stores_out_of_range_ordering_keys(repo):
    wf = await repo.create_workflow(Workflow(name="Bulk import"))

    created = await repo.create_step(wf.id, {"step_type": "delay", "sequence_group": "1e30"})
    updated = await repo.update_step(wf.id, created.id, StepPatch(step_number=-(2**40)))

    assert created.sequence_group == INT_MAX
    assert updated.step_number == INT_MIN
    [stored] = await repo.list_steps(wf.id)
    assert (stored.sequence_group, stored.step_number) == (INT_MAX, INT_MIN)


@pytest.mark.asyncio
async def test_repository_rejects_empty_update(repo):
    wf = await repo.create_workflow(Workflow(name="Leave"))
    step = await repo.create_step(wf.id, ApprovalStep(step_name="x"))

    with pytest.raises(ValueError, match="No valid fields to update"):
        await repo.update_step(wf.id, step.id, StepPatch())


@pytest.mark.asyncio
async def test_deleting_workflow_removes_steps(repo):
    wf = await repo.create_workflow(Workflow(name="Onboarding"))
    await repo.create_step(wf.id, ApprovalStep(step_name="x"))
    await repo.delete_workflow(wf.id)

    again = await repo.create_workflow(Workflow(id=wf.id, name="Onboarding"))
    assert await repo.list_steps(again.id) == []


@pytest.mark.asyncio
async def test_sqlite_repository_survives_reopen(tmp_path):
    db_path = tmp_path / "wf.db"
    repo = SQLiteWorkflowRepository(db_path)
    wf = await repo.create_workflow(Workflow(name="Travel"))
    step = await repo.create_step(wf.id, ApprovalStep(step_name="Lead", approver_type="role"))
    repo.close()

    reopened = SQLiteWorkflowRepository(db_path)
    steps = await reopened.list_steps(wf.id)
    assert [s.id for s in steps] == [step.id]
    assert steps[0].approver_type == "role"
    assert (await reopened.get_workflow(wf.id)).created_at == wf.created_at
