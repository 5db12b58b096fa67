"""Command line interface for managing workflows and viewing their staged graphs."""

from __future__ import annotations

import asyncio
from typing import Optional, get_args

import typer

from stagegraph import AxisSpacing, build_graph, get_repository, group_steps, load_config
from stagegraph.models import ApproverType, StepPatch, Workflow, parse_step
from stagegraph.persistence import RecordNotFoundError

app = typer.Typer(help="CLI for stagegraph workflows")

# Command groups
workflow_app = typer.Typer(help="Commands for managing workflows")
step_app = typer.Typer(help="Commands for managing workflow steps")
graph_app = typer.Typer(help="Commands for viewing staged workflow graphs")

app.add_typer(workflow_app, name="workflow")
app.add_typer(step_app, name="step")
app.add_typer(graph_app, name="graph")


@app.callback()
def main() -> None:
    """stagegraph CLI entry point."""
    pass


def _fail(message: str) -> None:
    typer.echo(message)
    raise typer.Exit(code=1)


def _fmt(value: float) -> str:
    return f"{value:g}"


@workflow_app.command("list")
def workflow_list() -> None:
    """
    List all workflows, newest first.

    Example:
        stagegraph workflow list
        # Output: 3f2a...    Expense approval    approval    active
    """
    repo = get_repository()
    workflows = asyncio.run(repo.list_workflows())
    if not workflows:
        typer.echo("No workflows found")
        return
    for wf in workflows:
        state = "active" if wf.is_active else "inactive"
        typer.echo(f"{wf.id}\t{wf.name}\t{wf.workflow_type}\t{state}")


@workflow_app.command("show")
def workflow_show(workflow_id: str) -> None:
    """
    Show a workflow and its steps in creation order.

    Args:
        workflow_id: Workflow ID to inspect (get from 'workflow list')
    """
    repo = get_repository()
    wf = asyncio.run(repo.get_workflow(workflow_id))
    if wf is None:
        _fail("Workflow not found")
    typer.echo(f"Workflow {wf.id}: {wf.name} ({wf.workflow_type})")
    if wf.description:
        typer.echo(f"Description: {wf.description}")
    if wf.entity_type or wf.trigger_event:
        typer.echo(f"Entity: {wf.entity_type or '-'}  Trigger: {wf.trigger_event or '-'}")
    steps = asyncio.run(repo.list_steps(workflow_id))
    if not steps:
        typer.echo("No steps defined")
    for step in steps:
        typer.echo(
            f"- {step.display_name}: {step.step_type} "
            f"(group {step.sequence_group}, step {step.step_number})"
        )


@workflow_app.command("create")
def workflow_create(
    name: str,
    workflow_type: str = typer.Option("approval", "--type", "-t"),
    description: Optional[str] = None,
    entity_type: str = "",
    trigger_event: Optional[str] = None,
    inactive: bool = typer.Option(False, help="Create the workflow disabled"),
) -> None:
    """
    Create a new workflow and print its id.

    Example:
        stagegraph workflow create "Expense approval" --entity-type expense
    """
    try:
        workflow = Workflow(
            name=name,
            workflow_type=workflow_type,
            description=description,
            entity_type=entity_type,
            trigger_event=trigger_event,
            is_active=not inactive,
        )
    except ValueError as exc:
        typer.secho(f"Invalid workflow: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    repo = get_repository()
    created = asyncio.run(repo.create_workflow(workflow))
    typer.echo(f"Created workflow {created.id}")


@workflow_app.command("delete")
def workflow_delete(workflow_id: str) -> None:
    """Delete a workflow together with its steps."""
    repo = get_repository()
    try:
        asyncio.run(repo.delete_workflow(workflow_id))
    except RecordNotFoundError as exc:
        _fail(str(exc))
    typer.echo(f"Deleted workflow {workflow_id}")


@step_app.command("list")
def step_list(workflow_id: str) -> None:
    """List the steps of a workflow as stored, tab separated."""
    repo = get_repository()
    try:
        steps = asyncio.run(repo.list_steps(workflow_id))
    except RecordNotFoundError as exc:
        _fail(str(exc))
    if not steps:
        typer.echo("No steps defined")
        return
    for step in steps:
        flags = ",".join(
            flag
            for flag, enabled in (
                ("parallel", step.is_parallel),
                ("required", step.is_required),
            )
            if enabled
        )
        typer.echo(
            f"{step.id}\t{step.display_name}\t{step.step_type}\t"
            f"{step.sequence_group}\t{step.step_number}\t{flags or '-'}"
        )


@step_app.command("add")
def step_add(
    workflow_id: str,
    step_name: str,
    step_type: str = typer.Option("approval", "--type", "-t"),
    group: Optional[int] = typer.Option(None, "--group", "-g", help="Sequence group (stage)"),
    number: Optional[int] = typer.Option(None, "--number", "-n", help="Step number within the stage"),
    parallel: bool = typer.Option(False, help="Lay the step out beside its stage siblings"),
    optional: bool = typer.Option(False, help="Mark the step as not required"),
    approver_type: Optional[str] = None,
    condition: Optional[str] = typer.Option(None, help="Condition expression for condition steps"),
) -> None:
    """
    Add a step to a workflow.

    Without --group/--number the step is appended as a new stage, numbered
    one past the current step count.

    Example:
        stagegraph step add <workflow> "Manager approval" --group 1 --number 1
        stagegraph step add <workflow> "Finance review" -g 2 -n 1 --parallel
    """
    if approver_type is not None and approver_type not in get_args(ApproverType):
        _fail(f"Invalid approver type: {approver_type}")
    repo = get_repository()
    try:
        existing = asyncio.run(repo.list_steps(workflow_id))
    except RecordNotFoundError as exc:
        _fail(str(exc))
    next_number = len(existing) + 1
    data = {
        "step_name": step_name,
        "step_type": step_type,
        "sequence_group": next_number if group is None else group,
        "step_number": next_number if number is None else number,
        "is_parallel": parallel,
        "is_required": not optional,
        "approver_type": approver_type,
        "condition_expression": condition,
    }
    try:
        step = parse_step({key: value for key, value in data.items() if value is not None})
    except ValueError as exc:
        typer.secho(f"Invalid step: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    created = asyncio.run(repo.create_step(workflow_id, step))
    typer.echo(f"Created step {created.id}")


@step_app.command("update")
def step_update(
    workflow_id: str,
    step_id: str,
    step_name: Optional[str] = typer.Option(None, "--name"),
    step_type: Optional[str] = typer.Option(None, "--type", "-t"),
    group: Optional[int] = typer.Option(None, "--group", "-g"),
    number: Optional[int] = typer.Option(None, "--number", "-n"),
    parallel: Optional[bool] = typer.Option(None, "--parallel/--no-parallel"),
    required: Optional[bool] = typer.Option(None, "--required/--optional"),
    approver_type: Optional[str] = None,
    condition: Optional[str] = None,
) -> None:
    """Update selected fields of a step; omitted options are left unchanged."""
    fields = {
        "step_name": step_name,
        "step_type": step_type,
        "sequence_group": group,
        "step_number": number,
        "is_parallel": parallel,
        "is_required": required,
        "approver_type": approver_type,
        "condition_expression": condition,
    }
    repo = get_repository()
    try:
        patch = StepPatch(**{key: value for key, value in fields.items() if value is not None})
        updated = asyncio.run(repo.update_step(workflow_id, step_id, patch))
    except RecordNotFoundError as exc:
        _fail(str(exc))
    except ValueError as exc:
        typer.secho(f"Invalid update: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(f"Updated step {updated.id}")


@step_app.command("delete")
def step_delete(workflow_id: str, step_id: str) -> None:
    """Delete a step from a workflow."""
    repo = get_repository()
    try:
        asyncio.run(repo.delete_step(workflow_id, step_id))
    except RecordNotFoundError as exc:
        _fail(str(exc))
    typer.echo(f"Deleted step {step_id}")


@graph_app.command("show")
def graph_show(
    workflow_id: str,
    primary: Optional[float] = typer.Option(None, help="Spacing between stages"),
    secondary: Optional[float] = typer.Option(None, help="Spacing between parallel steps"),
    select: Optional[str] = typer.Option(None, help="Step id to mark as selected"),
) -> None:
    """
    Print the staged graph of a workflow.

    Lists each stage with its node coordinates, then every precedence edge.

    Example:
        stagegraph graph show <workflow> --primary 1 --secondary 1
        # Output: Stage 1 (group 1)
        #           - Manager approval [approval] @ (0, 0)
        #         Stage 2 (group 2, parallel)
        #           - Finance review [approval] @ (1, 1)
        #           - Legal review [approval] @ (1, 2)
        #         Edges:
        #           Manager approval -> Finance review
        #           Manager approval -> Legal review
    """
    repo = get_repository()
    try:
        steps = asyncio.run(repo.list_steps(workflow_id))
    except RecordNotFoundError as exc:
        _fail(str(exc))

    layout = load_config().layout
    spacing = AxisSpacing(
        primary=layout.primary_spacing if primary is None else primary,
        secondary=layout.secondary_spacing if secondary is None else secondary,
        fan_out_primary=layout.fan_out_primary,
        cumulative_base=layout.cumulative_base,
    )
    graph = build_graph(steps, selection=select, spacing=spacing)
    if graph.is_empty:
        typer.echo("No steps defined")
        return

    names = {node.id: node.payload.display_name for node in graph.nodes}
    for index, stage in enumerate(group_steps(steps), start=1):
        label = f"group {stage.group_key}, parallel" if stage.is_parallel else f"group {stage.group_key}"
        typer.echo(f"Stage {index} ({label})")
        for step in stage.steps:
            node = graph.node(step.id)
            marker = " *" if node.selected else ""
            typer.echo(
                f"  - {names[node.id]} [{step.step_type}] "
                f"@ ({_fmt(node.position.x)}, {_fmt(node.position.y)}){marker}"
            )
    if graph.edges:
        typer.echo("Edges:")
        for edge in graph.edges:
            typer.echo(f"  {names[edge.source]} -> {names[edge.target]}")
