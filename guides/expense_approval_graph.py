"""Build an expense approval workflow and print its staged layout."""

import asyncio

from stagegraph import WorkflowBuilder, Workflow, get_repository
from stagegraph.models import ApprovalStep, ConditionStep, NotificationStep


async def main():
    """Expense approval example."""
    repository = get_repository()
    workflow = await repository.create_workflow(
        Workflow(name="Expense approval", entity_type="expense", trigger_event="submitted")
    )

    # Open the workflow in a builder session
    builder = WorkflowBuilder(
        repository=repository,
        on_step_selected=lambda step: print(f"✏️  Editing {step.display_name}"),
    )
    await builder.open_workflow(workflow.id)

    # Stage 1: the line manager signs off
    await builder.add_step(
        ApprovalStep(step_name="Line manager", approver_type="manager", sequence_group=1, step_number=1)
    )
    # Stage 2: finance and compliance review side by side
    await builder.add_step(
        ApprovalStep(step_name="Finance", approver_type="department", sequence_group=2, step_number=1, is_parallel=True)
    )
    await builder.add_step(
        ApprovalStep(step_name="Compliance", approver_type="role", sequence_group=2, step_number=2, is_parallel=True)
    )
    # Stage 3: large claims need a director
    await builder.add_step(
        ConditionStep(step_name="Over limit?", condition_expression="amount > 5000", sequence_group=3, step_number=1)
    )
    await builder.add_step(NotificationStep(step_name="Notify submitter", sequence_group=4, step_number=1))

    graph = builder.graph
    for node in graph.nodes:
        print(f"📍 {node.payload.display_name:<18} ({node.position.x:g}, {node.position.y:g})")
    for edge in graph.edges:
        print(f"🔗 {graph.node(edge.source).payload.display_name} -> {graph.node(edge.target).payload.display_name}")

    # Clicking a node hands its id back to the builder
    graph.nodes[1].click()
    print(f"✅ Selected: {builder.selected_step_id}")


if __name__ == "__main__":
    asyncio.run(main())
