"""stacked update -- change a tracked branch's base, status, PR, or spec."""

from __future__ import annotations

import click

from stacked.cli.formatting import format_branch


@click.command()
@click.argument("name")
@click.option("--base", default=None, help="New base branch.")
@click.option(
    "--status",
    type=click.Choice(["active", "submitted", "merged"], case_sensitive=False),
    default=None,
    help="New status (forward only; use 'reopen' to go back to active).",
)
@click.option("--pr", "pr_number", type=int, default=None, help="Pull request number.")
@click.option("--spec", "spec_id", default=None, help="Spec this branch implements.")
@click.option("--base-tip", default=None, help="Base tip the branch was last rebased onto.")
@click.pass_context
def update(
    ctx: click.Context,
    name: str,
    base: str | None,
    status: str | None,
    pr_number: int | None,
    spec_id: str | None,
    base_tip: str | None,
) -> None:
    """Update fields of tracked branch NAME."""
    from stacked.cli import _finish, _stack_session
    from stacked.models.branch import BranchStatus
    from stacked.surface import UpdateRequest, run

    with _stack_session(ctx) as (stack, console):
        outcome = run(
            stack,
            UpdateRequest(
                name=name,
                base=base,
                status=BranchStatus(status.lower()) if status else None,
                pr_number=pr_number,
                spec_id=spec_id,
                base_tip=base_tip,
            ),
        )
        console.print(outcome.messages[0])
        format_branch(outcome.branches[0], console)
    _finish(ctx, outcome)
