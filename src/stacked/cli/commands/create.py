"""stacked create -- track a new branch stacked on a base."""

from __future__ import annotations

import click

from stacked.cli.formatting import format_branch


@click.command()
@click.argument("name")
@click.option("--base", default=None, help="Branch to stack on (default: trunk).")
@click.option("--spec", "spec_id", default=None, help="Spec this branch implements.")
@click.option("--base-tip", default=None, help="Current tip of the base (default: from --facts).")
@click.option(
    "--suggest-pr/--no-suggest-pr",
    default=True,
    help="Ask the host to open a PR for the base branch when it has none.",
)
@click.pass_context
def create(
    ctx: click.Context,
    name: str,
    base: str | None,
    spec_id: str | None,
    base_tip: str | None,
    suggest_pr: bool,
) -> None:
    """Track NAME as a branch stacked on --base.

    When the base is a tracked, active branch with a spec and no PR yet,
    exits 2 with a pr-suggestion envelope on stderr.
    """
    from stacked.cli import _finish, _stack_session
    from stacked.surface import CreateRequest, run

    with _stack_session(ctx) as (stack, console):
        outcome = run(
            stack,
            CreateRequest(
                name=name,
                base=base,
                spec_id=spec_id,
                base_tip=base_tip,
                suggest_pr=suggest_pr,
            ),
        )
        console.print(f"[green]{outcome.messages[0]}[/green]")
        format_branch(outcome.branches[0], console)
        if outcome.envelope is not None:
            console.print(
                f"[dim]Suggesting a PR for '{outcome.envelope.branch}'; "
                f"see stderr.[/dim]"
            )
    _finish(ctx, outcome)
