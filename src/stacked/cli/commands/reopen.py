"""stacked reopen -- move a submitted or merged branch back to active."""

from __future__ import annotations

import click


@click.command()
@click.argument("name")
@click.pass_context
def reopen(ctx: click.Context, name: str) -> None:
    """Reopen tracked branch NAME (submitted/merged -> active)."""
    from stacked.cli import _finish, _stack_session
    from stacked.surface import ReopenRequest, run

    with _stack_session(ctx) as (stack, console):
        outcome = run(stack, ReopenRequest(name=name))
        console.print(f"[green]{outcome.messages[0]}[/green]")
    _finish(ctx, outcome)
