"""stacked status -- show the health of every tracked branch."""

from __future__ import annotations

import json

import click

from stacked.cli.formatting import format_health


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Print reports as a JSON array.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show branch health: needs-rebase, orphaned, and proposed transitions.

    Warnings never change the exit code; status only reads.
    """
    from stacked.cli import _finish, _stack_session
    from stacked.surface import StatusRequest, run

    with _stack_session(ctx) as (stack, console):
        outcome = run(stack, StatusRequest())
        if as_json:
            click.echo(json.dumps([r.to_dict() for r in outcome.reports.values()], indent=2))
        else:
            format_health(outcome.reports, console)
    _finish(ctx, outcome)
