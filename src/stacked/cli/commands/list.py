"""stacked list -- show tracked branches in dependency order."""

from __future__ import annotations

import json

import click

from stacked.cli.formatting import format_branch_tree


@click.command("list")
@click.option("--spec", "spec_id", default=None, help="Only branches implementing this spec.")
@click.option("--json", "as_json", is_flag=True, help="Print records as a JSON array.")
@click.pass_context
def list_branches(ctx: click.Context, spec_id: str | None, as_json: bool) -> None:
    """List tracked branches, bases before the branches stacked on them."""
    from stacked.cli import _finish, _stack_session
    from stacked.surface import ListRequest, run

    with _stack_session(ctx) as (stack, console):
        outcome = run(stack, ListRequest(spec_id=spec_id))
        if as_json:
            records = [b.model_dump(mode="json", by_alias=True) for b in outcome.branches]
            click.echo(json.dumps(records, indent=2))
        else:
            format_branch_tree(outcome.branches, stack.load().trunk, console)
    _finish(ctx, outcome)
