"""stacked import -- track branches that exist in version control but not here."""

from __future__ import annotations

import click

from stacked.cli.formatting import format_error, format_import_plan
from stacked.models.contract import EXIT_ERROR


def _parse_batch(entries: tuple[str, ...]) -> dict[str, str | None]:
    """Parse ``NAME:SPEC`` (or bare ``NAME``) selections."""
    selections: dict[str, str | None] = {}
    for entry in entries:
        name, _, spec_id = entry.partition(":")
        if not name:
            raise click.BadParameter(f"'{entry}' has no branch name", param_hint="--batch")
        selections[name] = spec_id or None
    return selections


@click.command("import")
@click.option("--include", default=None, help="Only consider branch names matching this glob.")
@click.option(
    "--batch",
    "batch",
    multiple=True,
    metavar="NAME[:SPEC]",
    help="Import NAME (linked to SPEC) without prompting.  Repeatable.",
)
@click.option("--batch-all", is_flag=True, help="Import every planned branch without prompting.")
@click.option("--spec", "spec_id", default=None, help="Spec to link with --batch-all.")
@click.pass_context
def import_branches(
    ctx: click.Context,
    include: str | None,
    batch: tuple[str, ...],
    batch_all: bool,
    spec_id: str | None,
) -> None:
    """Infer bases for untracked branches from their upstream tracking refs.

    Without --batch/--batch-all, exits 3 with an import-prompt envelope on
    stderr so the host can ask which branches to import.  Requires --facts.
    """
    from stacked.cli import _finish, _stack_session
    from stacked.surface import ImportRequest, run

    if batch and batch_all:
        raise click.UsageError("Use either --batch or --batch-all, not both.")
    if spec_id is not None and not batch_all:
        raise click.UsageError("--spec only applies with --batch-all; use --batch NAME:SPEC.")

    selections = _parse_batch(batch) if batch else None
    with _stack_session(ctx) as (stack, console):
        if stack.vc is None:
            console.print("[yellow]No version-control facts given (--facts); nothing to infer.[/yellow]")
        outcome = run(
            stack,
            ImportRequest(
                include=include,
                selections=selections,
                select_all=batch_all,
                spec_id=spec_id,
            ),
        )
        if outcome.plan is not None and (outcome.envelope is not None or outcome.plan.rejected):
            format_import_plan(outcome.plan, console)
        for branch in outcome.branches:
            console.print(
                f"[green]Imported[/green] {branch.name} on {branch.base_name}"
                + (f" ({branch.spec_id})" if branch.spec_id else "")
            )
        for message in outcome.messages:
            if outcome.exit_code == EXIT_ERROR:
                format_error(message, console)
            else:
                console.print(message)
    _finish(ctx, outcome)
