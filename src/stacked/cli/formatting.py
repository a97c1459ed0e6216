"""Rich formatting helpers for the stacked CLI.

Provides functions that format registry data for terminal display.
Rich auto-detects TTY and degrades gracefully when piped (no ANSI codes).
Everything here prints to stdout; stderr is reserved for contract envelopes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from stacked.models.branch import BranchStatus
from stacked.models.health import HealthState

if TYPE_CHECKING:
    from stacked.models.branch import Branch
    from stacked.models.health import HealthReport
    from stacked.operations.importing import ImportPlan

_STATUS_STYLE = {
    BranchStatus.ACTIVE: "green",
    BranchStatus.SUBMITTED: "cyan",
    BranchStatus.MERGED: "dim",
}

_HEALTH_STYLE = {
    HealthState.ACTIVE: "green",
    HealthState.SUBMITTED: "cyan",
    HealthState.MERGED: "dim",
    HealthState.NEEDS_REBASE: "yellow",
    HealthState.ORPHANED: "red",
    HealthState.UNKNOWN: "magenta",
}


def get_console() -> Console:
    """Create a Rich Console that auto-detects TTY for graceful pipe degradation."""
    return Console(stderr=False)


def _branch_label(branch: Branch) -> str:
    style = _STATUS_STYLE[branch.status]
    label = f"[bold]{escape(branch.name)}[/bold] [{style}]{branch.status.value}[/{style}]"
    if branch.pr_number is not None:
        label += f" [yellow]#{branch.pr_number}[/yellow]"
    if branch.spec_id:
        label += f" [dim]({escape(branch.spec_id)})[/dim]"
    return label


def format_branch(branch: Branch, console: Console) -> None:
    """Display one branch record in detail."""
    console.print(f"Branch [bold]{escape(branch.name)}[/bold]")
    console.print(f"  Base:      {escape(branch.base_name)}")
    style = _STATUS_STYLE[branch.status]
    console.print(f"  Status:    [{style}]{branch.status.value}[/{style}]")
    if branch.spec_id:
        console.print(f"  Spec:      {escape(branch.spec_id)}")
    if branch.pr_number is not None:
        console.print(f"  PR:        [yellow]#{branch.pr_number}[/yellow]")
    if branch.last_known_base_tip:
        console.print(f"  Base tip:  [dim]{escape(branch.last_known_base_tip)}[/dim]")
    console.print(f"  Created:   {branch.created_at.strftime('%Y-%m-%d %H:%M')}")


def format_branch_tree(branches: list[Branch], trunk: str, console: Console) -> None:
    """Display branches as one tree per root they are stacked on.

    *branches* must be in topological order.  A branch whose base is not
    in the list hangs directly under that base's root node.
    """
    if not branches:
        console.print("[dim]No tracked branches.[/dim]")
        return

    roots: dict[str, Tree] = {}
    nodes: dict[str, Tree] = {}
    for branch in branches:
        if branch.base_name in nodes:
            parent = nodes[branch.base_name]
        else:
            if branch.base_name not in roots:
                style = "bold blue" if branch.base_name == trunk else "red"
                roots[branch.base_name] = Tree(
                    f"[{style}]{escape(branch.base_name)}[/{style}]"
                )
            parent = roots[branch.base_name]
        nodes[branch.name] = parent.add(_branch_label(branch))

    for tree in roots.values():
        console.print(tree)


def format_health(reports: dict[str, HealthReport], console: Console) -> None:
    """Display per-branch health with remediation steps for warnings."""
    if not reports:
        console.print("[dim]No tracked branches.[/dim]")
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Branch")
    table.add_column("Base", style="dim")
    table.add_column("Status")
    table.add_column("Health")
    table.add_column("PR", justify="right", style="yellow")

    for report in reports.values():
        indent = "  " * ((report.depth or 1) - 1)
        style = _HEALTH_STYLE[report.state]
        table.add_row(
            f"{indent}{escape(report.name)}",
            escape(report.base_name),
            report.status.value,
            f"[{style}]{report.state.value}[/{style}]",
            f"#{report.pr_number}" if report.pr_number is not None else "",
        )
    console.print(table)

    flagged = [r for r in reports.values() if r.reason or r.remediation]
    for report in flagged:
        console.print()
        style = _HEALTH_STYLE[report.state]
        console.print(f"[{style}]{escape(report.name)}[/{style}]: {escape(report.reason or '')}")
        if report.proposed_status is not None:
            console.print(
                f"  Proposed: mark as [bold]{report.proposed_status.value}[/bold] (not applied)"
            )
        for step in report.remediation:
            console.print(f"  [dim]$[/dim] {escape(step)}")


def format_import_plan(plan: ImportPlan, console: Console) -> None:
    """Display which branches an import would add or skip."""
    if plan.branches:
        table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
        table.add_column("Branch")
        table.add_column("Inferred base", style="cyan")
        for branch in plan.branches:
            table.add_row(escape(branch.name), escape(branch.base_name))
        console.print(table)
    if plan.already_tracked:
        console.print(
            f"[dim]Already tracked: {escape(', '.join(plan.already_tracked))}[/dim]"
        )
    for item in plan.rejected:
        console.print(f"[yellow]Skipped[/yellow] {escape(item.name)}: {escape(item.reason)}")


def format_error(message: str, console: Console) -> None:
    """Display an error message."""
    console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)
