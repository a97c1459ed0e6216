"""Stacked CLI -- terminal interface for the stacked-branch registry.

This module is NEVER imported from stacked/__init__.py.
It is only loaded via the ``stacked`` entry point defined in pyproject.toml.

Output channels: human-readable output and ``Error:`` messages go to
stdout; stderr carries nothing but contract envelopes (exit codes 2/3).
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from typing import IO, TYPE_CHECKING

import click

from stacked.cli.formatting import format_error, get_console
from stacked.context import InvocationContext
from stacked.exceptions import StackError
from stacked.models.config import StackConfig
from stacked.operations.contract import emit

if TYPE_CHECKING:
    from collections.abc import Iterator

    from rich.console import Console

    from stacked.stack import Stack
    from stacked.surface import CommandOutcome

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@click.group()
@click.option(
    "--root",
    default=None,
    envvar="STACKED_ROOT",
    help="Repository root (auto-discovered if omitted).",
)
@click.option(
    "--trunk",
    default=None,
    envvar="STACKED_TRUNK",
    help="Trunk branch name used when the registry is first created.",
)
@click.option(
    "--session",
    "session_id",
    default=None,
    envvar="STACKED_SESSION_ID",
    help="Host session id (names the audit log).",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    envvar="STACKED_LOG_LEVEL",
    help="Write logs at this level to the state directory's log file.",
)
@click.option(
    "--facts",
    type=click.File("r"),
    default=None,
    envvar="STACKED_FACTS",
    help="Version-control facts JSON document ('-' for stdin).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    root: str | None,
    trunk: str | None,
    session_id: str | None,
    log_level: str | None,
    facts: IO[str] | None,
) -> None:
    """Stacked: dependency tracking for stacked feature branches."""
    ctx.ensure_object(dict)
    ctx.obj["context"] = InvocationContext.from_process(session_id)
    ctx.obj["root"] = root
    ctx.obj["config"] = StackConfig(trunk=trunk) if trunk else StackConfig()
    ctx.obj["log_level"] = log_level
    ctx.obj["facts"] = facts


def _attach_log_file(ctx: click.Context, path: str, level: str) -> None:
    """Route package logs to *path* for the rest of this invocation."""
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    package_logger = logging.getLogger("stacked")
    package_logger.addHandler(handler)
    previous = package_logger.level
    package_logger.setLevel(level.upper())

    def _detach() -> None:
        package_logger.removeHandler(handler)
        package_logger.setLevel(previous)
        handler.close()

    ctx.call_on_close(_detach)


def _get_stack(ctx: click.Context) -> Stack:
    """Open a Stack from Click context."""
    from stacked.protocols import StaticVersionControl
    from stacked.stack import Stack

    obj = ctx.obj
    vc = None
    if obj["facts"] is not None:
        vc = StaticVersionControl.from_stream(obj["facts"])

    stack = Stack.open(obj["context"], config=obj["config"], root=obj["root"], vc=vc)
    if obj["log_level"] and stack.paths is not None and not obj.get("logging"):
        stack.paths.state_dir.mkdir(parents=True, exist_ok=True)
        _attach_log_file(ctx.find_root(), str(stack.paths.log_file), obj["log_level"])
        obj["logging"] = True
    return stack


@contextmanager
def _stack_session(ctx: click.Context) -> Iterator[tuple[Stack, Console]]:
    """Context manager that opens a Stack and yields (stack, console).

    Formats StackError and filesystem errors as CLI errors on stdout and
    exits 1.  Commands with special handling can catch specific errors
    inside the ``with`` block before this generic handler runs.
    """
    console = get_console()
    try:
        yield _get_stack(ctx), console
    except (StackError, OSError) as e:
        format_error(str(e), console)
        raise SystemExit(1) from None


def _finish(ctx: click.Context, outcome: CommandOutcome) -> None:
    """Emit the outcome's envelope (if any) on stderr and exit with its code."""
    if outcome.envelope is not None:
        emit(outcome.envelope, sys.stderr)
    ctx.exit(outcome.exit_code)


# Register subcommands after cli group is defined
from stacked.cli.commands.create import create  # noqa: E402
from stacked.cli.commands.update import update  # noqa: E402
from stacked.cli.commands.reopen import reopen  # noqa: E402
from stacked.cli.commands.list import list_branches  # noqa: E402
from stacked.cli.commands.status import status  # noqa: E402
from stacked.cli.commands.import_ import import_branches  # noqa: E402

cli.add_command(create)
cli.add_command(update)
cli.add_command(reopen)
cli.add_command(list_branches)
cli.add_command(status)
cli.add_command(import_branches)
