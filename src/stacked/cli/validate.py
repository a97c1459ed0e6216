"""stacked-validate -- check a finished command's contract before a host acts on it.

Two input modes:

* Hook mode (default): a host hook payload on stdin::

      {"tool_name": "Bash", "session_id": "...", "cwd": "...",
       "tool_input": {"command": "stacked create ..."},
       "tool_response": {"exitCode": 2, "stderr": "{...}"}}

  Payloads for other tools, or commands that do not invoke stacked, are
  ignored.

* Direct mode: ``--exit-code N`` with the command's stderr from
  ``--stderr-file`` (or stdin).

Exit status: 0 allows the host to proceed; 2 blocks it, with a JSON block
report followed by a human-readable listing on stderr.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import IO

import click

from stacked.cli.formatting import format_error, get_console
from stacked.context import InvocationContext
from stacked.exceptions import StackError
from stacked.models.config import StackConfig
from stacked.operations.contract import ContractValidator
from stacked.storage.files import AuditLog
from stacked.storage.paths import resolve_paths

EXIT_BLOCK = 2
HOOK_TOOL = "Bash"
COMMAND_MARKER = "stacked"


def _read_hook_payload(stream: IO[str]) -> dict:
    console = get_console()
    try:
        payload = json.load(stream)
    except json.JSONDecodeError as e:
        format_error(f"Hook payload is not valid JSON: {e}", console)
        raise SystemExit(1) from None
    if not isinstance(payload, dict):
        format_error("Hook payload must be a JSON object", console)
        raise SystemExit(1)
    return payload


@click.command()
@click.option("--exit-code", type=int, default=None, help="Exit code of the command to check.")
@click.option(
    "--stderr-file",
    type=click.File("r"),
    default=None,
    help="File holding the command's stderr (default: stdin).",
)
@click.option("--command", "command_text", default=None, help="Command line, for the audit log.")
@click.option("--root", default=None, envvar="STACKED_ROOT", help="Repository root.")
@click.option(
    "--session",
    "session_id",
    default=None,
    envvar="STACKED_SESSION_ID",
    help="Session id naming the audit log.",
)
def validate(
    exit_code: int | None,
    stderr_file: IO[str] | None,
    command_text: str | None,
    root: str | None,
    session_id: str | None,
) -> None:
    """Allow or block a command's privileged-action request."""
    stdin = click.get_text_stream("stdin")
    cwd: str | None = None

    if exit_code is None:
        payload = _read_hook_payload(stdin)
        if payload.get("tool_name") != HOOK_TOOL:
            return
        command_text = (payload.get("tool_input") or {}).get("command") or ""
        if COMMAND_MARKER not in command_text:
            return
        response = payload.get("tool_response") or {}
        exit_code = response.get("exitCode", 0)
        if not isinstance(exit_code, int):
            format_error("tool_response.exitCode must be an integer", get_console())
            raise SystemExit(1)
        content = response.get("stderr") or ""
        session_id = session_id or payload.get("session_id")
        cwd = payload.get("cwd")
    else:
        content = (stderr_file or stdin).read()

    context = InvocationContext.from_process(session_id)
    if cwd:
        context = InvocationContext(cwd=Path(cwd), env=context.env, session_id=context.session_id)
    try:
        paths = resolve_paths(context, StackConfig(), root)
        validator = ContractValidator(AuditLog(paths.audit_log))
        decision = validator.validate(exit_code, content, command=command_text)
    except (StackError, OSError) as e:
        format_error(str(e), get_console())
        raise SystemExit(1) from None

    if decision.allow:
        if decision.kind is not None:
            click.echo(
                json.dumps(
                    {
                        "systemMessage": f"Contract validated: {decision.kind} (exit {exit_code})",
                        "suppressOutput": True,
                    }
                )
            )
        return

    report = {
        "decision": "block",
        "reason": f"Contract violation: exit code {exit_code} without a valid {decision.kind} envelope",
        "violations": list(decision.violations),
    }
    click.echo(json.dumps(report), err=True)
    click.echo(decision.reason, err=True)
    raise SystemExit(EXIT_BLOCK)
