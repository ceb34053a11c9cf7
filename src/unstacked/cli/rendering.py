"""Rich tables and summaries for stacks, sync reports and remote status."""

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from unstacked.core.output import user_output
from unstacked.core.reconcile import ReconciliationRecord, Relationship
from unstacked.core.stack.model import Stack
from unstacked.core.sync.types import ChangeState, SyncReport

_STATE_STYLES = {
    ChangeState.PENDING: "dim",
    ChangeState.UNCHANGED: "dim",
    ChangeState.REWRITTEN: "green",
    ChangeState.CONFLICTED: "red",
    ChangeState.SKIPPED: "yellow",
    ChangeState.FAILED: "red",
}

_RELATIONSHIP_STYLES = {
    Relationship.UP_TO_DATE: "dim",
    Relationship.AHEAD: "green",
    Relationship.DIVERGED: "red",
}


def _console() -> Console:
    return Console(stderr=True, width=200)


def short(oid: str | None) -> str:
    if oid is None:
        return "-"
    return oid[:12]


def render_stack(stack: Stack, signatures: dict[str, bool] | None = None) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("change", style="cyan", no_wrap=True)
    table.add_column("commit", no_wrap=True)
    if signatures is not None:
        table.add_column("signed", no_wrap=True)
    table.add_column("title")

    for change in reversed(stack.changes):
        row = [str(change.position), change.change_id, short(change.commit)]
        if signatures is not None:
            row.append("[green]yes[/green]" if signatures.get(change.change_id) else "[red]no[/red]")
        row.append(escape(change.title))
        table.add_row(*row)

    user_output(click.style(f"Stack {stack.name}", bold=True) + f" on {stack.upstream} ({short(stack.base)})")
    _console().print(table)
    if stack.pending is not None:
        message = f"Sync onto {short(stack.pending.onto)} in progress"
        if stack.pending.conflicted is not None:
            message += f", halted on conflict in {stack.pending.conflicted}"
        if stack.pending.raced:
            message += f", moved externally: {', '.join(stack.pending.raced)}"
        user_output(click.style(message, fg="yellow"))


def render_sync_report(report: SyncReport) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("change", style="cyan", no_wrap=True)
    table.add_column("state", no_wrap=True)
    table.add_column("commit", no_wrap=True)
    table.add_column("title")

    for outcome in report.outcomes:
        style = _STATE_STYLES[outcome.state]
        if outcome.new_commit is not None and outcome.new_commit != outcome.old_commit:
            commit = f"{short(outcome.old_commit)} -> {short(outcome.new_commit)}"
        else:
            commit = short(outcome.old_commit)
        table.add_row(
            outcome.change_id,
            f"[{style}]{outcome.state.value}[/{style}]",
            commit,
            escape(outcome.title),
        )
    _console().print(table)

    halted = report.halted_on
    if halted is None:
        user_output(click.style("✓", fg="green") + f" Stack '{report.stack.name}' is on {short(report.onto)}")
        return
    if halted.state == ChangeState.CONFLICTED:
        user_output(
            click.style("Conflict", fg="red") + f" applying {halted.change_id} ({halted.title}) in:"
        )
        for path in halted.conflict_paths:
            user_output(f"  {path}")
        user_output(
            "Resolve it on a commit of your own, then run "
            f"'unstacked sync {report.stack.name} --continue --resolved <commit>', "
            f"or 'unstacked sync {report.stack.name} --abort'"
        )
    else:
        user_output(click.style("Failed", fg="red") + f" on {halted.change_id}: {halted.error}")


def render_reconciliation(records: list[ReconciliationRecord]) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("change", style="cyan", no_wrap=True)
    table.add_column("branch", no_wrap=True)
    table.add_column("local", no_wrap=True)
    table.add_column("remote", no_wrap=True)
    table.add_column("status", no_wrap=True)

    for record in records:
        style = _RELATIONSHIP_STYLES[record.relationship]
        status = record.relationship.value
        if record.retired:
            status += " (retired)"
        table.add_row(
            record.change_id,
            record.branch.removeprefix("refs/heads/"),
            short(record.local),
            short(record.remote),
            f"[{style}]{status}[/{style}]",
        )
    _console().print(table)
