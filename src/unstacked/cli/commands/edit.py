"""Commands that restructure a stack: add, remove and move changes.

Each edits the logical order and immediately syncs the stack onto its current
base so the refs follow.
"""

import click

from unstacked.cli.core import load, rewrite
from unstacked.cli.ensure import Ensure
from unstacked.cli.error_boundary import cli_error_boundary
from unstacked.core.context import UnstackedContext
from unstacked.core.output import user_output
from unstacked.core.stack.loader import make_change


@click.command("add")
@click.argument("name")
@click.argument("rev")
@click.option("--after", "after_id", help="Insert above this change instead of at the top.")
@click.option("--bottom", is_flag=True, help="Insert directly on the stack base.")
@click.pass_obj
@cli_error_boundary
def add_cmd(ctx: UnstackedContext, name: str, rev: str, after_id: str | None, bottom: bool) -> None:
    """Add the commit REV to stack NAME as a new change."""
    Ensure.invariant(not (after_id and bottom), "--after and --bottom are mutually exclusive")
    stack = load(ctx, name)
    Ensure.no_pending_sync(stack)

    change = make_change(ctx.store, ctx.repo_root, Ensure.commit(ctx, rev))
    if bottom:
        after_index = -1
    elif after_id is not None:
        after_index = stack.index_of(after_id)
    else:
        after_index = len(stack.changes) - 1

    rewrite(ctx, stack.insert(change, after_index))
    user_output(click.style("✓", fg="green") + f" Added {change.change_id}: {change.title}")


@click.command("remove")
@click.argument("name")
@click.argument("change_id")
@click.pass_obj
@cli_error_boundary
def remove_cmd(ctx: UnstackedContext, name: str, change_id: str) -> None:
    """Drop CHANGE_ID from stack NAME and rebuild the changes above it."""
    stack = load(ctx, name)
    Ensure.no_pending_sync(stack)
    rewrite(ctx, stack.remove(change_id))
    user_output(click.style("✓", fg="green") + f" Removed {change_id}")


@click.command("move")
@click.argument("name")
@click.argument("change_id")
@click.argument("position", type=int)
@click.pass_obj
@cli_error_boundary
def move_cmd(ctx: UnstackedContext, name: str, change_id: str, position: int) -> None:
    """Move CHANGE_ID to POSITION (0 is the bottom) and rebuild the stack."""
    stack = load(ctx, name)
    Ensure.no_pending_sync(stack)
    rewrite(ctx, stack.reorder(change_id, position))
    user_output(click.style("✓", fg="green") + f" Moved {change_id} to position {position}")
