import click

from unstacked.cli.core import normalize_upstream
from unstacked.cli.ensure import Ensure
from unstacked.cli.error_boundary import cli_error_boundary
from unstacked.cli.rendering import render_stack
from unstacked.core.context import UnstackedContext
from unstacked.core.output import user_output
from unstacked.core.stack.loader import import_commits, list_stacks, resolve_upstream


@click.command("import")
@click.argument("name")
@click.argument("tip", default="HEAD")
@click.option("--upstream", help="Branch (or stack:<name>) the commits build on. Defaults to stack.upstream.")
@click.pass_obj
@cli_error_boundary
def import_cmd(ctx: UnstackedContext, name: str, tip: str, upstream: str | None) -> None:
    """Create stack NAME from the commits between the upstream and TIP.

    Each commit becomes one change. Commits keep their hashes until the first
    sync signs them.
    """
    Ensure.invariant(name not in list_stacks(ctx.store, ctx.repo_root), f"Stack '{name}' already exists")
    upstream_ref = normalize_upstream(ctx, upstream or ctx.config.upstream)
    upstream_tip = resolve_upstream(ctx.store, ctx.repo_root, upstream_ref)
    tip_oid = Ensure.commit(ctx, tip)

    stack = import_commits(ctx.store, ctx.repo_root, name, upstream_ref, upstream_tip, tip_oid)
    user_output(click.style("✓", fg="green") + f" Imported {len(stack.changes)} changes into '{name}'")
    render_stack(stack)
