import click

from unstacked.cli.core import load
from unstacked.cli.error_boundary import cli_error_boundary
from unstacked.core.context import UnstackedContext
from unstacked.core.land import land_changes
from unstacked.core.output import user_output


@click.command("land")
@click.argument("name")
@click.option("-n", "--count", default=1, show_default=True, help="Number of changes to land from the bottom.")
@click.pass_obj
@cli_error_boundary
def land_cmd(ctx: UnstackedContext, name: str, count: int) -> None:
    """Fast-forward the upstream branch of stack NAME over its bottom changes."""
    stack = load(ctx, name)
    result = land_changes(
        ctx.store,
        ctx.signer,
        ctx.remote,
        ctx.repo_root,
        stack,
        ctx.signing_key,
        count=count,
    )
    for change in result.landed:
        user_output(f"  {change.change_id} {change.title}")
    user_output(
        click.style("✓", fg="green")
        + f" Landed {len(result.landed)} changes on {result.upstream_ref} "
        + f"({result.old_tip[:12]} -> {result.new_tip[:12]}); {len(result.stack.changes)} remain"
    )
