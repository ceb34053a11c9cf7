import click

from unstacked.cli.core import load
from unstacked.cli.error_boundary import cli_error_boundary
from unstacked.cli.rendering import render_reconciliation
from unstacked.core.context import UnstackedContext


@click.command("status")
@click.argument("name")
@click.pass_obj
@cli_error_boundary
def status_cmd(ctx: UnstackedContext, name: str) -> None:
    """Compare the branches of stack NAME with the remote."""
    stack = load(ctx, name)
    render_reconciliation(ctx.reconciler().compare(stack))
