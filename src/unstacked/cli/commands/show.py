import click

from unstacked.cli.core import load
from unstacked.cli.error_boundary import cli_error_boundary
from unstacked.cli.rendering import render_stack
from unstacked.core.context import UnstackedContext
from unstacked.core.output import machine_output, user_output
from unstacked.core.stack.loader import list_stacks


@click.command("show")
@click.argument("name", required=False)
@click.pass_obj
@cli_error_boundary
def show_cmd(ctx: UnstackedContext, name: str | None) -> None:
    """Show stack NAME, or list all stacks."""
    if name is None:
        names = list_stacks(ctx.store, ctx.repo_root)
        if not names:
            user_output("No stacks yet - create one with 'unstacked init' or 'unstacked import'")
            return
        for stack_name in names:
            machine_output(stack_name)
        return

    render_stack(load(ctx, name))
