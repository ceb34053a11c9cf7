import logging
from pathlib import Path

import click

from unstacked.cli.commands.chain import chain_cmd
from unstacked.cli.commands.config import config_group
from unstacked.cli.commands.edit import add_cmd, move_cmd, remove_cmd
from unstacked.cli.commands.import_cmd import import_cmd
from unstacked.cli.commands.init import init_cmd
from unstacked.cli.commands.land import land_cmd
from unstacked.cli.commands.push import push_cmd
from unstacked.cli.commands.show import show_cmd
from unstacked.cli.commands.status import status_cmd
from unstacked.cli.commands.sync import sync_cmd
from unstacked.cli.commands.verify import verify_cmd
from unstacked.core.context import create_context

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])  # terse help flags


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(package_name="unstacked")
@click.option("--debug", is_flag=True, help="Log git and gpg invocations to stderr.")
@click.option(
    "--repo",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Operate on the repository containing this directory instead of cwd.",
)
@click.pass_context
def cli(ctx: click.Context, debug: bool, repo: Path | None) -> None:
    """Keep stacks of dependent commits rebased, signed and published."""
    if debug:
        logging.basicConfig(level=logging.DEBUG, format="[DEBUG %(name)s:%(lineno)d] %(message)s")
    # Only create context if not already provided (e.g., by tests)
    if ctx.obj is None:
        ctx.obj = create_context(repo=repo, dry_run=False)


cli.add_command(add_cmd)
cli.add_command(chain_cmd)
cli.add_command(config_group)
cli.add_command(import_cmd)
cli.add_command(init_cmd)
cli.add_command(land_cmd)
cli.add_command(move_cmd)
cli.add_command(push_cmd)
cli.add_command(remove_cmd)
cli.add_command(show_cmd)
cli.add_command(status_cmd)
cli.add_command(sync_cmd)
cli.add_command(verify_cmd)


def main() -> None:
    """CLI entry point used by the `unstacked` console script."""
    cli()
