import click

from unstacked.cli.core import normalize_upstream
from unstacked.cli.ensure import Ensure
from unstacked.cli.error_boundary import cli_error_boundary
from unstacked.core.config import CONFIG_FILENAME, save_config
from unstacked.core.context import UnstackedContext
from unstacked.core.output import user_output
from unstacked.core.stack.loader import create_stack, list_stacks, resolve_upstream


@click.command("init")
@click.argument("name")
@click.option("--upstream", help="Branch (or stack:<name>) the stack builds on. Defaults to stack.upstream.")
@click.pass_obj
@cli_error_boundary
def init_cmd(ctx: UnstackedContext, name: str, upstream: str | None) -> None:
    """Create an empty stack NAME on top of its upstream."""
    Ensure.invariant(name not in list_stacks(ctx.store, ctx.repo_root), f"Stack '{name}' already exists")

    if not (ctx.config_dir / CONFIG_FILENAME).exists() and not ctx.dry_run:
        save_config(ctx.config_dir, ctx.config)
        user_output(f"Wrote default configuration to {ctx.config_dir / CONFIG_FILENAME}")

    upstream_ref = normalize_upstream(ctx, upstream or ctx.config.upstream)
    base = resolve_upstream(ctx.store, ctx.repo_root, upstream_ref)
    create_stack(ctx.store, ctx.repo_root, name, upstream_ref, base)
    user_output(click.style("✓", fg="green") + f" Created stack '{name}' on {upstream_ref} ({base[:12]})")
