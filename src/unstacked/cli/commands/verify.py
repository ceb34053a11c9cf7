import click

from unstacked.cli.core import load
from unstacked.cli.ensure import Ensure
from unstacked.cli.error_boundary import cli_error_boundary
from unstacked.cli.rendering import render_stack
from unstacked.core.context import UnstackedContext
from unstacked.core.errors import VerificationFailed
from unstacked.core.output import user_output
from unstacked.core.signing.commits import verify_commit
from unstacked.core.store.types import Commit


@click.command("verify")
@click.argument("name")
@click.pass_obj
@cli_error_boundary
def verify_cmd(ctx: UnstackedContext, name: str) -> None:
    """Check that every change in stack NAME is signed by the configured key."""
    key = Ensure.signing_key(ctx)
    stack = load(ctx, name)

    signatures: dict[str, bool] = {}
    for change in stack.changes:
        commit = ctx.store.read(ctx.repo_root, change.commit)
        signatures[change.change_id] = isinstance(commit, Commit) and verify_commit(ctx.signer, commit, key)

    render_stack(stack, signatures)
    unsigned = [change_id for change_id, ok in signatures.items() if not ok]
    if unsigned:
        raise VerificationFailed(key, ", ".join(unsigned))
    user_output(click.style("✓", fg="green") + f" All {len(stack.changes)} changes verify against {key}")
