import logging

import click

from unstacked.cli.core import finish_sync, load
from unstacked.cli.ensure import Ensure
from unstacked.cli.error_boundary import cli_error_boundary
from unstacked.core.context import UnstackedContext, with_dry_run
from unstacked.core.errors import UnstackedError
from unstacked.core.output import user_output
from unstacked.core.stack.loader import list_stacks, load_stack, resolve_upstream, stack_dependency_order
from unstacked.core.store.types import Commit

logger = logging.getLogger(__name__)


def _resolution_tree(ctx: UnstackedContext, rev: str) -> str:
    commit = ctx.store.read(ctx.repo_root, Ensure.commit(ctx, rev))
    if not isinstance(commit, Commit):
        raise UnstackedError(f"'{rev}' does not name a commit")
    return commit.tree


def _sync_all(ctx: UnstackedContext) -> None:
    names = list_stacks(ctx.store, ctx.repo_root)
    stacks = [load_stack(ctx.store, ctx.repo_root, name) for name in names]
    for stack in stack_dependency_order(stacks):
        # Reload: syncing a parent stack moves what this one is based on
        current = load(ctx, stack.name)
        Ensure.no_pending_sync(current)
        onto = resolve_upstream(ctx.store, ctx.repo_root, current.upstream)
        user_output(click.style(f"Syncing {current.name}", bold=True))
        finish_sync(ctx.engine().synchronize(current, onto))


@click.command("sync")
@click.argument("name", required=False)
@click.option("--onto", help="Commit to rebase onto. Defaults to the tip of the stack's upstream.")
@click.option("--all", "sync_all", is_flag=True, help="Sync every stack, parents before dependents.")
@click.option("--continue", "resume", is_flag=True, help="Resume an unfinished sync.")
@click.option(
    "--resolved",
    help="With --continue: commit whose tree resolves the conflicted change.",
)
@click.option("--abort", is_flag=True, help="Roll back an unfinished sync.")
@click.option("--dry-run", is_flag=True, help="Show what would change without signing or moving refs.")
@click.pass_obj
@cli_error_boundary
def sync_cmd(
    ctx: UnstackedContext,
    name: str | None,
    onto: str | None,
    sync_all: bool,
    resume: bool,
    resolved: str | None,
    abort: bool,
    dry_run: bool,
) -> None:
    """Rebase stack NAME onto its upstream, signing every rewritten commit.

    Halts at the first conflict; earlier changes stay rewritten. Use
    --continue (optionally with --resolved) or --abort afterwards.
    """
    Ensure.invariant(not (resume and abort), "--continue and --abort are mutually exclusive")
    Ensure.invariant(resolved is None or resume, "--resolved requires --continue")
    if dry_run:
        ctx = with_dry_run(ctx)

    if sync_all:
        Ensure.invariant(name is None and onto is None, "--all syncs every stack onto its own upstream")
        Ensure.invariant(not (resume or abort), "--all cannot be combined with --continue or --abort")
        _sync_all(ctx)
        return

    stack = load(ctx, Ensure.not_none(name, "Name a stack to sync, or pass --all"))

    if abort:
        aborted = ctx.engine().abort(stack)
        user_output(click.style("✓", fg="green") + f" Aborted sync of '{stack.name}'")
        if aborted.pending is not None:
            user_output(
                click.style(
                    f"Kept changes moved by another writer: {', '.join(aborted.pending.raced)}\n"
                    f"Run 'unstacked sync {stack.name} --continue' to rebuild the changes above them",
                    fg="yellow",
                )
            )
        return

    if resume:
        pending = Ensure.not_none(stack.pending, f"Stack '{stack.name}' has no sync in progress")
        resolutions: dict[str, str] = {}
        if resolved is not None:
            conflicted = Ensure.not_none(
                pending.conflicted, "The unfinished sync did not stop on a conflict"
            )
            resolutions[conflicted] = _resolution_tree(ctx, resolved)
        finish_sync(ctx.engine().resume(stack, resolutions))
        return

    target = Ensure.commit(ctx, onto) if onto is not None else resolve_upstream(
        ctx.store, ctx.repo_root, stack.upstream
    )
    logger.debug("Syncing %s onto %s", stack.name, target)
    finish_sync(ctx.engine().synchronize(stack, target))
