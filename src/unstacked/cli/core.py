"""Helpers shared by the stack commands."""

from unstacked.cli.ensure import Ensure
from unstacked.cli.rendering import render_sync_report
from unstacked.core.context import UnstackedContext
from unstacked.core.stack.loader import STACK_UPSTREAM_PREFIX, list_stacks, load_stack
from unstacked.core.stack.model import Stack
from unstacked.core.sync.types import SyncReport


def load(ctx: UnstackedContext, name: str) -> Stack:
    return load_stack(ctx.store, ctx.repo_root, name)


def normalize_upstream(ctx: UnstackedContext, upstream: str) -> str:
    """Store upstreams as full ref names, or ``stack:<name>`` for dependent stacks."""
    if upstream.startswith(STACK_UPSTREAM_PREFIX):
        parent = upstream[len(STACK_UPSTREAM_PREFIX) :]
        Ensure.invariant(
            parent in list_stacks(ctx.store, ctx.repo_root),
            f"Upstream stack '{parent}' does not exist",
        )
        return upstream
    full = ctx.store.full_ref_name(ctx.repo_root, upstream)
    return Ensure.not_none(full, f"Upstream '{upstream}' is not a branch")


def finish_sync(report: SyncReport) -> Stack:
    """Print a sync report and exit 1 unless the pass completed."""
    render_sync_report(report)
    if not report.completed:
        raise SystemExit(1)
    return report.stack


def rewrite(ctx: UnstackedContext, stack: Stack) -> Stack:
    """Make the refs match a restructured stack by syncing it onto its current base."""
    return finish_sync(ctx.engine().synchronize(stack, stack.base))
