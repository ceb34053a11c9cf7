"""Land the bottom of a stack by fast-forwarding its upstream branch."""

import logging
from dataclasses import dataclass
from pathlib import Path

from unstacked.core.errors import LandRejected, NothingToLand, SyncInProgress
from unstacked.core.remote.abc import Remote, RemoteRefUpdate
from unstacked.core.signing.abc import Signer
from unstacked.core.signing.commits import ensure_verified
from unstacked.core.stack.loader import STACK_UPSTREAM_PREFIX, write_manifest
from unstacked.core.stack.model import Change, RefSnapshot, Stack
from unstacked.core.stack.refs import base_ref, change_ref
from unstacked.core.store.abc import ObjectStore
from unstacked.core.store.types import Commit

logger = logging.getLogger(__name__)

_REMOTES_PREFIX = "refs/remotes/"


@dataclass(frozen=True)
class LandResult:
    landed: tuple[Change, ...]
    upstream_ref: str
    old_tip: str
    new_tip: str
    stack: Stack


def land_changes(
    store: ObjectStore,
    signer: Signer,
    remote: Remote,
    repo_root: Path,
    stack: Stack,
    signing_key: str | None,
    count: int = 1,
) -> LandResult:
    """Fast-forward the upstream branch to include the bottom ``count`` changes.

    The stack must already be synchronized onto the current upstream tip, so
    landing never creates a merge. A local branch is moved with a CAS ref
    update; a remote-tracking upstream (``refs/remotes/<remote>/<branch>``) is
    pushed with a lease and the tracking ref follows. The landed changes then
    leave the stack and the base moves up to the last landed commit.

    Raises:
        SyncInProgress: If a sync pass on the stack is unfinished
        NothingToLand: If the stack is empty
        LandRejected: If the upstream is another stack, is not a branch, or has
            moved since the stack was last synchronized
        VerificationFailed: If a landed commit is not signed by ``signing_key``
    """
    if stack.pending is not None:
        raise SyncInProgress(stack.name, stack.pending.onto)
    if not stack.changes:
        raise NothingToLand(stack.name)
    if count < 1 or count > len(stack.changes):
        raise LandRejected(f"Cannot land {count} changes from a stack of {len(stack.changes)}")
    if stack.upstream.startswith(STACK_UPSTREAM_PREFIX):
        raise LandRejected(
            f"Stack '{stack.name}' builds on {stack.upstream}; land that stack first"
        )

    upstream_ref = store.full_ref_name(repo_root, stack.upstream)
    if upstream_ref is None:
        raise LandRejected(f"Upstream '{stack.upstream}' is not a branch")
    old_tip = store.resolve_ref(repo_root, upstream_ref)
    if old_tip != stack.base:
        raise LandRejected(
            f"Upstream {upstream_ref} has moved to {old_tip}; run 'unstacked sync' first"
        )

    if signing_key is None:
        raise LandRejected("Landed changes must be verified; configure signing_key first")
    landed = stack.changes[:count]
    remaining = stack.changes[count:]
    for change in landed:
        commit = store.read(repo_root, change.commit)
        if not isinstance(commit, Commit):
            raise LandRejected(f"Change {change.change_id} does not point at a commit")
        ensure_verified(signer, commit, change.change_id, signing_key)
    new_tip = landed[-1].commit

    message = f"unstacked: land {count} from {stack.name}"
    if upstream_ref.startswith(_REMOTES_PREFIX):
        remote_name, _, branch = upstream_ref[len(_REMOTES_PREFIX) :].partition("/")
        remote.push(
            repo_root,
            remote_name,
            [RemoteRefUpdate(remote_ref=f"refs/heads/{branch}", new=new_tip, expected=old_tip)],
        )
    store.update_ref(repo_root, upstream_ref, old_tip, new_tip, message)

    snapshot = stack.snapshot or RefSnapshot(manifest=None, base=stack.base)
    order = tuple(change.change_id for change in remaining)
    manifest = write_manifest(store, repo_root, stack.name, stack.upstream, order, None, snapshot.manifest, message)
    store.update_ref(repo_root, base_ref(stack.name), snapshot.base, new_tip, message)
    changes = dict(snapshot.changes)
    for change in landed:
        current = changes.pop(change.change_id, change.commit)
        store.update_ref(repo_root, change_ref(stack.name, change.change_id), current, None, message)

    logger.info("Landed %d changes of '%s' on %s", count, stack.name, upstream_ref)
    new_stack = Stack(
        name=stack.name,
        upstream=stack.upstream,
        base=new_tip,
        changes=tuple(
            Change(change_id=c.change_id, commit=c.commit, title=c.title, position=index)
            for index, c in enumerate(remaining)
        ),
        snapshot=RefSnapshot(manifest=manifest, base=new_tip, changes=changes, order=order),
    )
    return LandResult(
        landed=landed,
        upstream_ref=upstream_ref,
        old_tip=old_tip,
        new_tip=new_tip,
        stack=new_stack,
    )
