"""Controlled rebase of a stack onto a new base.

Each change is rebuilt on top of the previous change's new commit by a
three-way merge of {old parent, new parent, change}, signed, written, and
published with a compare-and-swap ref update. The pass halts at the first
conflict or failure. Everything before the halt stays durable, and the
manifest records a pending sync so the remaining suffix can be resumed or the
whole pass rolled back.
"""

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path

from unstacked.core.errors import RefConflict, SigningUnavailable, SyncInProgress, UnstackedError
from unstacked.core.signing.abc import Signer
from unstacked.core.signing.commits import sign_commit, verify_commit
from unstacked.core.stack.loader import write_manifest
from unstacked.core.stack.model import Change, ChangeOrigin, PendingSync, RefSnapshot, Stack
from unstacked.core.stack.refs import base_ref, change_ref
from unstacked.core.store.abc import ObjectStore
from unstacked.core.store.types import Commit
from unstacked.core.sync.types import ChangeOutcome, ChangeState, SyncReport

logger = logging.getLogger(__name__)


@dataclass
class _Pass:
    """Mutable bookkeeping for one pass: what each ref is expected to hold now."""

    stack: Stack
    onto: str
    expected: dict[str, str]
    manifest: str | None
    pending: PendingSync | None
    resolutions: dict[str, str] = field(default_factory=dict)


class SyncEngine:
    """Rewrites stacks through an ObjectStore and a Signer.

    Dry runs need no special handling here: the context hands the engine a
    dry-run store and signer.
    """

    def __init__(
        self,
        store: ObjectStore,
        signer: Signer,
        repo_root: Path,
        signing_key: str | None,
    ) -> None:
        self._store = store
        self._signer = signer
        self._repo_root = repo_root
        self._signing_key = signing_key

    def synchronize(self, stack: Stack, onto: str) -> SyncReport:
        """Rebase ``stack`` onto ``onto``.

        ``stack`` may carry a new logical order (inserted, removed or reordered
        changes); the pass makes the refs match it.

        Raises:
            SyncInProgress: If an earlier pass on this stack is unfinished
        """
        if stack.pending is not None:
            raise SyncInProgress(stack.name, stack.pending.onto)
        snapshot = self._snapshot(stack)
        state = _Pass(
            stack=stack,
            onto=onto,
            expected=dict(snapshot.changes),
            manifest=snapshot.manifest,
            pending=None,
        )
        return self._run(state)

    def resume(self, stack: Stack, resolutions: dict[str, str] | None = None) -> SyncReport:
        """Continue an unfinished pass.

        Args:
            stack: Stack loaded while a pending sync is recorded
            resolutions: Mapping of change id -> tree id to use instead of merging,
                normally the user's resolution of the conflicted change
        """
        if stack.pending is None:
            raise UnstackedError(f"Stack '{stack.name}' has no sync in progress")
        snapshot = self._snapshot(stack)
        state = _Pass(
            stack=stack,
            onto=stack.pending.onto,
            expected=dict(snapshot.changes),
            manifest=snapshot.manifest,
            pending=stack.pending,
            resolutions=dict(resolutions or {}),
        )
        return self._run(state)

    def abort(self, stack: Stack) -> Stack:
        """Roll every ref of an unfinished pass back to where it started.

        Refs another writer moved during the pass keep their new value. If any
        remain, the returned stack carries a pending sync back onto the original
        base, so resuming it rebuilds the changes above them.
        """
        pending = stack.pending
        if pending is None:
            raise UnstackedError(f"Stack '{stack.name}' has no sync in progress")
        snapshot = self._snapshot(stack)
        message = f"unstacked: abort sync of {stack.name}"

        for change_id, current in snapshot.changes.items():
            origin = pending.origins.get(change_id)
            if origin is None or change_id in pending.raced:
                continue
            if change_id not in pending.order:
                self._store.update_ref(self._repo_root, change_ref(stack.name, change_id), current, None, message)
            elif current != origin.commit:
                self._store.update_ref(
                    self._repo_root, change_ref(stack.name, change_id), current, origin.commit, message
                )

        raced = tuple(change_id for change_id in pending.raced if change_id in pending.order)
        realign: PendingSync | None = None
        if raced:
            realign = PendingSync(
                onto=pending.base,
                base=pending.base,
                order=pending.order,
                origins={change_id: pending.origins[change_id] for change_id in pending.order},
                raced=raced,
            )
            logger.warning(
                "Kept externally moved changes %s in stack '%s'; resume to rebuild the changes above them",
                ", ".join(raced),
                stack.name,
            )

        manifest = write_manifest(
            self._store,
            self._repo_root,
            stack.name,
            stack.upstream,
            pending.order,
            realign,
            snapshot.manifest,
            message,
        )

        changes: list[Change] = []
        for position, change_id in enumerate(pending.order):
            if change_id in raced:
                commit_oid = snapshot.changes[change_id]
            else:
                commit_oid = pending.origins[change_id].commit
            commit = self._read_commit(commit_oid)
            changes.append(Change(change_id=change_id, commit=commit_oid, title=commit.title, position=position))
        logger.info("Aborted sync of stack '%s'", stack.name)
        return Stack(
            name=stack.name,
            upstream=stack.upstream,
            base=pending.base,
            changes=tuple(changes),
            pending=realign,
            snapshot=RefSnapshot(
                manifest=manifest,
                base=pending.base,
                changes={change.change_id: change.commit for change in changes},
                order=pending.order,
            ),
        )

    def _snapshot(self, stack: Stack) -> RefSnapshot:
        if stack.snapshot is None:
            raise UnstackedError(f"Stack '{stack.name}' was not loaded from refs")
        return stack.snapshot

    def _read_commit(self, oid: str) -> Commit:
        obj = self._store.read(self._repo_root, oid)
        if not isinstance(obj, Commit):
            raise UnstackedError(f"{oid} is not a commit")
        return obj

    def _require_key(self) -> str:
        if self._signing_key is None:
            raise SigningUnavailable(None, "no signing key configured")
        return self._signing_key

    def _is_signed(self, commit: Commit) -> bool:
        if self._signing_key is None:
            return False
        return verify_commit(self._signer, commit, self._signing_key)

    def _dropped_ids(self, state: _Pass) -> tuple[str, ...]:
        if state.pending is not None:
            return state.pending.dropped
        return tuple(change.change_id for change in state.stack.dropped)

    def _begin(self, state: _Pass) -> PendingSync:
        """Record the pending sync before the first ref of the pass moves."""
        if state.pending is not None:
            return state.pending
        stack = state.stack
        snapshot = self._snapshot(stack)
        message = f"unstacked: begin sync of {stack.name}"

        origins: dict[str, ChangeOrigin] = {}
        for change in (*stack.changes, *stack.dropped):
            commit = self._read_commit(change.commit)
            origins[change.change_id] = ChangeOrigin(commit=change.commit, parent=commit.parents[0])

        for change in stack.changes:
            if change.change_id not in state.expected:
                self._store.update_ref(
                    self._repo_root, change_ref(stack.name, change.change_id), None, change.commit, message
                )
                state.expected[change.change_id] = change.commit

        pending = PendingSync(
            onto=state.onto,
            base=stack.base,
            order=snapshot.order,
            origins=origins,
            dropped=self._dropped_ids(state),
        )
        state.manifest = write_manifest(
            self._store,
            self._repo_root,
            stack.name,
            stack.upstream,
            stack.change_ids,
            pending,
            state.manifest,
            message,
        )
        state.pending = pending
        return pending

    def _old_parent(self, state: _Pass, change_id: str, commit: Commit) -> str:
        """Merge base for rebuilding a change.

        A ref moved by another writer may point at a commit built on top of the
        change, so its diff is taken against the parent the change had when the
        pass began.
        """
        pending = state.pending
        if pending is not None and change_id in pending.raced:
            origin = pending.origins.get(change_id)
            if origin is not None:
                return origin.parent
        return commit.parents[0]

    def _rewrite(self, state: _Pass, change: Change, new_parent: str) -> ChangeOutcome:
        commit = self._read_commit(change.commit)
        resolution = state.resolutions.get(change.change_id)

        if resolution is None and commit.parents == (new_parent,) and self._is_signed(commit):
            return ChangeOutcome(
                change_id=change.change_id,
                title=change.title,
                state=ChangeState.UNCHANGED,
                old_commit=change.commit,
                new_commit=change.commit,
            )

        if resolution is not None:
            tree = resolution
        elif commit.parents == (new_parent,):
            tree = commit.tree
        else:
            old_parent = self._old_parent(state, change.change_id, commit)
            merge = self._store.merge_commits(self._repo_root, old_parent, new_parent, change.commit)
            if not merge.clean:
                logger.info("Change %s conflicts in %s", change.change_id, ", ".join(merge.conflicts))
                return ChangeOutcome(
                    change_id=change.change_id,
                    title=change.title,
                    state=ChangeState.CONFLICTED,
                    old_commit=change.commit,
                    conflict_paths=merge.conflicts,
                )
            tree = merge.tree

        rebuilt = replace(commit, tree=tree, parents=(new_parent,), signature=None)
        signed = sign_commit(self._signer, rebuilt, self._require_key())
        oid = self._store.write(self._repo_root, signed)

        self._begin(state)
        ref = change_ref(state.stack.name, change.change_id)
        old = state.expected.get(change.change_id)
        if old != oid:
            self._store.update_ref(self._repo_root, ref, old, oid, f"unstacked: sync {change.title}")
            state.expected[change.change_id] = oid
        logger.debug("Rewrote %s: %s -> %s", change.change_id, change.commit, oid)

        return ChangeOutcome(
            change_id=change.change_id,
            title=change.title,
            state=ChangeState.REWRITTEN,
            old_commit=change.commit,
            new_commit=oid,
        )

    def _halt(self, state: _Pass, outcome: ChangeOutcome) -> None:
        if outcome.state == ChangeState.CONFLICTED:
            conflicted = replace(self._begin(state), conflicted=outcome.change_id)
            state.manifest = write_manifest(
                self._store,
                self._repo_root,
                state.stack.name,
                state.stack.upstream,
                state.stack.change_ids,
                conflicted,
                state.manifest,
                f"unstacked: conflict in {outcome.change_id}",
            )
            state.pending = conflicted
        elif (
            isinstance(outcome.error, RefConflict)
            and state.pending is not None
            and outcome.error.ref == change_ref(state.stack.name, outcome.change_id)
            and outcome.change_id not in state.pending.raced
        ):
            raced = replace(state.pending, raced=(*state.pending.raced, outcome.change_id))
            state.manifest = write_manifest(
                self._store,
                self._repo_root,
                state.stack.name,
                state.stack.upstream,
                state.stack.change_ids,
                raced,
                state.manifest,
                f"unstacked: {outcome.change_id} moved during sync",
            )
            state.pending = raced

    def _finish(self, state: _Pass) -> None:
        stack = state.stack
        snapshot = self._snapshot(stack)
        message = f"unstacked: finish sync of {stack.name}"

        if any(change_id not in state.expected for change_id in stack.change_ids):
            self._begin(state)
        if snapshot.base != state.onto:
            self._store.update_ref(self._repo_root, base_ref(stack.name), snapshot.base, state.onto, message)
        for change_id in self._dropped_ids(state):
            current = state.expected.pop(change_id, None)
            if current is not None:
                self._store.update_ref(self._repo_root, change_ref(stack.name, change_id), current, None, message)
        state.manifest = write_manifest(
            self._store,
            self._repo_root,
            stack.name,
            stack.upstream,
            stack.change_ids,
            None,
            state.manifest,
            message,
        )
        state.pending = None

    def _run(self, state: _Pass) -> SyncReport:
        stack = state.stack
        logger.info("Synchronizing stack '%s' onto %s", stack.name, state.onto)

        outcomes: list[ChangeOutcome] = []
        changes: list[Change] = []
        new_parent = state.onto
        halted = False
        for change in stack.changes:
            if halted:
                outcomes.append(
                    ChangeOutcome(
                        change_id=change.change_id,
                        title=change.title,
                        state=ChangeState.SKIPPED,
                        old_commit=change.commit,
                    )
                )
                changes.append(change)
                continue

            try:
                outcome = self._rewrite(state, change, new_parent)
            except (RefConflict, SigningUnavailable) as e:
                logger.info("Change %s failed: %s", change.change_id, e)
                outcome = ChangeOutcome(
                    change_id=change.change_id,
                    title=change.title,
                    state=ChangeState.FAILED,
                    old_commit=change.commit,
                    error=e,
                )
            outcomes.append(outcome)

            if outcome.succeeded and outcome.new_commit is not None:
                new_parent = outcome.new_commit
                changes.append(replace(change, commit=outcome.new_commit))
            else:
                halted = True
                changes.append(change)
                self._halt(state, outcome)

        if not halted:
            self._finish(state)

        base = state.onto if not halted else stack.base
        order = stack.change_ids if state.pending is not None or not halted else self._snapshot(stack).order
        result = Stack(
            name=stack.name,
            upstream=stack.upstream,
            base=base,
            changes=tuple(changes),
            pending=state.pending,
            snapshot=RefSnapshot(
                manifest=state.manifest,
                base=base,
                changes=dict(state.expected),
                order=order,
            ),
        )
        return SyncReport(stack=result, onto=state.onto, outcomes=tuple(outcomes))
