"""Compare local change refs with their published branches and push safely.

Every change (and the stack base) is published as one remote branch. This
tool is the sole writer of those branches, so a remote that is behind local
history, or still holds exactly what we pushed last time, may be moved. Any
other remote value means somebody else wrote to the branch; such DIVERGED
branches are only overwritten when the caller names them explicitly.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from unstacked.core.errors import SyncInProgress
from unstacked.core.remote.abc import Remote, RemoteRefUpdate
from unstacked.core.stack.model import Stack
from unstacked.core.stack.refs import PUSHED_BASE, pushed_prefix, pushed_ref, remote_branch, remote_prefix
from unstacked.core.store.abc import ObjectStore

logger = logging.getLogger(__name__)


class Relationship(Enum):
    UP_TO_DATE = "up-to-date"
    AHEAD = "ahead"
    DIVERGED = "diverged"


@dataclass(frozen=True)
class ReconciliationRecord:
    """Transient comparison of one branch; never persisted.

    ``local`` is None for a retired branch: its change has left the stack and
    the branch should be deleted from the remote.
    """

    change_id: str
    branch: str
    local: str | None
    remote: str | None
    relationship: Relationship
    pushed: str | None = None

    @property
    def retired(self) -> bool:
        return self.local is None


@dataclass(frozen=True)
class PushReport:
    pushed: tuple[ReconciliationRecord, ...]
    skipped_diverged: tuple[ReconciliationRecord, ...]
    up_to_date: tuple[ReconciliationRecord, ...]


class Reconciler:
    def __init__(
        self,
        store: ObjectStore,
        remote: Remote,
        repo_root: Path,
        remote_name: str,
        branch_prefix: str,
    ) -> None:
        self._store = store
        self._remote = remote
        self._repo_root = repo_root
        self._remote_name = remote_name
        self._branch_prefix = branch_prefix

    def compare(self, stack: Stack) -> list[ReconciliationRecord]:
        """Classify every branch of ``stack`` against the remote, bottom first."""
        remote_refs = self._remote.list_refs(
            self._repo_root, self._remote_name, remote_prefix(self._branch_prefix, stack.name)
        )
        pushed = {
            ref[len(pushed_prefix(stack.name)) :]: oid
            for ref, oid in self._store.list_refs(self._repo_root, pushed_prefix(stack.name)).items()
        }

        wanted: list[tuple[str, str | None]] = [(PUSHED_BASE, stack.base)]
        wanted.extend((change.change_id, change.commit) for change in stack.changes)
        current_ids = {change_id for change_id, _ in wanted}
        wanted.extend((change_id, None) for change_id in sorted(pushed) if change_id not in current_ids)

        records: list[ReconciliationRecord] = []
        for change_id, local in wanted:
            branch = remote_branch(self._branch_prefix, stack.name, change_id)
            remote = remote_refs.get(branch)
            last_pushed = pushed.get(change_id)
            records.append(
                ReconciliationRecord(
                    change_id=change_id,
                    branch=branch,
                    local=local,
                    remote=remote,
                    relationship=self._classify(branch, local, remote, last_pushed),
                    pushed=last_pushed,
                )
            )
        return records

    def _classify(
        self,
        branch: str,
        local: str | None,
        remote: str | None,
        last_pushed: str | None,
    ) -> Relationship:
        if local is None:
            if remote is None:
                return Relationship.UP_TO_DATE
            if remote == last_pushed:
                return Relationship.AHEAD
            return Relationship.DIVERGED
        if remote == local:
            return Relationship.UP_TO_DATE
        if remote is None or remote == last_pushed:
            return Relationship.AHEAD

        if not self._store.has_object(self._repo_root, remote):
            self._remote.fetch(self._repo_root, self._remote_name, [branch])
        if not self._store.has_object(self._repo_root, remote):
            return Relationship.DIVERGED
        if self._store.is_ancestor(self._repo_root, remote, local):
            return Relationship.AHEAD
        return Relationship.DIVERGED

    def push(
        self,
        stack: Stack,
        force_diverged: frozenset[str] = frozenset(),
        records: list[ReconciliationRecord] | None = None,
    ) -> PushReport:
        """Publish every AHEAD branch, plus DIVERGED ones named in ``force_diverged``.

        Each update is leased on the remote value seen by compare(), so a branch
        that moves between compare and push fails with RefConflict.
        """
        if stack.pending is not None:
            raise SyncInProgress(stack.name, stack.pending.onto)
        if records is None:
            records = self.compare(stack)

        to_push: list[ReconciliationRecord] = []
        skipped: list[ReconciliationRecord] = []
        current: list[ReconciliationRecord] = []
        for record in records:
            if record.relationship == Relationship.UP_TO_DATE:
                current.append(record)
            elif record.relationship == Relationship.AHEAD or record.change_id in force_diverged:
                to_push.append(record)
            else:
                skipped.append(record)

        updates = [
            RemoteRefUpdate(remote_ref=record.branch, new=record.local, expected=record.remote)
            for record in to_push
        ]
        if updates:
            self._remote.push(self._repo_root, self._remote_name, updates)

        message = f"unstacked: push {stack.name}"
        for record in to_push:
            self._store.update_ref(
                self._repo_root, pushed_ref(stack.name, record.change_id), record.pushed, record.local, message
            )
        for record in current:
            if record.local is not None and record.pushed != record.local:
                self._store.update_ref(
                    self._repo_root, pushed_ref(stack.name, record.change_id), record.pushed, record.local, message
                )
            elif record.local is None and record.pushed is not None:
                self._store.update_ref(
                    self._repo_root, pushed_ref(stack.name, record.change_id), record.pushed, None, message
                )

        logger.info("Pushed %d branches of stack '%s'", len(to_push), stack.name)
        return PushReport(pushed=tuple(to_push), skipped_diverged=tuple(skipped), up_to_date=tuple(current))
