"""Immutable stack values and the pure operations that reorder them.

Nothing here touches the object store: insert, remove and reorder return a
new logical ordering and leave the physical rewrite to the sync engine.
"""

from dataclasses import dataclass, field, replace

from unstacked.core.errors import ChangeNotFound


@dataclass(frozen=True)
class Change:
    """A logical unit of work, identified by ``change_id`` across rewrites."""

    change_id: str
    commit: str
    title: str
    position: int = 0


@dataclass(frozen=True)
class ChangeOrigin:
    """Where a change stood before the current sync pass touched it."""

    commit: str
    parent: str


@dataclass(frozen=True)
class PendingSync:
    """Record of an unfinished sync pass, persisted in the manifest.

    Attributes:
        onto: Base commit the pass is rebasing onto
        base: Base commit before the pass started
        order: Change order before the pass started (restored by abort)
        origins: Commit and parent of every change before the pass touched it
        dropped: Changes removed from the stack whose refs are deleted on completion
        conflicted: Change the pass halted on, if it halted on a conflict
        raced: Changes whose refs another writer moved while the pass was
            unfinished; they are rebuilt from the ref's current commit
    """

    onto: str
    base: str
    order: tuple[str, ...]
    origins: dict[str, ChangeOrigin] = field(default_factory=dict)
    dropped: tuple[str, ...] = ()
    conflicted: str | None = None
    raced: tuple[str, ...] = ()

    def is_untouched(self, change_id: str, commit: str, parent: str | None) -> bool:
        origin = self.origins.get(change_id)
        if origin is None:
            return False
        return origin.commit == commit and origin.parent == parent


@dataclass(frozen=True)
class RefSnapshot:
    """Ref values observed when the stack was loaded; expected values for CAS."""

    manifest: str | None
    base: str | None
    changes: dict[str, str] = field(default_factory=dict)
    order: tuple[str, ...] = ()


@dataclass(frozen=True)
class Stack:
    name: str
    upstream: str
    base: str
    changes: tuple[Change, ...] = ()
    pending: PendingSync | None = None
    dropped: tuple[Change, ...] = ()
    snapshot: RefSnapshot | None = None

    @property
    def change_ids(self) -> tuple[str, ...]:
        return tuple(change.change_id for change in self.changes)

    @property
    def top(self) -> str:
        """Commit at the top of the stack, or the base when the stack is empty."""
        if not self.changes:
            return self.base
        return self.changes[-1].commit

    def find(self, change_id: str) -> Change:
        for change in self.changes:
            if change.change_id == change_id:
                return change
        raise ChangeNotFound(self.name, change_id)

    def index_of(self, change_id: str) -> int:
        return self.find(change_id).position

    def insert(self, change: Change, after_index: int) -> "Stack":
        """Return a stack with ``change`` placed after ``after_index`` (-1 for the bottom)."""
        if change.change_id in self.change_ids:
            raise ValueError(f"Change {change.change_id} is already in stack '{self.name}'")
        if after_index < -1 or after_index >= len(self.changes):
            raise IndexError(f"Cannot insert after position {after_index} in a stack of {len(self.changes)}")
        changes = list(self.changes)
        changes.insert(after_index + 1, change)
        return self._with_changes(changes)

    def remove(self, change_id: str) -> "Stack":
        removed = self.find(change_id)
        changes = [change for change in self.changes if change.change_id != change_id]
        return replace(self._with_changes(changes), dropped=(*self.dropped, removed))

    def reorder(self, change_id: str, new_index: int) -> "Stack":
        moved = self.find(change_id)
        if new_index < 0 or new_index >= len(self.changes):
            raise IndexError(f"Position {new_index} is outside a stack of {len(self.changes)}")
        changes = [change for change in self.changes if change.change_id != change_id]
        changes.insert(new_index, moved)
        return self._with_changes(changes)

    def _with_changes(self, changes: list[Change]) -> "Stack":
        positioned = tuple(replace(change, position=index) for index, change in enumerate(changes))
        return replace(self, changes=positioned)
