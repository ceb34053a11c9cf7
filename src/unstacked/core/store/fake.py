"""Fake ObjectStore implementation for testing.

FakeObjectStore is an in-memory implementation that accepts pre-configured state
in its constructor. Object ids are computed with the same codec as git, so a
commit written here has the id git would give it.
"""

from collections import deque
from pathlib import Path

from unstacked.core.errors import RefConflict
from unstacked.core.store.abc import ObjectStore
from unstacked.core.store.codec import object_id
from unstacked.core.store.trees import build_tree, flatten_tree
from unstacked.core.store.types import Commit, GitObject, TreeMerge

_SHORT_REF_PREFIXES = ("refs/heads/", "refs/remotes/", "refs/tags/")


class FakeObjectStore(ObjectStore):
    """In-memory fake implementation of the object store.

    This class has NO public setup methods. All state is provided via constructor
    using keyword arguments with sensible defaults (empty dicts).

    Merges are resolved per path: a path changed on only one side takes that
    side, a path changed identically on both sides is clean, anything else is a
    conflict. Renames are not detected.
    """

    def __init__(
        self,
        *,
        objects: dict[str, GitObject] | None = None,
        refs: dict[str, str] | None = None,
        config: dict[str, str] | None = None,
        ref_races: dict[str, str | None] | None = None,
        repo_root: Path | None = None,
    ) -> None:
        """Create FakeObjectStore with pre-configured state.

        Args:
            objects: Mapping of oid -> object already present in the database
            refs: Mapping of full ref name -> oid
            config: Mapping of git config key -> value for read_config()
            ref_races: Mapping of ref name -> value another process writes to that
                ref just before our first update of it (None deletes it). Used to
                simulate concurrent modification.
            repo_root: Value returned by discover_repo_root(); defaults to cwd
        """
        self._objects = dict(objects) if objects is not None else {}
        self._refs = dict(refs) if refs is not None else {}
        self._config = config if config is not None else {}
        self._ref_races = dict(ref_races) if ref_races is not None else {}
        self._repo_root = repo_root
        self._written_objects: list[str] = []
        self._ref_updates: list[tuple[str, str | None, str | None]] = []

    @property
    def refs(self) -> dict[str, str]:
        """Read-only snapshot of current ref values for test assertions."""
        return dict(self._refs)

    @property
    def written_objects(self) -> list[str]:
        """Ids passed through write(), in call order."""
        return self._written_objects

    @property
    def ref_updates(self) -> list[tuple[str, str | None, str | None]]:
        """Successful (name, old, new) ref updates, in call order."""
        return self._ref_updates

    def read(self, repo_root: Path, oid: str) -> GitObject:
        obj = self._objects.get(oid)
        if obj is None:
            raise RuntimeError(f"Object {oid} not found")
        return obj

    def write(self, repo_root: Path, obj: GitObject) -> str:
        oid = object_id(obj)
        self._objects[oid] = obj
        self._written_objects.append(oid)
        return oid

    def has_object(self, repo_root: Path, oid: str) -> bool:
        return oid in self._objects

    def resolve_ref(self, repo_root: Path, name: str) -> str | None:
        return self._refs.get(name)

    def update_ref(
        self,
        repo_root: Path,
        name: str,
        old: str | None,
        new: str | None,
        message: str,
    ) -> None:
        if name in self._ref_races:
            raced = self._ref_races.pop(name)
            if raced is None:
                self._refs.pop(name, None)
            else:
                self._refs[name] = raced

        actual = self._refs.get(name)
        if actual != old:
            raise RefConflict(name, old, actual)
        if new is None:
            self._refs.pop(name, None)
        else:
            self._refs[name] = new
        self._ref_updates.append((name, old, new))

    def list_refs(self, repo_root: Path, prefix: str) -> dict[str, str]:
        return {name: oid for name, oid in sorted(self._refs.items()) if name.startswith(prefix)}

    def resolve_revision(self, repo_root: Path, rev: str) -> str | None:
        oid = self._refs.get(rev)
        if oid is None:
            full = self.full_ref_name(repo_root, rev)
            oid = self._refs.get(full) if full is not None else rev
        if isinstance(self._objects.get(oid), Commit):
            return oid
        return None

    def full_ref_name(self, repo_root: Path, rev: str) -> str | None:
        if rev.startswith("refs/") and rev in self._refs:
            return rev
        for prefix in _SHORT_REF_PREFIXES:
            if prefix + rev in self._refs:
                return prefix + rev
        return None

    def merge_commits(self, repo_root: Path, base: str, ours: str, theirs: str) -> TreeMerge:
        base_files = flatten_tree(self, repo_root, self._commit(base).tree)
        our_files = flatten_tree(self, repo_root, self._commit(ours).tree)
        their_files = flatten_tree(self, repo_root, self._commit(theirs).tree)

        merged: dict[str, tuple[str, str]] = {}
        conflicts: list[str] = []
        for path in sorted(set(base_files) | set(our_files) | set(their_files)):
            original = base_files.get(path)
            mine = our_files.get(path)
            other = their_files.get(path)
            if mine == other or other == original:
                result = mine
            elif mine == original:
                result = other
            else:
                conflicts.append(path)
                result = mine
            if result is not None:
                merged[path] = result

        tree = build_tree(self, repo_root, merged)
        return TreeMerge(tree=tree, conflicts=tuple(conflicts))

    def is_ancestor(self, repo_root: Path, ancestor: str, descendant: str) -> bool:
        return ancestor in self._ancestors(descendant)

    def merge_base(self, repo_root: Path, first: str, second: str) -> str | None:
        first_ancestors = self._ancestors(first)
        queue = deque([second])
        seen: set[str] = set()
        while queue:
            oid = queue.popleft()
            if oid in seen:
                continue
            seen.add(oid)
            if oid in first_ancestors:
                return oid
            queue.extend(self._commit(oid).parents)
        return None

    def list_commits(self, repo_root: Path, base: str | None, tip: str) -> list[str]:
        excluded = self._ancestors(base) if base is not None else set()
        commits: list[str] = []
        current: str | None = tip
        while current is not None and current not in excluded:
            commits.append(current)
            parents = self._commit(current).parents
            current = parents[0] if parents else None
        commits.reverse()
        return commits

    def read_config(self, repo_root: Path, key: str) -> str | None:
        return self._config.get(key)

    def discover_repo_root(self, cwd: Path) -> Path:
        if self._repo_root is not None:
            return self._repo_root
        return cwd

    def get_git_dir(self, repo_root: Path) -> Path:
        return repo_root / ".git"

    def _commit(self, oid: str) -> Commit:
        obj = self._objects.get(oid)
        if not isinstance(obj, Commit):
            raise RuntimeError(f"{oid} is not a commit")
        return obj

    def _ancestors(self, oid: str) -> set[str]:
        """All commits reachable from ``oid``, including itself."""
        seen: set[str] = set()
        stack = [oid]
        while stack:
            current = stack.pop()
            if current in seen or current not in self._objects:
                continue
            seen.add(current)
            stack.extend(self._commit(current).parents)
        return seen
