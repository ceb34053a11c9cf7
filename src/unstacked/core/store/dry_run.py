"""Dry-run ObjectStore wrapper.

Reads and object writes go to the wrapped store (objects are inert until a
ref points at them); ref updates are printed instead of executed.
"""

from pathlib import Path

from unstacked.core.output import user_output
from unstacked.core.store.abc import ObjectStore
from unstacked.core.store.types import GitObject, TreeMerge


class DryRunObjectStore(ObjectStore):
    """No-op wrapper that prevents ref mutation.

    Usage:
        real_store = RealObjectStore()
        store = DryRunObjectStore(real_store)

        # Prints "[DRY RUN] Would ..." instead of moving the ref
        store.update_ref(repo_root, name, old, new, "sync")
    """

    def __init__(self, wrapped: ObjectStore) -> None:
        """Create a dry-run wrapper around an ObjectStore implementation.

        Args:
            wrapped: The ObjectStore implementation to wrap (usually RealObjectStore)
        """
        self._wrapped = wrapped

    def read(self, repo_root: Path, oid: str) -> GitObject:
        return self._wrapped.read(repo_root, oid)

    def write(self, repo_root: Path, obj: GitObject) -> str:
        return self._wrapped.write(repo_root, obj)

    def has_object(self, repo_root: Path, oid: str) -> bool:
        return self._wrapped.has_object(repo_root, oid)

    def resolve_ref(self, repo_root: Path, name: str) -> str | None:
        return self._wrapped.resolve_ref(repo_root, name)

    def update_ref(
        self,
        repo_root: Path,
        name: str,
        old: str | None,
        new: str | None,
        message: str,
    ) -> None:
        if new is None:
            user_output(f"[DRY RUN] Would delete ref {name} (at {old})")
        elif old is None:
            user_output(f"[DRY RUN] Would create ref {name} at {new}")
        else:
            user_output(f"[DRY RUN] Would update ref {name}: {old[:12]} -> {new[:12]}")

    def list_refs(self, repo_root: Path, prefix: str) -> dict[str, str]:
        return self._wrapped.list_refs(repo_root, prefix)

    def resolve_revision(self, repo_root: Path, rev: str) -> str | None:
        return self._wrapped.resolve_revision(repo_root, rev)

    def full_ref_name(self, repo_root: Path, rev: str) -> str | None:
        return self._wrapped.full_ref_name(repo_root, rev)

    def merge_commits(self, repo_root: Path, base: str, ours: str, theirs: str) -> TreeMerge:
        return self._wrapped.merge_commits(repo_root, base, ours, theirs)

    def is_ancestor(self, repo_root: Path, ancestor: str, descendant: str) -> bool:
        return self._wrapped.is_ancestor(repo_root, ancestor, descendant)

    def merge_base(self, repo_root: Path, first: str, second: str) -> str | None:
        return self._wrapped.merge_base(repo_root, first, second)

    def list_commits(self, repo_root: Path, base: str | None, tip: str) -> list[str]:
        return self._wrapped.list_commits(repo_root, base, tip)

    def read_config(self, repo_root: Path, key: str) -> str | None:
        return self._wrapped.read_config(repo_root, key)

    def discover_repo_root(self, cwd: Path) -> Path:
        return self._wrapped.discover_repo_root(cwd)

    def get_git_dir(self, repo_root: Path) -> Path:
        return self._wrapped.get_git_dir(repo_root)
