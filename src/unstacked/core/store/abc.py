"""Object store interface.

Architecture:
- ObjectStore: Abstract base class defining the interface
- RealObjectStore: Production implementation using git plumbing commands
- FakeObjectStore: In-memory implementation for tests
- DryRunObjectStore: Wrapper that reads through and refuses ref mutation

The object store is the only component that talks to the object database.
Everything else sees immutable Commit/Tree/Blob values and oids.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from unstacked.core.store.types import GitObject, TreeMerge


class ObjectStore(ABC):
    """Abstract interface for object database and ref access.

    All implementations (real and fake) must implement this interface.
    This interface contains ONLY runtime operations - no test setup methods.
    """

    @abstractmethod
    def read(self, repo_root: Path, oid: str) -> GitObject:
        """Read and decode an object.

        Raises:
            RuntimeError: If the object does not exist
        """
        ...

    @abstractmethod
    def write(self, repo_root: Path, obj: GitObject) -> str:
        """Write an object and return its id.

        Content-addressed: writing the same value twice returns the same id.
        """
        ...

    @abstractmethod
    def has_object(self, repo_root: Path, oid: str) -> bool:
        """Check whether an object exists locally."""
        ...

    @abstractmethod
    def resolve_ref(self, repo_root: Path, name: str) -> str | None:
        """Return the oid a fully qualified ref points at, or None if absent."""
        ...

    @abstractmethod
    def update_ref(
        self,
        repo_root: Path,
        name: str,
        old: str | None,
        new: str | None,
        message: str,
    ) -> None:
        """Compare-and-swap a ref.

        Args:
            repo_root: Repository root directory
            name: Fully qualified ref name
            old: Value the ref must currently hold; None means it must not exist
            new: Value to store; None deletes the ref
            message: Reflog message

        Raises:
            RefConflict: If the ref's current value differs from ``old``
        """
        ...

    @abstractmethod
    def list_refs(self, repo_root: Path, prefix: str) -> dict[str, str]:
        """Map every ref under ``prefix`` to the oid it points at."""
        ...

    @abstractmethod
    def resolve_revision(self, repo_root: Path, rev: str) -> str | None:
        """Resolve a user-supplied revision (branch, ref, oid) to a commit id."""
        ...

    @abstractmethod
    def full_ref_name(self, repo_root: Path, rev: str) -> str | None:
        """Expand a short branch name to its full ref, or None if ``rev`` is not a ref."""
        ...

    @abstractmethod
    def merge_commits(self, repo_root: Path, base: str, ours: str, theirs: str) -> TreeMerge:
        """Three-way merge the trees of ``ours`` and ``theirs`` against ``base``.

        This is the cherry-pick primitive: applying ``theirs`` (a change whose
        parent is ``base``) on top of ``ours`` (the new parent).
        """
        ...

    @abstractmethod
    def is_ancestor(self, repo_root: Path, ancestor: str, descendant: str) -> bool:
        """Check whether ``ancestor`` is reachable from ``descendant``."""
        ...

    @abstractmethod
    def merge_base(self, repo_root: Path, first: str, second: str) -> str | None:
        """Return the best common ancestor of two commits, or None."""
        ...

    @abstractmethod
    def list_commits(self, repo_root: Path, base: str | None, tip: str) -> list[str]:
        """List first-parent commits reachable from ``tip`` but not ``base``, oldest first."""
        ...

    @abstractmethod
    def read_config(self, repo_root: Path, key: str) -> str | None:
        """Read a git configuration value, or None if unset."""
        ...

    @abstractmethod
    def discover_repo_root(self, cwd: Path) -> Path:
        """Return the top-level directory of the repository containing ``cwd``.

        Raises:
            RuntimeError: If ``cwd`` is not inside a git repository
        """
        ...

    @abstractmethod
    def get_git_dir(self, repo_root: Path) -> Path:
        """Return the common git directory (shared by all worktrees)."""
        ...
