"""Fake Remote implementation for testing."""

from pathlib import Path

from unstacked.core.errors import RefConflict
from unstacked.core.remote.abc import Remote, RemoteRefUpdate


class FakeRemote(Remote):
    """In-memory fake of one or more remotes.

    This class has NO public setup methods. All state is provided via constructor
    using keyword arguments with sensible defaults (empty dicts).
    """

    def __init__(
        self,
        *,
        refs: dict[str, dict[str, str]] | None = None,
        push_raises: Exception | None = None,
    ) -> None:
        """Create FakeRemote with pre-configured state.

        Args:
            refs: Mapping of remote name -> (ref name -> oid)
            push_raises: Exception to raise when push() is called
        """
        self._refs = {name: dict(values) for name, values in (refs or {}).items()}
        self._push_raises = push_raises
        self._pushes: list[tuple[str, tuple[RemoteRefUpdate, ...]]] = []
        self._fetches: list[tuple[str, tuple[str, ...]]] = []

    @property
    def pushes(self) -> list[tuple[str, tuple[RemoteRefUpdate, ...]]]:
        """Successful pushes as (remote, updates), in call order."""
        return self._pushes

    @property
    def fetches(self) -> list[tuple[str, tuple[str, ...]]]:
        return self._fetches

    def remote_refs(self, remote: str) -> dict[str, str]:
        """Read-only snapshot of a remote's refs for test assertions."""
        return dict(self._refs.get(remote, {}))

    def list_refs(self, repo_root: Path, remote: str, prefix: str) -> dict[str, str]:
        return {
            name: oid
            for name, oid in sorted(self._refs.get(remote, {}).items())
            if name.startswith(prefix)
        }

    def fetch(self, repo_root: Path, remote: str, refspecs: list[str]) -> None:
        self._fetches.append((remote, tuple(refspecs)))

    def push(self, repo_root: Path, remote: str, updates: list[RemoteRefUpdate]) -> None:
        if self._push_raises is not None:
            raise self._push_raises
        current = self._refs.setdefault(remote, {})
        # Atomic like a single git push with leases: check everything first
        for update in updates:
            actual = current.get(update.remote_ref)
            if actual != update.expected:
                raise RefConflict(update.remote_ref, update.expected, actual)
        for update in updates:
            if update.new is None:
                current.pop(update.remote_ref, None)
            else:
                current[update.remote_ref] = update.new
        self._pushes.append((remote, tuple(updates)))
