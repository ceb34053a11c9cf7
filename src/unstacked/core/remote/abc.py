"""Remote repository interface.

The wire protocol is left to the git executable; this layer only lists,
fetches and pushes refs, with every push guarded by a lease so the remote
side is compare-and-swap like local refs.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class RemoteRefUpdate:
    """One leased ref update on the remote.

    ``new`` None deletes the ref; ``expected`` None requires that the ref does
    not exist on the remote yet.
    """

    remote_ref: str
    new: str | None
    expected: str | None


class Remote(ABC):
    """Abstract interface for remote ref operations."""

    @abstractmethod
    def list_refs(self, repo_root: Path, remote: str, prefix: str) -> dict[str, str]:
        """Map every remote ref under ``prefix`` to the oid it points at."""
        ...

    @abstractmethod
    def fetch(self, repo_root: Path, remote: str, refspecs: list[str]) -> None:
        """Fetch refs (and the objects they need) from ``remote``."""
        ...

    @abstractmethod
    def push(self, repo_root: Path, remote: str, updates: list[RemoteRefUpdate]) -> None:
        """Apply all ``updates`` in a single push.

        Raises:
            RefConflict: If a remote ref no longer holds its expected value
        """
        ...
