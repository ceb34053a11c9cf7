"""Dry-run Remote wrapper: lists refs, prints pushes, skips fetches."""

from pathlib import Path

from unstacked.core.output import user_output
from unstacked.core.remote.abc import Remote, RemoteRefUpdate


class DryRunRemote(Remote):
    def __init__(self, wrapped: Remote) -> None:
        self._wrapped = wrapped

    def list_refs(self, repo_root: Path, remote: str, prefix: str) -> dict[str, str]:
        return self._wrapped.list_refs(repo_root, remote, prefix)

    def fetch(self, repo_root: Path, remote: str, refspecs: list[str]) -> None:
        """No-op for fetching in dry-run mode."""
        pass

    def push(self, repo_root: Path, remote: str, updates: list[RemoteRefUpdate]) -> None:
        for update in updates:
            if update.new is None:
                user_output(f"[DRY RUN] Would delete {update.remote_ref} on {remote}")
            else:
                user_output(f"[DRY RUN] Would push {update.new[:12]} to {update.remote_ref} on {remote}")
