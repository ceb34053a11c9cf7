"""Production Remote implementation using git ls-remote, fetch and push."""

import logging
import subprocess
from pathlib import Path

from unstacked.core.errors import RefConflict
from unstacked.core.remote.abc import Remote, RemoteRefUpdate
from unstacked.core.subprocess import run_subprocess_with_context

logger = logging.getLogger(__name__)


def lease_argument(update: RemoteRefUpdate) -> str:
    # An empty expected value asks git to require that the ref is absent
    return f"--force-with-lease={update.remote_ref}:{update.expected or ''}"


def refspec(update: RemoteRefUpdate) -> str:
    if update.new is None:
        return f":{update.remote_ref}"
    return f"{update.new}:{update.remote_ref}"


def parse_push_rejections(output: str) -> dict[str, str]:
    """Map each rejected remote ref to git's summary from ``push --porcelain`` output."""
    rejected: dict[str, str] = {}
    for line in output.splitlines():
        fields = line.split("\t")
        if len(fields) < 3 or fields[0] != "!":
            continue
        _, _, destination = fields[1].partition(":")
        rejected[destination] = fields[2]
    return rejected


class RealRemote(Remote):
    """Production implementation using subprocess."""

    def list_refs(self, repo_root: Path, remote: str, prefix: str) -> dict[str, str]:
        result = run_subprocess_with_context(
            ["git", "ls-remote", "--refs", remote, f"{prefix}*"],
            operation_context=f"list refs under {prefix} on remote '{remote}'",
            cwd=repo_root,
        )
        refs: dict[str, str] = {}
        for line in result.stdout.splitlines():
            oid, _, name = line.partition("\t")
            if name.startswith(prefix):
                refs[name] = oid
        return refs

    def fetch(self, repo_root: Path, remote: str, refspecs: list[str]) -> None:
        run_subprocess_with_context(
            ["git", "fetch", "--no-tags", remote, *refspecs],
            operation_context=f"fetch from remote '{remote}'",
            cwd=repo_root,
        )

    def push(self, repo_root: Path, remote: str, updates: list[RemoteRefUpdate]) -> None:
        if not updates:
            return
        cmd = ["git", "push", "--porcelain"]
        cmd.extend(lease_argument(update) for update in updates)
        cmd.append(remote)
        cmd.extend(refspec(update) for update in updates)

        result = subprocess.run(cmd, cwd=repo_root, capture_output=True, text=True, check=False)
        rejected = parse_push_rejections(result.stdout)
        for update in updates:
            summary = rejected.get(update.remote_ref)
            if summary is not None and "stale info" in summary:
                raise RefConflict(update.remote_ref, update.expected, None)
        if result.returncode != 0 or rejected:
            raise RuntimeError(
                f"Failed to push to remote '{remote}'\n"
                f"Command: {' '.join(cmd)}\n"
                f"Exit code: {result.returncode}\n"
                f"stdout: {result.stdout.strip()}\n"
                f"stderr: {result.stderr.strip()}"
            )
        logger.debug("Pushed %d refs to %s", len(updates), remote)
