"""Production ObjectStore implementation using git plumbing via subprocess."""

import logging
import subprocess
from pathlib import Path

from unstacked.core.errors import RefConflict
from unstacked.core.store.abc import ObjectStore
from unstacked.core.store.codec import decode_object, encode_object
from unstacked.core.store.types import GitObject, TreeMerge, object_type
from unstacked.core.subprocess import run_subprocess_with_context

logger = logging.getLogger(__name__)


class RealObjectStore(ObjectStore):
    """Production implementation using subprocess.

    All operations execute git plumbing commands. Objects are exchanged as raw
    bytes and decoded by the shared codec.
    """

    def read(self, repo_root: Path, oid: str) -> GitObject:
        result = run_subprocess_with_context(
            ["git", "cat-file", "--batch"],
            operation_context=f"read object {oid}",
            cwd=repo_root,
            text=False,
            input=f"{oid}\n".encode("ascii"),
        )
        header, _, rest = result.stdout.partition(b"\n")
        fields = header.decode("ascii", errors="replace").split()
        if len(fields) != 3:
            raise RuntimeError(f"Object {oid} not found")
        _, kind, size = fields
        body = rest[: int(size)]
        return decode_object(kind, body, hash_size=len(fields[0]) // 2)

    def write(self, repo_root: Path, obj: GitObject) -> str:
        kind = object_type(obj)
        result = run_subprocess_with_context(
            ["git", "hash-object", "-w", "-t", kind, "--stdin"],
            operation_context=f"write {kind} object",
            cwd=repo_root,
            text=False,
            input=encode_object(obj),
        )
        return result.stdout.decode("ascii").strip()

    def has_object(self, repo_root: Path, oid: str) -> bool:
        result = subprocess.run(
            ["git", "cat-file", "-e", oid],
            cwd=repo_root,
            capture_output=True,
            check=False,
        )
        return result.returncode == 0

    def resolve_ref(self, repo_root: Path, name: str) -> str | None:
        result = subprocess.run(
            ["git", "rev-parse", "--verify", "--quiet", name],
            cwd=repo_root,
            capture_output=True,
            text=True,
            check=False,
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def update_ref(
        self,
        repo_root: Path,
        name: str,
        old: str | None,
        new: str | None,
        message: str,
    ) -> None:
        if new is None and old is None:
            actual = self.resolve_ref(repo_root, name)
            if actual is not None:
                raise RefConflict(name, None, actual)
            return

        if new is None:
            instruction = f"delete {name} {old}\n"
        elif old is None:
            instruction = f"create {name} {new}\n"
        else:
            instruction = f"update {name} {new} {old}\n"

        try:
            run_subprocess_with_context(
                ["git", "update-ref", "-m", message, "--stdin"],
                operation_context=f"update ref {name}",
                cwd=repo_root,
                input=instruction,
            )
        except RuntimeError:
            actual = self.resolve_ref(repo_root, name)
            if actual != old:
                raise RefConflict(name, old, actual) from None
            raise
        logger.debug("Updated %s: %s -> %s", name, old, new)

    def list_refs(self, repo_root: Path, prefix: str) -> dict[str, str]:
        result = run_subprocess_with_context(
            ["git", "for-each-ref", "--format=%(refname) %(objectname)", prefix],
            operation_context=f"list refs under {prefix}",
            cwd=repo_root,
        )
        refs: dict[str, str] = {}
        for line in result.stdout.splitlines():
            if not line.strip():
                continue
            name, oid = line.rsplit(" ", 1)
            refs[name] = oid
        return refs

    def resolve_revision(self, repo_root: Path, rev: str) -> str | None:
        return self.resolve_ref(repo_root, f"{rev}^{{commit}}")

    def full_ref_name(self, repo_root: Path, rev: str) -> str | None:
        result = subprocess.run(
            ["git", "rev-parse", "--symbolic-full-name", rev],
            cwd=repo_root,
            capture_output=True,
            text=True,
            check=False,
        )
        name = result.stdout.strip()
        if result.returncode != 0 or not name.startswith("refs/"):
            return None
        return name

    def merge_commits(self, repo_root: Path, base: str, ours: str, theirs: str) -> TreeMerge:
        cmd = [
            "git",
            "merge-tree",
            "--write-tree",
            "--name-only",
            "--no-messages",
            f"--merge-base={base}",
            ours,
            theirs,
        ]
        result = subprocess.run(cmd, cwd=repo_root, capture_output=True, text=True, check=False)
        if result.returncode not in (0, 1):
            raise RuntimeError(
                f"Failed to merge {theirs} onto {ours}\n"
                f"Command: {' '.join(cmd)}\n"
                f"Exit code: {result.returncode}\n"
                f"stderr: {result.stderr.strip()}"
            )
        lines = [line for line in result.stdout.splitlines() if line]
        conflicts = tuple(lines[1:]) if result.returncode == 1 else ()
        return TreeMerge(tree=lines[0], conflicts=conflicts)

    def is_ancestor(self, repo_root: Path, ancestor: str, descendant: str) -> bool:
        result = subprocess.run(
            ["git", "merge-base", "--is-ancestor", ancestor, descendant],
            cwd=repo_root,
            capture_output=True,
            text=True,
            check=False,
        )
        if result.returncode == 0:
            return True
        if result.returncode == 1:
            return False
        raise RuntimeError(
            f"Failed to check ancestry of {ancestor} in {descendant}\nstderr: {result.stderr.strip()}"
        )

    def merge_base(self, repo_root: Path, first: str, second: str) -> str | None:
        result = subprocess.run(
            ["git", "merge-base", first, second],
            cwd=repo_root,
            capture_output=True,
            text=True,
            check=False,
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def list_commits(self, repo_root: Path, base: str | None, tip: str) -> list[str]:
        revision_range = tip if base is None else f"{base}..{tip}"
        result = run_subprocess_with_context(
            ["git", "rev-list", "--reverse", "--first-parent", revision_range],
            operation_context=f"list commits in {revision_range}",
            cwd=repo_root,
        )
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def read_config(self, repo_root: Path, key: str) -> str | None:
        result = subprocess.run(
            ["git", "config", "--get", key],
            cwd=repo_root,
            capture_output=True,
            text=True,
            check=False,
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def discover_repo_root(self, cwd: Path) -> Path:
        result = run_subprocess_with_context(
            ["git", "rev-parse", "--show-toplevel"],
            operation_context="find repository root",
            cwd=cwd,
        )
        return Path(result.stdout.strip())

    def get_git_dir(self, repo_root: Path) -> Path:
        result = run_subprocess_with_context(
            ["git", "rev-parse", "--path-format=absolute", "--git-common-dir"],
            operation_context="find git directory",
            cwd=repo_root,
        )
        return Path(result.stdout.strip())
