"""Helpers for CLI testing with CliRunner.

Command tests build an UnstackedContext around fakes and pass it as ``obj`` so
the CLI group skips create_context(). Integration tests use cli_test_repo()
for a real git repository instead.
"""

import subprocess
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from tests.test_utils.builders import REPO_ROOT, TEST_KEY
from unstacked.core.config import UnstackedConfig
from unstacked.core.context import UnstackedContext
from unstacked.core.remote.abc import Remote
from unstacked.core.signing.abc import Signer
from unstacked.core.store.abc import ObjectStore


def fake_context(
    store: ObjectStore,
    config_dir: Path,
    *,
    signer: Signer | None = None,
    remote: Remote | None = None,
    config: UnstackedConfig | None = None,
) -> UnstackedContext:
    """Context over fakes with TEST_KEY configured and config writes kept under ``config_dir``."""
    return UnstackedContext.for_test(
        store=store,
        signer=signer,
        remote=remote,
        config=config if config is not None else UnstackedConfig(signing_key=TEST_KEY),
        repo_root=REPO_ROOT,
        config_dir=config_dir,
    )


def git(repo: Path, *args: str) -> str:
    """Run git in ``repo`` and return stripped stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=repo,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()


def commit_file(repo: Path, name: str, content: str, message: str) -> str:
    """Write ``name``, commit it, and return the new HEAD."""
    path = repo / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    git(repo, "add", name)
    git(repo, "commit", "-m", message)
    return git(repo, "rev-parse", "HEAD")


@dataclass
class CLITestRepo:
    """Real git repository for integration tests.

    Attributes:
        repo: Path to git repository (with initial commit on main)
        remote: Path to a bare repository configured as ``origin``
        tmp_path: Path to test root directory
    """

    repo: Path
    remote: Path
    tmp_path: Path


@contextmanager
def cli_test_repo(tmp_path: Path) -> Generator[CLITestRepo]:
    """Set up a git repo with one commit on main and a bare ``origin``.

    Git user is configured as test@example.com / Test User so commits work
    without global configuration.
    """
    remote = tmp_path / "origin.git"
    subprocess.run(["git", "init", "--bare", "-b", "main", str(remote)], check=True, capture_output=True)

    repo = tmp_path / "repo"
    repo.mkdir()
    subprocess.run(["git", "init", "-b", "main"], cwd=repo, check=True, capture_output=True)
    git(repo, "config", "user.email", "test@example.com")
    git(repo, "config", "user.name", "Test User")
    git(repo, "config", "commit.gpgsign", "false")
    git(repo, "remote", "add", "origin", str(remote))

    commit_file(repo, "README.md", "# Test Repository\n", "Initial commit")

    yield CLITestRepo(repo=repo, remote=remote, tmp_path=tmp_path)
