"""Tests for the land and chain commands."""

from pathlib import Path

from click.testing import CliRunner

from tests.test_utils.builders import REPO_ROOT, CommitGraph, ThreeChanges, parent_of
from tests.test_utils.cli_helpers import fake_context
from unstacked.cli.cli import cli
from unstacked.core.config import UnstackedConfig
from unstacked.core.remote.fake import FakeRemote
from unstacked.core.stack.loader import load_stack
from unstacked.core.store.types import Commit


def test_land_after_sync(tmp_path: Path) -> None:
    """Test that a synced stack lands its bottom change on main."""
    setup = ThreeChanges()
    store = setup.graph.store()
    ctx = fake_context(store, tmp_path)
    runner = CliRunner()
    runner.invoke(cli, ["sync", "feature"], obj=ctx)
    bottom = load_stack(store, REPO_ROOT, "feature").changes[0].commit

    result = runner.invoke(cli, ["land", "feature"], obj=ctx)

    assert result.exit_code == 0, f"Command failed: {result.output}"
    assert "Landed 1 changes on refs/heads/main" in result.output
    assert "2 remain" in result.output
    assert store.refs["refs/heads/main"] == bottom
    assert load_stack(store, REPO_ROOT, "feature").change_ids == ("cb", "cc")


def test_land_before_sync_is_rejected(tmp_path: Path) -> None:
    setup = ThreeChanges()
    store = setup.graph.store()
    ctx = fake_context(store, tmp_path)

    result = CliRunner().invoke(cli, ["land", "feature"], obj=ctx)

    assert result.exit_code == 1
    assert "run 'unstacked sync' first" in result.output
    assert store.refs["refs/heads/main"] == setup.upstream


def test_land_count(tmp_path: Path) -> None:
    setup = ThreeChanges()
    store = setup.graph.store()
    ctx = fake_context(store, tmp_path)
    runner = CliRunner()
    runner.invoke(cli, ["sync", "feature"], obj=ctx)
    top = load_stack(store, REPO_ROOT, "feature").top

    result = runner.invoke(cli, ["land", "feature", "-n", "3"], obj=ctx)

    assert result.exit_code == 0, f"Command failed: {result.output}"
    assert store.refs["refs/heads/main"] == top
    assert load_stack(store, REPO_ROOT, "feature").changes == ()


def _chain_graph() -> tuple[CommitGraph, str, str, str]:
    graph = CommitGraph()
    root = graph.commit({"README.md": "hello\n"}, None, "Initial commit")
    main = graph.change(root, {"main.txt": "m\n"}, "Main work")
    fix = graph.change(root, {"fix.txt": "f\n"}, "Fix")
    graph.ref("refs/heads/main", main)
    graph.ref("refs/heads/fix", fix)
    return graph, root, main, fix


def test_chain_prints_tip_and_updates_ref(tmp_path: Path) -> None:
    graph, _, main, _ = _chain_graph()
    store = graph.store()
    ctx = fake_context(store, tmp_path)

    result = CliRunner().invoke(
        cli, ["chain", "fix", "--onto", "main", "--update-ref", "refs/heads/topic"], obj=ctx
    )

    assert result.exit_code == 0, f"Command failed: {result.output}"
    tip = store.refs["refs/heads/topic"]
    assert result.stdout.strip().splitlines()[-1] == tip
    assert parent_of(store, tip) == main


def test_chain_no_sign(tmp_path: Path) -> None:
    graph, _, _, _ = _chain_graph()
    store = graph.store()
    ctx = fake_context(store, tmp_path, config=UnstackedConfig())

    result = CliRunner().invoke(cli, ["chain", "fix", "--onto", "main", "--no-sign"], obj=ctx)

    assert result.exit_code == 0, f"Command failed: {result.output}"
    tip = result.stdout.strip().splitlines()[-1]
    commit = store.read(REPO_ROOT, tip)
    assert isinstance(commit, Commit)
    assert commit.signature is None


def test_chain_push_uses_lease(tmp_path: Path) -> None:
    graph, _, _, fix = _chain_graph()
    store = graph.store()
    remote = FakeRemote(refs={"origin": {"refs/heads/topic": fix}})
    ctx = fake_context(store, tmp_path, remote=remote)

    result = CliRunner().invoke(
        cli,
        ["chain", "fix", "--onto", "main", "--update-ref", "refs/heads/topic", "--push"],
        obj=ctx,
    )

    assert result.exit_code == 0, f"Command failed: {result.output}"
    update = remote.pushes[0][1][0]
    assert update.expected == fix
    assert remote.remote_refs("origin")["refs/heads/topic"] == store.refs["refs/heads/topic"]


def test_chain_push_requires_ref(tmp_path: Path) -> None:
    graph, _, _, _ = _chain_graph()
    ctx = fake_context(graph.store(), tmp_path)

    result = CliRunner().invoke(cli, ["chain", "fix", "--onto", "main", "--push"], obj=ctx)

    assert result.exit_code == 1
    assert "--push requires --update-ref" in result.output


def test_chain_conflict(tmp_path: Path) -> None:
    graph, root, _, _ = _chain_graph()
    ours = graph.change(root, {"README.md": "ours\n"}, "Ours")
    theirs = graph.change(root, {"README.md": "theirs\n"}, "Theirs")
    ctx = fake_context(graph.store(), tmp_path)

    result = CliRunner().invoke(cli, ["chain", theirs, "--onto", ours], obj=ctx)

    assert result.exit_code == 1
    assert "README.md" in result.output
