"""Tests for the sync engine against in-memory commit graphs."""

import pytest

from tests.test_utils.builders import (
    REPO_ROOT,
    TEST_KEY,
    CommitGraph,
    ThreeChanges,
    parent_of,
    read_files,
    write_commit,
)
from unstacked.core.errors import RefConflict, SigningUnavailable, SyncInProgress
from unstacked.core.signing.commits import verify_commit
from unstacked.core.signing.dry_run import DryRunSigner
from unstacked.core.signing.fake import FakeSigner
from unstacked.core.stack.loader import load_stack, make_change
from unstacked.core.stack.refs import base_ref, change_ref
from unstacked.core.store.dry_run import DryRunObjectStore
from unstacked.core.store.fake import FakeObjectStore
from unstacked.core.store.types import Commit
from unstacked.core.sync.engine import SyncEngine
from unstacked.core.sync.types import ChangeState


def _engine(store: FakeObjectStore, signer: FakeSigner | None = None, key: str | None = TEST_KEY) -> SyncEngine:
    return SyncEngine(store, signer if signer is not None else FakeSigner(), REPO_ROOT, key)


def test_sync_rewrites_every_change_onto_new_base() -> None:
    """Test that a clean sync moves all changes onto the new base in order."""
    setup = ThreeChanges()
    store = setup.graph.store()
    engine = _engine(store)

    report = engine.synchronize(load_stack(store, REPO_ROOT, "feature"), setup.upstream)

    assert report.completed
    assert [o.state for o in report.outcomes] == [ChangeState.REWRITTEN] * 3

    reloaded = load_stack(store, REPO_ROOT, "feature")
    assert reloaded.change_ids == ("ca", "cb", "cc")
    assert reloaded.base == setup.upstream
    assert reloaded.pending is None
    assert store.refs[base_ref("feature")] == setup.upstream

    # Parent chain: upstream <- a' <- b' <- c'
    expected_parent = setup.upstream
    for change in reloaded.changes:
        assert parent_of(store, change.commit) == expected_parent
        expected_parent = change.commit

    assert read_files(store, reloaded.top) == {
        "README.md": "hello\n",
        "shared.txt": "original\n",
        "upstream.txt": "u\n",
        "a.txt": "a\n",
        "b.txt": "b\n",
        "c.txt": "c\n",
    }


def test_sync_preserves_change_ids_and_titles() -> None:
    """Test that rewritten commits keep their change ids and messages."""
    setup = ThreeChanges()
    store = setup.graph.store()

    report = _engine(store).synchronize(load_stack(store, REPO_ROOT, "feature"), setup.upstream)

    assert [change.change_id for change in report.stack.changes] == ["ca", "cb", "cc"]
    assert [change.title for change in report.stack.changes] == ["Add a", "Add b", "Add c"]
    for outcome in report.outcomes:
        assert outcome.new_commit != outcome.old_commit


def test_sync_signs_every_commit_it_writes() -> None:
    """Test that no unsigned commit is ever written by a sync pass."""
    setup = ThreeChanges()
    store = setup.graph.store()
    signer = FakeSigner()

    _engine(store, signer).synchronize(load_stack(store, REPO_ROOT, "feature"), setup.upstream)

    written_commits = [oid for oid in store.written_objects if isinstance(store.read(REPO_ROOT, oid), Commit)]
    assert len(written_commits) == 3
    for oid in written_commits:
        commit = store.read(REPO_ROOT, oid)
        assert isinstance(commit, Commit)
        assert verify_commit(signer, commit, TEST_KEY)


def test_sync_keeps_author_and_committer() -> None:
    """Test that rewriting only changes tree, parent and signature."""
    setup = ThreeChanges()
    store = setup.graph.store()

    report = _engine(store).synchronize(load_stack(store, REPO_ROOT, "feature"), setup.upstream)

    old = store.read(REPO_ROOT, setup.a)
    new = store.read(REPO_ROOT, report.stack.changes[0].commit)
    assert isinstance(old, Commit) and isinstance(new, Commit)
    assert new.author == old.author
    assert new.committer == old.committer
    assert new.message == old.message


def test_second_sync_is_a_no_op() -> None:
    """Test that syncing an already synchronized stack moves no refs."""
    setup = ThreeChanges()
    store = setup.graph.store()
    engine = _engine(store)
    engine.synchronize(load_stack(store, REPO_ROOT, "feature"), setup.upstream)
    refs_before = store.refs
    updates_before = len(store.ref_updates)

    report = engine.synchronize(load_stack(store, REPO_ROOT, "feature"), setup.upstream)

    assert report.completed
    assert [o.state for o in report.outcomes] == [ChangeState.UNCHANGED] * 3
    assert report.new_commits == []
    assert store.refs == refs_before
    assert len(store.ref_updates) == updates_before


def test_sync_is_deterministic() -> None:
    """Test that two independent syncs of the same graph produce identical commits."""
    first = ThreeChanges()
    second = ThreeChanges()
    store_one = first.graph.store()
    store_two = second.graph.store()

    report_one = _engine(store_one).synchronize(load_stack(store_one, REPO_ROOT, "feature"), first.upstream)
    report_two = _engine(store_two).synchronize(load_stack(store_two, REPO_ROOT, "feature"), second.upstream)

    assert report_one.new_commits == report_two.new_commits


def test_conflict_halts_and_leaves_suffix_untouched() -> None:
    """Test that a conflicting change halts the pass with earlier changes rewritten."""
    setup = ThreeChanges(conflicting=True)
    store = setup.graph.store()

    report = _engine(store).synchronize(load_stack(store, REPO_ROOT, "feature"), setup.upstream)

    assert not report.completed
    assert report.state_of("ca") == ChangeState.REWRITTEN
    assert report.state_of("cb") == ChangeState.CONFLICTED
    assert report.state_of("cc") == ChangeState.SKIPPED
    halted = report.halted_on
    assert halted is not None
    assert halted.conflict_paths == ("shared.txt",)

    refs = store.refs
    assert refs[change_ref("feature", "ca")] == report.stack.changes[0].commit
    assert refs[change_ref("feature", "cb")] == setup.b
    assert refs[change_ref("feature", "cc")] == setup.c
    assert refs[base_ref("feature")] == setup.base


def test_halted_stack_reloads_with_pending_sync() -> None:
    """Test that a stack halted mid-pass still loads and reports the pending sync."""
    setup = ThreeChanges(conflicting=True)
    store = setup.graph.store()
    _engine(store).synchronize(load_stack(store, REPO_ROOT, "feature"), setup.upstream)

    reloaded = load_stack(store, REPO_ROOT, "feature")

    assert reloaded.pending is not None
    assert reloaded.pending.onto == setup.upstream
    assert reloaded.pending.base == setup.base
    assert reloaded.pending.conflicted == "cb"
    assert reloaded.change_ids == ("ca", "cb", "cc")


def test_sync_refuses_to_start_while_pending() -> None:
    """Test that a new sync cannot start on top of an unfinished one."""
    setup = ThreeChanges(conflicting=True)
    store = setup.graph.store()
    engine = _engine(store)
    engine.synchronize(load_stack(store, REPO_ROOT, "feature"), setup.upstream)

    with pytest.raises(SyncInProgress):
        engine.synchronize(load_stack(store, REPO_ROOT, "feature"), setup.upstream)


def test_resume_with_resolution_completes_the_pass() -> None:
    """Test that resuming with a resolved tree finishes the remaining changes."""
    setup = ThreeChanges(conflicting=True)
    store = setup.graph.store()
    engine = _engine(store)
    engine.synchronize(load_stack(store, REPO_ROOT, "feature"), setup.upstream)
    halted = load_stack(store, REPO_ROOT, "feature")

    a_new = halted.find("ca").commit
    files = read_files(store, a_new)
    files.update({"b.txt": "b\n", "shared.txt": "resolved\n"})
    resolved = store.read(REPO_ROOT, write_commit(store, a_new, files, "resolution"))
    assert isinstance(resolved, Commit)

    report = engine.resume(halted, {"cb": resolved.tree})

    assert report.completed
    assert report.state_of("ca") == ChangeState.UNCHANGED
    assert report.state_of("cb") == ChangeState.REWRITTEN
    assert report.state_of("cc") == ChangeState.REWRITTEN

    finished = load_stack(store, REPO_ROOT, "feature")
    assert finished.pending is None
    assert finished.base == setup.upstream
    top_files = read_files(store, finished.top)
    assert top_files["shared.txt"] == "resolved\n"
    assert top_files["c.txt"] == "c\n"
    assert parent_of(store, finished.find("cb").commit) == a_new


def test_resume_without_resolution_halts_again() -> None:
    """Test that resuming an unresolved conflict reports the same conflict."""
    setup = ThreeChanges(conflicting=True)
    store = setup.graph.store()
    engine = _engine(store)
    engine.synchronize(load_stack(store, REPO_ROOT, "feature"), setup.upstream)

    report = engine.resume(load_stack(store, REPO_ROOT, "feature"))

    assert report.state_of("cb") == ChangeState.CONFLICTED
    assert load_stack(store, REPO_ROOT, "feature").pending is not None


def test_abort_restores_original_refs() -> None:
    """Test that aborting a halted pass puts every ref back."""
    setup = ThreeChanges(conflicting=True)
    store = setup.graph.store()
    engine = _engine(store)
    engine.synchronize(load_stack(store, REPO_ROOT, "feature"), setup.upstream)

    restored = engine.abort(load_stack(store, REPO_ROOT, "feature"))

    assert restored.pending is None
    reloaded = load_stack(store, REPO_ROOT, "feature")
    assert reloaded.pending is None
    assert reloaded.base == setup.base
    assert [change.commit for change in reloaded.changes] == [setup.a, setup.b, setup.c]


def test_concurrent_ref_update_fails_the_change() -> None:
    """Test that a ref moved by another process is never overwritten."""
    setup = ThreeChanges()
    external = setup.graph.change(setup.a, {"x.txt": "x\n"}, "External edit")
    ref = change_ref("feature", "ca")
    store = setup.graph.store(ref_races={ref: external})

    report = _engine(store).synchronize(load_stack(store, REPO_ROOT, "feature"), setup.upstream)

    assert report.state_of("ca") == ChangeState.FAILED
    halted = report.halted_on
    assert halted is not None
    assert isinstance(halted.error, RefConflict)
    assert report.state_of("cb") == ChangeState.SKIPPED
    assert report.state_of("cc") == ChangeState.SKIPPED
    assert store.refs[ref] == external


def test_moved_ref_is_recorded_and_stack_reloads() -> None:
    """Test that a ref moved mid-pass is reported instead of corrupting the stack."""
    setup = ThreeChanges()
    external = setup.graph.change(setup.a, {"x.txt": "x\n"}, "External edit")
    store = setup.graph.store(ref_races={change_ref("feature", "ca"): external})

    report = _engine(store).synchronize(load_stack(store, REPO_ROOT, "feature"), setup.upstream)

    assert report.stack.pending is not None
    assert report.stack.pending.raced == ("ca",)
    reloaded = load_stack(store, REPO_ROOT, "feature")
    assert reloaded.pending is not None
    assert reloaded.pending.raced == ("ca",)
    assert reloaded.find("ca").commit == external


def test_resume_rebuilds_moved_bottom_change_from_its_ref() -> None:
    setup = ThreeChanges()
    external = setup.graph.change(setup.a, {"x.txt": "x\n"}, "External edit")
    store = setup.graph.store(ref_races={change_ref("feature", "ca"): external})
    engine = _engine(store)
    engine.synchronize(load_stack(store, REPO_ROOT, "feature"), setup.upstream)

    report = engine.resume(load_stack(store, REPO_ROOT, "feature"))

    assert report.completed
    assert report.state_of("ca") == ChangeState.REWRITTEN
    finished = load_stack(store, REPO_ROOT, "feature")
    assert finished.pending is None
    assert finished.base == setup.upstream
    assert parent_of(store, finished.find("ca").commit) == setup.upstream
    assert read_files(store, finished.find("ca").commit) == {
        "README.md": "hello\n",
        "shared.txt": "original\n",
        "upstream.txt": "u\n",
        "a.txt": "a\n",
        "x.txt": "x\n",
    }
    assert read_files(store, finished.top)["c.txt"] == "c\n"


def test_resume_keeps_content_of_moved_middle_change() -> None:
    """Test that a commit stacked on the change keeps the change's own edits."""
    setup = ThreeChanges()
    external = setup.graph.change(setup.b, {"x.txt": "x\n"}, "Follow-up to b")
    store = setup.graph.store(ref_races={change_ref("feature", "cb"): external})
    engine = _engine(store)
    first = engine.synchronize(load_stack(store, REPO_ROOT, "feature"), setup.upstream)
    assert first.state_of("ca") == ChangeState.REWRITTEN
    assert first.state_of("cb") == ChangeState.FAILED

    report = engine.resume(load_stack(store, REPO_ROOT, "feature"))

    assert report.completed
    finished = load_stack(store, REPO_ROOT, "feature")
    assert finished.pending is None
    expected_parent = setup.upstream
    for change in finished.changes:
        assert parent_of(store, change.commit) == expected_parent
        expected_parent = change.commit
    assert read_files(store, finished.top) == {
        "README.md": "hello\n",
        "shared.txt": "original\n",
        "upstream.txt": "u\n",
        "a.txt": "a\n",
        "b.txt": "b\n",
        "x.txt": "x\n",
        "c.txt": "c\n",
    }


def test_abort_keeps_moved_ref_and_restores_the_rest() -> None:
    """Test that abort never overwrites a ref another writer moved."""
    setup = ThreeChanges()
    external = setup.graph.change(setup.b, {"x.txt": "x\n"}, "Follow-up to b")
    store = setup.graph.store(ref_races={change_ref("feature", "cb"): external})
    engine = _engine(store)
    engine.synchronize(load_stack(store, REPO_ROOT, "feature"), setup.upstream)

    aborted = engine.abort(load_stack(store, REPO_ROOT, "feature"))

    assert store.refs[change_ref("feature", "ca")] == setup.a
    assert store.refs[change_ref("feature", "cb")] == external
    assert store.refs[change_ref("feature", "cc")] == setup.c
    assert store.refs[base_ref("feature")] == setup.base
    assert aborted.find("cb").commit == external
    assert aborted.pending is not None
    assert aborted.pending.onto == setup.base
    assert aborted.pending.raced == ("cb",)

    reloaded = load_stack(store, REPO_ROOT, "feature")
    assert reloaded.pending is not None
    assert reloaded.pending.raced == ("cb",)

    report = engine.resume(reloaded)

    assert report.completed
    finished = load_stack(store, REPO_ROOT, "feature")
    assert finished.pending is None
    assert finished.base == setup.base
    expected_parent = setup.base
    for change in finished.changes:
        assert parent_of(store, change.commit) == expected_parent
        expected_parent = change.commit
    top_files = read_files(store, finished.top)
    assert top_files["x.txt"] == "x\n"
    assert top_files["c.txt"] == "c\n"
    assert "upstream.txt" not in top_files


def test_missing_signing_key_fails_before_moving_refs() -> None:
    """Test that a rewrite without a signing key moves nothing."""
    setup = ThreeChanges()
    store = setup.graph.store()

    report = _engine(store, key=None).synchronize(load_stack(store, REPO_ROOT, "feature"), setup.upstream)

    assert report.state_of("ca") == ChangeState.FAILED
    halted = report.halted_on
    assert halted is not None
    assert isinstance(halted.error, SigningUnavailable)
    assert store.refs == setup.graph.refs


def test_unreachable_signer_fails_the_change() -> None:
    """Test that an unavailable signing agent fails the pass cleanly."""
    setup = ThreeChanges()
    store = setup.graph.store()

    report = _engine(store, FakeSigner(available=False)).synchronize(
        load_stack(store, REPO_ROOT, "feature"), setup.upstream
    )

    assert report.state_of("ca") == ChangeState.FAILED
    assert store.refs == setup.graph.refs


def test_reorder_moves_change_to_bottom() -> None:
    """Test that a reordered stack is rebuilt in its new order."""
    setup = ThreeChanges()
    store = setup.graph.store()
    stack = load_stack(store, REPO_ROOT, "feature").reorder("cc", 0)

    report = _engine(store).synchronize(stack, setup.base)

    assert report.completed
    reloaded = load_stack(store, REPO_ROOT, "feature")
    assert reloaded.change_ids == ("cc", "ca", "cb")
    assert parent_of(store, reloaded.find("cc").commit) == setup.base
    assert read_files(store, reloaded.find("cc").commit) == {
        "README.md": "hello\n",
        "shared.txt": "original\n",
        "c.txt": "c\n",
    }
    assert set(read_files(store, reloaded.top)) == {"README.md", "shared.txt", "a.txt", "b.txt", "c.txt"}


def test_remove_drops_change_and_its_ref() -> None:
    """Test that removing a change rebuilds later changes without it."""
    setup = ThreeChanges()
    store = setup.graph.store()
    stack = load_stack(store, REPO_ROOT, "feature").remove("cb")

    report = _engine(store).synchronize(stack, setup.base)

    assert report.completed
    assert report.state_of("ca") == ChangeState.UNCHANGED
    assert report.state_of("cc") == ChangeState.REWRITTEN
    assert change_ref("feature", "cb") not in store.refs

    reloaded = load_stack(store, REPO_ROOT, "feature")
    assert reloaded.change_ids == ("ca", "cc")
    assert parent_of(store, reloaded.find("cc").commit) == setup.a
    assert "b.txt" not in read_files(store, reloaded.top)


def test_insert_at_bottom_creates_ref_and_rebuilds_above() -> None:
    """Test that an inserted change gets a ref and later changes build on it."""
    setup = ThreeChanges()
    inserted = setup.graph.change(setup.base, {"n.txt": "n\n"}, "Add n")
    store = setup.graph.store()
    stack = load_stack(store, REPO_ROOT, "feature")
    stack = stack.insert(make_change(store, REPO_ROOT, inserted, "cn"), -1)

    report = _engine(store).synchronize(stack, setup.base)

    assert report.completed
    assert report.state_of("cn") == ChangeState.UNCHANGED
    assert store.refs[change_ref("feature", "cn")] == inserted
    reloaded = load_stack(store, REPO_ROOT, "feature")
    assert reloaded.change_ids == ("cn", "ca", "cb", "cc")
    assert parent_of(store, reloaded.find("ca").commit) == inserted
    assert read_files(store, reloaded.top)["n.txt"] == "n\n"


def test_dry_run_moves_no_refs_and_signs_nothing() -> None:
    """Test that a dry-run store and signer leave the repository untouched."""
    setup = ThreeChanges()
    store = setup.graph.store()
    signer = FakeSigner()
    engine = SyncEngine(DryRunObjectStore(store), DryRunSigner(signer), REPO_ROOT, TEST_KEY)

    report = engine.synchronize(load_stack(store, REPO_ROOT, "feature"), setup.upstream)

    assert [o.state for o in report.outcomes] == [ChangeState.REWRITTEN] * 3
    assert store.refs == setup.graph.refs
    assert store.ref_updates == []
    assert signer.sign_calls == []


def test_unsigned_commits_are_signed_without_moving_them() -> None:
    """Test that an unsigned change already on the right parent is re-signed in place."""
    graph = CommitGraph()
    base = graph.commit({"README.md": "hello\n"}, None, "Initial commit")
    change = graph.change(base, {"a.txt": "a\n"}, "Add a", signed=False)
    graph.ref("refs/heads/main", base)
    graph.stack("feature", base, [("ca", change)])
    store = graph.store()

    report = _engine(store).synchronize(load_stack(store, REPO_ROOT, "feature"), base)

    assert report.state_of("ca") == ChangeState.REWRITTEN
    new = report.stack.changes[0].commit
    assert parent_of(store, new) == base
    old_commit = store.read(REPO_ROOT, change)
    new_commit = store.read(REPO_ROOT, new)
    assert isinstance(old_commit, Commit) and isinstance(new_commit, Commit)
    assert new_commit.tree == old_commit.tree
    assert new_commit.signature is not None
