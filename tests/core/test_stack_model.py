"""Tests for the pure stack reordering operations."""

import pytest

from unstacked.core.errors import ChangeNotFound
from unstacked.core.stack.model import Change, ChangeOrigin, PendingSync, Stack


def _stack(*ids: str) -> Stack:
    changes = tuple(
        Change(change_id=change_id, commit=str(index) * 40, title=f"Change {change_id}", position=index)
        for index, change_id in enumerate(ids)
    )
    return Stack(name="feature", upstream="refs/heads/main", base="0" * 40, changes=changes)


def test_top_of_empty_stack_is_base() -> None:
    """Test that an empty stack's top is its base."""
    stack = _stack()

    assert stack.top == "0" * 40


def test_insert_at_bottom_and_after() -> None:
    """Test insert positions: -1 is the bottom, otherwise after the given index."""
    stack = _stack("a", "b")
    new = Change(change_id="n", commit="9" * 40, title="New")

    assert stack.insert(new, -1).change_ids == ("n", "a", "b")
    assert stack.insert(new, 0).change_ids == ("a", "n", "b")
    assert stack.insert(new, 1).change_ids == ("a", "b", "n")


def test_insert_renumbers_positions() -> None:
    """Test that positions always match list order."""
    stack = _stack("a", "b").insert(Change(change_id="n", commit="9" * 40, title="New"), -1)

    assert [change.position for change in stack.changes] == [0, 1, 2]
    assert stack.index_of("b") == 2


def test_insert_rejects_duplicate_id() -> None:
    """Test that a change id can only appear once."""
    stack = _stack("a")

    with pytest.raises(ValueError):
        stack.insert(Change(change_id="a", commit="9" * 40, title="Dup"), 0)


def test_insert_rejects_out_of_range_position() -> None:
    """Test that insert positions outside the stack are rejected."""
    stack = _stack("a")

    with pytest.raises(IndexError):
        stack.insert(Change(change_id="n", commit="9" * 40, title="New"), 1)
    with pytest.raises(IndexError):
        stack.insert(Change(change_id="n", commit="9" * 40, title="New"), -2)


def test_remove_records_dropped_change() -> None:
    """Test that a removed change is remembered so its ref can be deleted."""
    stack = _stack("a", "b", "c").remove("b")

    assert stack.change_ids == ("a", "c")
    assert [change.change_id for change in stack.dropped] == ["b"]


def test_remove_unknown_change_raises() -> None:
    """Test that removing an id not in the stack raises ChangeNotFound."""
    with pytest.raises(ChangeNotFound):
        _stack("a").remove("zzz")


def test_reorder_moves_change() -> None:
    """Test moving changes up and down the stack."""
    stack = _stack("a", "b", "c")

    assert stack.reorder("c", 0).change_ids == ("c", "a", "b")
    assert stack.reorder("a", 2).change_ids == ("b", "c", "a")
    assert stack.reorder("b", 1).change_ids == ("a", "b", "c")


def test_reorder_out_of_range_raises() -> None:
    """Test that reorder targets must be inside the stack."""
    with pytest.raises(IndexError):
        _stack("a", "b").reorder("a", 2)


def test_operations_do_not_mutate_original() -> None:
    """Test that stacks are immutable values."""
    stack = _stack("a", "b")

    stack.remove("a")
    stack.reorder("b", 0)

    assert stack.change_ids == ("a", "b")
    assert stack.dropped == ()


def test_pending_sync_untouched_check() -> None:
    """Test that only a change still at its recorded commit and parent counts as untouched."""
    pending = PendingSync(
        onto="1" * 40,
        base="0" * 40,
        order=("a",),
        origins={"a": ChangeOrigin(commit="a" * 40, parent="0" * 40)},
    )

    assert pending.is_untouched("a", "a" * 40, "0" * 40)
    assert not pending.is_untouched("a", "b" * 40, "0" * 40)
    assert not pending.is_untouched("b", "a" * 40, "0" * 40)
