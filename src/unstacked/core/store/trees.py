"""Helpers for walking and building nested trees through an ObjectStore."""

from pathlib import Path
from typing import TYPE_CHECKING

from unstacked.core.store.types import MODE_TREE, Tree, TreeEntry

if TYPE_CHECKING:
    from unstacked.core.store.abc import ObjectStore


def flatten_tree(store: "ObjectStore", repo_root: Path, tree_oid: str) -> dict[str, tuple[str, str]]:
    """Map every non-tree path under ``tree_oid`` to its (mode, oid)."""
    result: dict[str, tuple[str, str]] = {}
    pending: list[tuple[str, str]] = [("", tree_oid)]
    while pending:
        prefix, oid = pending.pop()
        tree = store.read(repo_root, oid)
        if not isinstance(tree, Tree):
            raise ValueError(f"{oid} is not a tree")
        for entry in tree.entries:
            path = prefix + entry.name
            if entry.is_tree:
                pending.append((path + "/", entry.oid))
            else:
                result[path] = (entry.mode, entry.oid)
    return result


def build_tree(store: "ObjectStore", repo_root: Path, files: dict[str, tuple[str, str]]) -> str:
    """Write nested trees for a flat path mapping and return the root tree id."""
    children: dict[str, dict[str, tuple[str, str]]] = {}
    entries: list[TreeEntry] = []
    for path, (mode, oid) in files.items():
        head, sep, rest = path.partition("/")
        if sep:
            children.setdefault(head, {})[rest] = (mode, oid)
        else:
            entries.append(TreeEntry(mode=mode, name=head, oid=oid))
    for name, nested in children.items():
        entries.append(TreeEntry(mode=MODE_TREE, name=name, oid=build_tree(store, repo_root, nested)))
    return store.write(repo_root, Tree(entries=tuple(entries)))
