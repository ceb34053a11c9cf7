"""Load stacks from refs, validate them, and persist their manifests."""

import json
import logging
from dataclasses import replace
from pathlib import Path

from unstacked.core.errors import CorruptStack, RefConflict, StackNotFound, UnstackedError
from unstacked.core.stack.model import Change, ChangeOrigin, PendingSync, RefSnapshot, Stack
from unstacked.core.stack.refs import (
    STACKS_PREFIX,
    base_ref,
    change_ref,
    changes_prefix,
    manifest_ref,
    new_change_id,
    stack_name_from_manifest_ref,
    validate_stack_name,
)
from unstacked.core.store.abc import ObjectStore
from unstacked.core.store.types import Blob, Commit

logger = logging.getLogger(__name__)

MANIFEST_VERSION = 1
STACK_UPSTREAM_PREFIX = "stack:"


def encode_manifest(upstream: str, order: tuple[str, ...], pending: PendingSync | None) -> bytes:
    data: dict[str, object] = {
        "version": MANIFEST_VERSION,
        "upstream": upstream,
        "changes": list(order),
        "pending": None,
    }
    if pending is not None:
        data["pending"] = {
            "onto": pending.onto,
            "base": pending.base,
            "order": list(pending.order),
            "origins": {
                change_id: {"commit": origin.commit, "parent": origin.parent}
                for change_id, origin in pending.origins.items()
            },
            "dropped": list(pending.dropped),
            "conflicted": pending.conflicted,
            "raced": list(pending.raced),
        }
    return (json.dumps(data, indent=2, sort_keys=True) + "\n").encode("utf-8")


def decode_manifest(name: str, data: bytes) -> tuple[str, tuple[str, ...], PendingSync | None]:
    try:
        parsed = json.loads(data)
        if parsed.get("version") != MANIFEST_VERSION:
            raise CorruptStack(name, None, f"unsupported manifest version {parsed.get('version')!r}")
        upstream = parsed["upstream"]
        order = tuple(parsed["changes"])
        raw_pending = parsed.get("pending")
        pending = None
        if raw_pending is not None:
            pending = PendingSync(
                onto=raw_pending["onto"],
                base=raw_pending["base"],
                order=tuple(raw_pending["order"]),
                origins={
                    change_id: ChangeOrigin(commit=origin["commit"], parent=origin["parent"])
                    for change_id, origin in raw_pending["origins"].items()
                },
                dropped=tuple(raw_pending.get("dropped", [])),
                conflicted=raw_pending.get("conflicted"),
                raced=tuple(raw_pending.get("raced", [])),
            )
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        raise CorruptStack(name, None, f"manifest is unreadable: {e}") from e
    return upstream, order, pending


def list_stacks(store: ObjectStore, repo_root: Path) -> list[str]:
    names: list[str] = []
    for ref in store.list_refs(repo_root, STACKS_PREFIX):
        name = stack_name_from_manifest_ref(ref)
        if name is not None:
            names.append(name)
    return sorted(names)


def _read_commit(store: ObjectStore, repo_root: Path, name: str, change_id: str, oid: str) -> Commit:
    if not store.has_object(repo_root, oid):
        raise CorruptStack(name, change_id, f"commit {oid} is missing from the object database")
    obj = store.read(repo_root, oid)
    if not isinstance(obj, Commit):
        raise CorruptStack(name, change_id, f"{oid} is not a commit")
    return obj


def load_stack(store: ObjectStore, repo_root: Path, name: str) -> Stack:
    """Build a Stack from its refs, enforcing the parent-chain invariant.

    Raises:
        StackNotFound: If the stack has no manifest ref
        CorruptStack: On duplicate ids, missing refs, non-commits, commits
            without exactly one parent, or a broken parent chain. While a sync
            is pending, changes whose refs moved externally are listed in
            ``pending.raced`` instead
    """
    manifest_oid = store.resolve_ref(repo_root, manifest_ref(name))
    if manifest_oid is None:
        raise StackNotFound(name)
    manifest = store.read(repo_root, manifest_oid)
    if not isinstance(manifest, Blob):
        raise CorruptStack(name, None, "manifest ref does not point at a blob")
    upstream, order, pending = decode_manifest(name, manifest.data)

    base = store.resolve_ref(repo_root, base_ref(name))
    if base is None:
        raise CorruptStack(name, None, "base ref is missing")

    change_refs = {
        ref[len(changes_prefix(name)) :]: oid
        for ref, oid in store.list_refs(repo_root, changes_prefix(name)).items()
    }

    seen: set[str] = set()
    changes: list[Change] = []
    raced: list[str] = list(pending.raced) if pending is not None else []
    expected_parent = pending.onto if pending is not None else base
    for position, change_id in enumerate(order):
        if change_id in seen:
            raise CorruptStack(name, change_id, "change id appears more than once")
        seen.add(change_id)

        oid = change_refs.get(change_id)
        if oid is None:
            raise CorruptStack(name, change_id, f"ref {change_ref(name, change_id)} is missing")
        commit = _read_commit(store, repo_root, name, change_id, oid)
        if len(commit.parents) != 1:
            raise CorruptStack(name, change_id, f"commit {oid} has {len(commit.parents)} parents")

        parent = commit.parents[0]
        if parent != expected_parent:
            if pending is None:
                raise CorruptStack(
                    name,
                    change_id,
                    f"parent {parent} of {oid} does not match predecessor {expected_parent}",
                )
            if not pending.is_untouched(change_id, oid, parent) and change_id not in raced:
                logger.warning("Ref of change %s in stack '%s' was moved to %s during a sync", change_id, name, oid)
                raced.append(change_id)
        changes.append(Change(change_id=change_id, commit=oid, title=commit.title, position=position))
        expected_parent = oid

    if pending is not None and tuple(raced) != pending.raced:
        pending = replace(pending, raced=tuple(raced))

    dropped_ids = pending.dropped if pending is not None else ()
    for change_id in change_refs:
        if change_id not in seen and change_id not in dropped_ids:
            logger.warning("Ignoring ref for change %s, not listed in stack '%s'", change_id, name)

    return Stack(
        name=name,
        upstream=upstream,
        base=base,
        changes=tuple(changes),
        pending=pending,
        snapshot=RefSnapshot(manifest=manifest_oid, base=base, changes=change_refs, order=order),
    )


def write_manifest(
    store: ObjectStore,
    repo_root: Path,
    name: str,
    upstream: str,
    order: tuple[str, ...],
    pending: PendingSync | None,
    expected: str | None,
    message: str,
) -> str:
    """Write a manifest blob and compare-and-swap the manifest ref onto it."""
    oid = store.write(repo_root, Blob(data=encode_manifest(upstream, order, pending)))
    if oid != expected:
        store.update_ref(repo_root, manifest_ref(name), expected, oid, message)
    return oid


def create_stack(store: ObjectStore, repo_root: Path, name: str, upstream: str, base: str) -> Stack:
    """Create an empty stack on ``base``.

    Raises:
        RefConflict: If a stack with this name already exists
    """
    validate_stack_name(name)
    manifest = write_manifest(store, repo_root, name, upstream, (), None, None, f"unstacked: create {name}")
    store.update_ref(repo_root, base_ref(name), None, base, f"unstacked: create {name}")
    return Stack(
        name=name,
        upstream=upstream,
        base=base,
        snapshot=RefSnapshot(manifest=manifest, base=base),
    )


def make_change(store: ObjectStore, repo_root: Path, commit_oid: str, change_id: str | None = None) -> Change:
    commit = store.read(repo_root, commit_oid)
    if not isinstance(commit, Commit):
        raise UnstackedError(f"{commit_oid} is not a commit")
    return Change(
        change_id=change_id if change_id is not None else new_change_id(),
        commit=commit_oid,
        title=commit.title,
    )


def import_commits(
    store: ObjectStore,
    repo_root: Path,
    name: str,
    upstream: str,
    upstream_tip: str,
    tip: str,
) -> Stack:
    """Create a stack whose changes are the first-parent commits in ``upstream_tip..tip``.

    Commits keep their hashes; the first sync signs them.
    """
    validate_stack_name(name)
    existing = store.resolve_ref(repo_root, manifest_ref(name))
    if existing is not None:
        raise RefConflict(manifest_ref(name), None, existing)

    base = store.merge_base(repo_root, upstream_tip, tip)
    if base is None:
        raise UnstackedError(f"{tip} shares no history with the upstream {upstream}")

    changes: list[Change] = []
    expected_parent = base
    for position, oid in enumerate(store.list_commits(repo_root, base, tip)):
        commit = store.read(repo_root, oid)
        if not isinstance(commit, Commit) or commit.parents != (expected_parent,):
            raise UnstackedError(f"Cannot import merge commit {oid}; stacks must be linear")
        changes.append(
            Change(change_id=new_change_id(), commit=oid, title=commit.title, position=position)
        )
        expected_parent = oid

    message = f"unstacked: import {name}"
    for change in changes:
        store.update_ref(repo_root, change_ref(name, change.change_id), None, change.commit, message)
    store.update_ref(repo_root, base_ref(name), None, base, message)
    order = tuple(change.change_id for change in changes)
    manifest = write_manifest(store, repo_root, name, upstream, order, None, None, message)
    logger.debug("Imported %d commits into stack '%s'", len(changes), name)

    return Stack(
        name=name,
        upstream=upstream,
        base=base,
        changes=tuple(changes),
        snapshot=RefSnapshot(
            manifest=manifest,
            base=base,
            changes={change.change_id: change.commit for change in changes},
            order=order,
        ),
    )


def resolve_upstream(store: ObjectStore, repo_root: Path, upstream: str) -> str:
    """Resolve a stack's upstream to the commit it should be based on.

    ``stack:<name>`` means the top of another stack.
    """
    if upstream.startswith(STACK_UPSTREAM_PREFIX):
        parent = load_stack(store, repo_root, upstream[len(STACK_UPSTREAM_PREFIX) :])
        return parent.top
    oid = store.resolve_revision(repo_root, upstream)
    if oid is None:
        raise UnstackedError(f"Upstream '{upstream}' does not resolve to a commit")
    return oid


def stack_dependency_order(stacks: list[Stack]) -> list[Stack]:
    """Sort stacks so every stack comes after the stack it is based on."""
    by_name = {stack.name: stack for stack in stacks}
    ordered: list[Stack] = []
    state: dict[str, str] = {}

    def visit(stack: Stack) -> None:
        if state.get(stack.name) == "done":
            return
        if state.get(stack.name) == "visiting":
            raise CorruptStack(stack.name, None, "stack upstreams form a cycle")
        state[stack.name] = "visiting"
        if stack.upstream.startswith(STACK_UPSTREAM_PREFIX):
            parent = by_name.get(stack.upstream[len(STACK_UPSTREAM_PREFIX) :])
            if parent is not None:
                visit(parent)
        state[stack.name] = "done"
        ordered.append(stack)

    for stack in sorted(stacks, key=lambda s: s.name):
        visit(stack)
    return ordered
