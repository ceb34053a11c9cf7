"""One-shot cherry-pick of a list of commits onto a base."""

import logging
from dataclasses import dataclass, replace
from pathlib import Path

from unstacked.core.errors import MergeConflict, UnstackedError
from unstacked.core.signing.abc import Signer
from unstacked.core.signing.commits import sign_commit, verify_commit
from unstacked.core.store.abc import ObjectStore
from unstacked.core.store.types import Commit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainResult:
    base: str
    commits: tuple[str, ...]

    @property
    def tip(self) -> str:
        if not self.commits:
            return self.base
        return self.commits[-1]


def chain_commits(
    store: ObjectStore,
    signer: Signer,
    repo_root: Path,
    base: str,
    commits: list[str],
    *,
    use_merge_base: bool = False,
    signing_key: str | None = None,
) -> ChainResult:
    """Apply ``commits`` in order on top of ``base`` and return the new commits.

    With ``use_merge_base`` the chain starts at the merge-base of ``base`` and
    every commit instead. A commit that already sits on the right parent (and
    is validly signed when signing) is reused unchanged.

    Raises:
        MergeConflict: If a commit does not apply cleanly
    """
    if use_merge_base:
        for oid in commits:
            common = store.merge_base(repo_root, base, oid)
            if common is None:
                raise UnstackedError(f"{oid} shares no history with {base}")
            base = common

    parent = base
    results: list[str] = []
    for oid in commits:
        obj = store.read(repo_root, oid)
        if not isinstance(obj, Commit):
            raise UnstackedError(f"{oid} is not a commit")
        if len(obj.parents) != 1:
            raise UnstackedError(f"Cannot chain {oid}: it has {len(obj.parents)} parents")

        if obj.parents == (parent,) and (
            signing_key is None or verify_commit(signer, obj, signing_key)
        ):
            results.append(oid)
            parent = oid
            continue

        merge = store.merge_commits(repo_root, obj.parents[0], parent, oid)
        if not merge.clean:
            raise MergeConflict(oid, parent, merge.conflicts)

        rebuilt = replace(obj, tree=merge.tree, parents=(parent,), signature=None)
        if signing_key is not None:
            rebuilt = sign_commit(signer, rebuilt, signing_key)
        parent = store.write(repo_root, rebuilt)
        logger.debug("Chained %s as %s", oid, parent)
        results.append(parent)

    return ChainResult(base=base, commits=tuple(results))
