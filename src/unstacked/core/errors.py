"""Error taxonomy shared by the engine and its gateways.

Gateways raise these for conditions the engine must classify; plain
subprocess failures surface as RuntimeError from run_subprocess_with_context.
"""


class UnstackedError(Exception):
    """Base class for every domain error raised by unstacked."""


class CorruptStack(UnstackedError):
    """Loaded stack state violates the parent-chain invariant.

    Never repaired automatically; the offending change id is carried so the
    user knows where to look.
    """

    def __init__(self, stack: str, change_id: str | None, reason: str) -> None:
        self.stack = stack
        self.change_id = change_id
        self.reason = reason
        where = f" at change {change_id}" if change_id is not None else ""
        super().__init__(f"Stack '{stack}' is corrupt{where}: {reason}")


class StackNotFound(UnstackedError):
    def __init__(self, stack: str) -> None:
        self.stack = stack
        super().__init__(f"No stack named '{stack}'")


class ChangeNotFound(UnstackedError):
    def __init__(self, stack: str, change_id: str) -> None:
        self.stack = stack
        self.change_id = change_id
        super().__init__(f"Stack '{stack}' has no change '{change_id}'")


class RefConflict(UnstackedError):
    """A compare-and-swap ref update found a value other than the expected one."""

    def __init__(self, ref: str, expected: str | None, actual: str | None) -> None:
        self.ref = ref
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Ref {ref} moved concurrently: expected {expected or '<absent>'}, "
            f"found {actual or '<absent>'}"
        )


class MergeConflict(UnstackedError):
    """Cherry-picking a commit onto a target produced overlapping edits."""

    def __init__(self, commit: str, target: str, paths: tuple[str, ...]) -> None:
        self.commit = commit
        self.target = target
        self.paths = paths
        super().__init__(
            f"Could not apply {commit[:12]} onto {target[:12]} without conflicts: "
            + ", ".join(paths)
        )


class SigningUnavailable(UnstackedError):
    """The signing key, agent or executable could not be reached."""

    def __init__(self, key_id: str | None, reason: str) -> None:
        self.key_id = key_id
        self.reason = reason
        super().__init__(f"Cannot use signing key {key_id or '<unset>'}: {reason}")


class VerificationFailed(UnstackedError):
    """A signature was checked and found invalid for the configured key."""

    def __init__(self, key_id: str, subject: str) -> None:
        self.key_id = key_id
        self.subject = subject
        super().__init__(f"Signature on {subject} does not verify against key {key_id}")


class DivergedRemote(UnstackedError):
    """Remote branches hold commits this tool did not write."""

    def __init__(self, branches: tuple[str, ...]) -> None:
        self.branches = branches
        super().__init__(
            "Remote branches diverged and were not overwritten: " + ", ".join(branches)
        )


class SyncInProgress(UnstackedError):
    def __init__(self, stack: str, onto: str) -> None:
        self.stack = stack
        self.onto = onto
        super().__init__(
            f"Stack '{stack}' has an unfinished sync onto {onto[:12]}; "
            "run 'unstacked sync --continue' or 'unstacked sync --abort'"
        )


class NothingToLand(UnstackedError):
    def __init__(self, stack: str) -> None:
        self.stack = stack
        super().__init__(f"Stack '{stack}' has no changes to land")


class LandRejected(UnstackedError):
    """Landing would not fast-forward the upstream branch."""
