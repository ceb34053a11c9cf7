"""Per-change outcomes of a synchronization pass."""

from dataclasses import dataclass
from enum import Enum

from unstacked.core.errors import UnstackedError
from unstacked.core.stack.model import Stack


class ChangeState(Enum):
    """Lifecycle of one change within a pass.

    PENDING moves to exactly one terminal state. UNCHANGED and REWRITTEN are
    successes; CONFLICTED and FAILED halt the pass and every later change is
    SKIPPED.
    """

    PENDING = "pending"
    UNCHANGED = "unchanged"
    REWRITTEN = "rewritten"
    CONFLICTED = "conflicted"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class ChangeOutcome:
    change_id: str
    title: str
    state: ChangeState
    old_commit: str
    new_commit: str | None = None
    conflict_paths: tuple[str, ...] = ()
    error: UnstackedError | None = None

    @property
    def succeeded(self) -> bool:
        return self.state in (ChangeState.UNCHANGED, ChangeState.REWRITTEN)


@dataclass(frozen=True)
class SyncReport:
    """Result of one pass: the resulting stack plus what happened to each change."""

    stack: Stack
    onto: str
    outcomes: tuple[ChangeOutcome, ...]

    @property
    def completed(self) -> bool:
        return all(outcome.succeeded for outcome in self.outcomes) and self.stack.pending is None

    @property
    def halted_on(self) -> ChangeOutcome | None:
        for outcome in self.outcomes:
            if outcome.state in (ChangeState.CONFLICTED, ChangeState.FAILED):
                return outcome
        return None

    @property
    def new_commits(self) -> list[str]:
        return [
            outcome.new_commit
            for outcome in self.outcomes
            if outcome.state == ChangeState.REWRITTEN and outcome.new_commit is not None
        ]

    def state_of(self, change_id: str) -> ChangeState:
        for outcome in self.outcomes:
            if outcome.change_id == change_id:
                return outcome.state
        raise KeyError(change_id)
