"""CLI error handling utilities with styled output.

This module provides the Ensure class for asserting invariants in CLI commands
with consistent, user-friendly error messages. All errors use red "Error:" prefix
for visual consistency.
"""

from typing import TYPE_CHECKING, TypeVar

import click

from unstacked.core.output import user_output
from unstacked.core.stack.model import Stack

if TYPE_CHECKING:
    from unstacked.core.context import UnstackedContext

T = TypeVar("T")


class Ensure:
    """Helper class for asserting invariants with consistent error handling."""

    @staticmethod
    def invariant(condition: bool, error_message: str) -> None:
        """Ensure condition is true, otherwise output styled error and exit.

        Args:
            condition: Boolean condition to check
            error_message: Error message to display if condition is false.
                          "Error: " prefix will be added automatically in red.

        Raises:
            SystemExit: If condition is false (with exit code 1)
        """
        if not condition:
            user_output(click.style("Error: ", fg="red") + error_message)
            raise SystemExit(1)

    @staticmethod
    def not_none(value: T | None, error_message: str) -> T:
        """Ensure value is not None, otherwise output styled error and exit.

        Takes `T | None` and returns `T`, so callers get a narrowed type.
        """
        if value is None:
            user_output(click.style("Error: ", fg="red") + error_message)
            raise SystemExit(1)
        return value

    @staticmethod
    def commit(ctx: "UnstackedContext", rev: str) -> str:
        """Resolve a revision to a commit id, otherwise output styled error and exit."""
        oid = ctx.store.resolve_revision(ctx.repo_root, rev)
        return Ensure.not_none(oid, f"'{rev}' does not name a commit")

    @staticmethod
    def no_pending_sync(stack: Stack) -> None:
        """Ensure no sync pass is half-finished before restructuring a stack."""
        if stack.pending is not None:
            user_output(
                click.style("Error: ", fg="red")
                + f"Stack '{stack.name}' has an unfinished sync - "
                + "run 'unstacked sync --continue' or 'unstacked sync --abort' first"
            )
            raise SystemExit(1)

    @staticmethod
    def signing_key(ctx: "UnstackedContext") -> str:
        """Ensure a signing key is configured, otherwise output styled error and exit."""
        return Ensure.not_none(
            ctx.signing_key,
            "No signing key configured - run 'unstacked config set signing.key <KEY>' "
            "or set git's user.signingkey",
        )
