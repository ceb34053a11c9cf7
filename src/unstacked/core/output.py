"""Output helpers with clear intent.

user_output goes to stderr so that machine_output (stdout) stays parseable
when commands are used in scripts.
"""

from typing import Any

import click


def user_output(message: Any = "", nl: bool = True) -> None:
    """Print a message meant for a human reader."""
    click.echo(message, err=True, nl=nl)


def machine_output(message: Any = "", nl: bool = True) -> None:
    """Print data meant to be consumed by other programs."""
    click.echo(message, nl=nl)
