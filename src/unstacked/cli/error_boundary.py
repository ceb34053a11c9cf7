"""Error boundary handling for CLI commands.

Catches well-known exceptions at command entry points and displays clean
error messages without stack traces. Run with --debug to see the traceback in
the log instead.
"""

import functools
import logging
from collections.abc import Callable
from typing import Any, TypeVar

import click

from unstacked.core.errors import UnstackedError
from unstacked.core.output import user_output

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Callable[..., Any])


def cli_error_boundary(func: T) -> T:
    """Decorator that turns domain and subprocess errors into a red Error line and exit 1.

    Catches:
        - UnstackedError: Every domain error (corrupt stack, ref conflict, ...)
        - RuntimeError: git or gpg failures reported by run_subprocess_with_context
        - ValueError / IndexError: Invalid names and positions

    All other exceptions bubble up normally with full stack traces.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except (UnstackedError, RuntimeError, ValueError, IndexError) as e:
            logger.debug("Command failed", exc_info=True)
            user_output(click.style("Error: ", fg="red") + str(e))
            raise SystemExit(1) from None

    return wrapper  # type: ignore[return-value]
