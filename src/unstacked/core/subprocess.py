"""Subprocess execution with rich error context.

Every gateway that shells out to ``git`` or ``gpg`` goes through
``run_subprocess_with_context`` so that failures carry the operation being
attempted, the command line and whatever the tool printed.
"""

import logging
import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import IO, Any

logger = logging.getLogger(__name__)


def _decode(stream: str | bytes) -> str:
    if isinstance(stream, bytes):
        return stream.decode("utf-8", errors="replace")
    return stream


def run_subprocess_with_context(
    cmd: Sequence[str],
    operation_context: str,
    cwd: Path | None = None,
    capture_output: bool = True,
    text: bool = True,
    encoding: str | None = "utf-8",
    check: bool = True,
    stdout: int | IO[Any] | None = None,
    stderr: int | IO[Any] | None = None,
    **kwargs: Any,
) -> subprocess.CompletedProcess:
    """Execute subprocess with enriched error reporting for the gateway layer.

    Wraps subprocess.run() to catch CalledProcessError and re-raise as RuntimeError
    with operation context, stderr output, and command details.

    Args:
        cmd: Command and arguments to execute
        operation_context: Human-readable description of operation
        cwd: Working directory for command execution
        capture_output: Whether to capture stdout/stderr (default: True)
        text: Whether to decode output as text (default: True). Object database
            commands pass text=False to exchange raw object bytes.
        encoding: Text encoding to use when text=True (default: "utf-8")
        check: Whether to raise on non-zero exit (default: True)
        stdout: File descriptor or file object for stdout
        stderr: File descriptor or file object for stderr
        **kwargs: Additional arguments passed to subprocess.run()

    Returns:
        CompletedProcess instance from subprocess.run()

    Raises:
        RuntimeError: If command fails with enriched error context
    """
    if capture_output and (stdout is not None or stderr is not None):
        capture_output = False

    logger.debug("Running %s (%s)", " ".join(str(arg) for arg in cmd), operation_context)

    try:
        return subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=capture_output,
            text=text,
            encoding=encoding if text else None,
            check=check,
            stdout=stdout,
            stderr=stderr,
            **kwargs,
        )

    except subprocess.CalledProcessError as e:
        cmd_str = " ".join(str(arg) for arg in cmd)
        error_msg = f"Failed to {operation_context}"
        error_msg += f"\nCommand: {cmd_str}"
        error_msg += f"\nExit code: {e.returncode}"

        if e.stdout:
            stdout_stripped = _decode(e.stdout).strip()
            if stdout_stripped:
                error_msg += f"\nstdout: {stdout_stripped}"

        if e.stderr:
            stderr_stripped = _decode(e.stderr).strip()
            if stderr_stripped:
                error_msg += f"\nstderr: {stderr_stripped}"

        raise RuntimeError(error_msg) from e

    except FileNotFoundError as e:
        cmd_str = " ".join(str(arg) for arg in cmd)
        error_msg = f"Command not found while trying to {operation_context}: {cmd[0]}"
        error_msg += f"\nFull command: {cmd_str}"
        raise RuntimeError(error_msg) from e
