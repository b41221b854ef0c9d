"""
Subprocess runner — the single place external commands are started.

Resolvers, preconditions, package managers and hooks all go through
``run_command``. It captures what it is told to capture, applies the
session environment, and turns every outcome into a ProcedureResult.
It never raises for a failing command.
"""

from __future__ import annotations

import logging
import subprocess
import time
from collections.abc import Mapping
from typing import IO

from provisioner.core.models.result import ProcedureResult

logger = logging.getLogger(__name__)

# Keep at most this many characters of captured stderr in results.
_TAIL = 2000

# File descriptor for uncaptured children that must not write to our stdout.
# Hook and export output on stdout belongs to the user's command or the shell.
TO_STDERR = 2


def run_command(
    cmd: list[str],
    *,
    env: Mapping[str, str] | None = None,
    capture: bool = True,
    timeout: float | None = None,
    label: str | None = None,
    cwd: str | None = None,
    input_text: str | None = None,
    stdout: int | IO[str] | None = None,
) -> ProcedureResult:
    """Run a command and describe the outcome.

    Args:
        cmd: Argument vector. Never interpreted by a shell here; callers
            that want a shell pass ``["sh", "-c", script]``.
        env: Full environment for the child (default: inherit).
        capture: Capture stdout/stderr. When False the child shares
            this process's terminal (needed for prompts such as a
            vault unlock).
        timeout: Seconds before giving up. None waits forever.
        label: Description used in results and logs (default: argv[0]).
        cwd: Working directory.
        input_text: Data written to the child's stdin (never logged).
        stdout: Where an uncaptured child's stdout goes, e.g.
            ``TO_STDERR``. Ignored when capturing. Default: inherit.

    Returns:
        ProcedureResult with stdout in ``output`` on success.
    """
    name = label or (cmd[0] if cmd else "<empty>")
    if not cmd:
        return ProcedureResult.failure(name, "Empty command")

    logger.debug("Running: %s", name)
    start = time.monotonic()
    try:
        result = subprocess.run(
            cmd,
            stdout=subprocess.PIPE if capture else stdout,
            stderr=subprocess.PIPE if capture else None,
            text=True,
            errors="replace",
            timeout=timeout,
            env=dict(env) if env is not None else None,
            cwd=cwd,
            input=input_text,
        )
    except FileNotFoundError:
        return ProcedureResult.failure(name, f"Command not found: {cmd[0]}", return_code=127)
    except subprocess.TimeoutExpired:
        return ProcedureResult.failure(name, f"Command timed out ({timeout}s)")
    except OSError as e:
        logger.debug("Could not start %s: %s", name, e)
        return ProcedureResult.failure(name, str(e))

    elapsed_ms = int((time.monotonic() - start) * 1000)
    stdout = (result.stdout or "") if capture else ""
    stderr = (result.stderr or "")[-_TAIL:] if capture else ""

    if result.returncode == 0:
        return ProcedureResult.success(
            name,
            output=stdout,
            return_code=0,
            duration_ms=elapsed_ms,
        )

    return ProcedureResult.failure(
        name,
        stderr.strip() or f"Command failed (exit {result.returncode})",
        output=stdout,
        return_code=result.returncode,
        duration_ms=elapsed_ms,
    )
