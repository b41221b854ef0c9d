"""
Command executor — runs the original command on the success path.

The argument vector is passed through untouched (no shell, no
re-quoting), and the child inherits this process's stdin, stdout and
stderr, so pipes and redirections set up by the calling shell still
apply.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Mapping

from provisioner.core.models.event import COMMAND_NOT_FOUND

logger = logging.getLogger(__name__)

# Exit status when a command exists but cannot be executed.
NOT_EXECUTABLE = 126


class CommandExecutor:
    """Runs ``[path, *args]`` and returns its exit status."""

    def run(self, path: str, argv: list[str], env: Mapping[str, str]) -> int:
        """Execute a resolved command.

        Args:
            path: Resolved executable location.
            argv: Original argument vector; ``argv[0]`` is the command
                name as typed and is kept as the child's argv[0].
            env: Environment for the child.
        """
        logger.debug("Executing %s (%d args)", path, len(argv) - 1)
        try:
            completed = subprocess.run(argv, executable=path, env=dict(env))
        except FileNotFoundError:
            return COMMAND_NOT_FOUND
        except PermissionError:
            return NOT_EXECUTABLE
        except KeyboardInterrupt:
            return 130
        return completed.returncode
