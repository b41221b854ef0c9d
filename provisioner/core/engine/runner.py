"""
Command runner — the REPL-side loop that turns argv into a process.

Flow:
    argv → resolve through search-path cache → found: execute
                                             → missing: interceptors → first handled result wins

Interceptors are registered explicitly (the command dispatcher is the
usual one). If none handles the command, the runner reports the
standard "command not found" status itself.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TextIO

from provisioner.core.environment import SessionEnvironment
from provisioner.core.models.event import COMMAND_NOT_FOUND, DispatchResult
from provisioner.core.services.executor import CommandExecutor
from provisioner.core.services.search_path import SearchPathCache

logger = logging.getLogger(__name__)

Interceptor = Callable[[list[str]], DispatchResult]


@dataclass
class RunReport:
    """Result of running one command line."""

    argv: list[str] = field(default_factory=list)
    exit_code: int = 0
    path: str | None = None
    dispatch: DispatchResult | None = None

    @property
    def intercepted(self) -> bool:
        return self.dispatch is not None

    def to_dict(self) -> dict:
        return {
            "argv": self.argv,
            "exit_code": self.exit_code,
            "path": self.path,
            "dispatch": self.dispatch.model_dump() if self.dispatch else None,
        }


class CommandRunner:
    """Resolves and runs commands, deferring misses to interceptors."""

    def __init__(
        self,
        path_cache: SearchPathCache,
        env: SessionEnvironment,
        *,
        executor: CommandExecutor | None = None,
        shell_name: str = "zsh",
        stderr: TextIO | None = None,
    ):
        self.path_cache = path_cache
        self.env = env
        self.executor = executor or CommandExecutor()
        self.shell_name = shell_name
        self._stderr = stderr
        self._interceptors: list[Interceptor] = []

    def add_interceptor(self, interceptor: Interceptor) -> None:
        self._interceptors.append(interceptor)

    @property
    def interceptors(self) -> list[Interceptor]:
        return list(self._interceptors)

    def run(self, argv: list[str]) -> RunReport:
        if not argv or not argv[0]:
            raise ValueError("run needs at least a command name")

        report = RunReport(argv=list(argv))
        path = self.path_cache.which(argv[0])
        if path is not None:
            report.path = path
            report.exit_code = self.executor.run(path, list(argv), self.env.snapshot())
            return report

        logger.debug("%s not resolvable, trying %d interceptor(s)", argv[0], len(self._interceptors))
        for interceptor in self._interceptors:
            result = interceptor(list(argv))
            report.dispatch = result
            report.exit_code = result.exit_code
            if result.handled:
                break
        else:
            if report.dispatch is None:
                print(
                    f"{self.shell_name}: command not found: {argv[0]}",
                    file=self._stderr or sys.stderr,
                )
                report.exit_code = COMMAND_NOT_FOUND
        return report
