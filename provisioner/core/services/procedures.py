"""
Procedures — runnable units behind resolvers, preconditions and hooks.

A procedure is either an external command (a shell snippet or an argv
list) or a Python callable. Like adapters, procedures report through a
ProcedureResult and never raise.

To plug in a new kind of procedure:
    1. Subclass Procedure
    2. Implement description and run
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import IO

from provisioner.core.environment import SessionEnvironment
from provisioner.core.models.result import ProcedureResult
from provisioner.core.services.runner import run_command

logger = logging.getLogger(__name__)

DEFAULT_SHELL: tuple[str, ...] = ("sh", "-c")


class Procedure(ABC):
    """Something that can be run against a session environment."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Short label for logs and error messages."""

    @abstractmethod
    def run(
        self,
        env: SessionEnvironment,
        *,
        capture: bool = True,
        stdout: int | IO[str] | None = None,
    ) -> ProcedureResult:
        """Run the procedure.

        Args:
            env: Session environment handed to child processes.
            capture: Capture stdout into the result. Preconditions run
                uncaptured so they can talk to the user.
            stdout: Destination for an uncaptured command's stdout.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.description!r}>"


class CommandProcedure(Procedure):
    """An external command.

    A string is run through ``shell`` (default ``sh -c``); a list is
    run as-is.
    """

    def __init__(self, command: str | Sequence[str], shell: Sequence[str] = DEFAULT_SHELL):
        if isinstance(command, str):
            if not command.strip():
                raise ValueError("command must not be empty")
            self._argv = [*shell, command]
            self._description = command.split()[0]
        else:
            if not command:
                raise ValueError("command must not be empty")
            self._argv = list(command)
            self._description = self._argv[0]

    @property
    def description(self) -> str:
        return self._description

    @property
    def argv(self) -> list[str]:
        return list(self._argv)

    def run(
        self,
        env: SessionEnvironment,
        *,
        capture: bool = True,
        stdout: int | IO[str] | None = None,
    ) -> ProcedureResult:
        return run_command(
            self._argv,
            env=env.snapshot(),
            capture=capture,
            stdout=stdout,
            label=self._description,
        )


class CallableProcedure(Procedure):
    """A Python callable.

    Return values:
        str          → success, the string is the output
        None / True  → success, empty output
        False        → failure
    Raised exceptions are reported as failures.
    """

    def __init__(self, func: Callable[[], str | bool | None], name: str | None = None):
        self._func = func
        self._description = name or getattr(func, "__name__", "callable")

    @property
    def description(self) -> str:
        return self._description

    def run(
        self,
        env: SessionEnvironment,
        *,
        capture: bool = True,
        stdout: int | IO[str] | None = None,
    ) -> ProcedureResult:
        try:
            value = self._func()
        except Exception as e:
            logger.debug("Procedure %s raised: %s", self._description, e)
            return ProcedureResult.failure(self._description, str(e) or e.__class__.__name__)

        if value is False:
            return ProcedureResult.failure(self._description, "returned False")
        output = value if isinstance(value, str) else ""
        return ProcedureResult.success(self._description, output=output)


ProcedureLike = Procedure | Callable[[], str | bool | None] | str | Sequence[str]


def as_procedure(value: ProcedureLike, shell: Sequence[str] = DEFAULT_SHELL) -> Procedure:
    """Coerce a procedure-like value into a Procedure."""
    if isinstance(value, Procedure):
        return value
    if isinstance(value, str):
        return CommandProcedure(value, shell=shell)
    if callable(value):
        return CallableProcedure(value)
    if isinstance(value, Sequence):
        return CommandProcedure(list(value), shell=shell)
    raise TypeError(f"Cannot use {type(value).__name__} as a procedure")
