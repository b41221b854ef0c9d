"""
Dispatch models — the transient record of one missing-command event.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field

# Conventional shell exit status for "command not found".
COMMAND_NOT_FOUND = 127


class Outcome(StrEnum):
    """Tagged result of a dispatch."""

    RECOVERED = "recovered"
    INSTALLED = "installed"
    DECLINED_OR_FAILED = "declined_or_failed"


class Decision(StrEnum):
    """What the user answered at the confirmation prompt."""

    NOT_ASKED = "not_asked"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    NO_TERMINAL = "no_terminal"


class FailureKind(StrEnum):
    """Why a dispatch ended in the terminal failure state.

    All kinds look the same to the user; the distinction exists for
    callers and tests.
    """

    NON_INTERACTIVE = "non_interactive"
    RECIPE_NOT_FOUND = "recipe_not_found"
    DECLINED = "declined"
    INSTALLATION_FAILED = "installation_failed"


class InstallationEvent(BaseModel):
    """One attempt to resolve a missing command. Never persisted."""

    command: str
    package_id: str | None = None
    decision: Decision = Decision.NOT_ASKED
    install_attempts: int = 0
    outcome: Outcome = Outcome.DECLINED_OR_FAILED
    failure: FailureKind | None = None
    message: str = ""


class DispatchResult(BaseModel):
    """What the dispatcher hands back to the command runner."""

    outcome: Outcome
    exit_code: int = COMMAND_NOT_FOUND
    event: InstallationEvent
    argv: list[str] = Field(default_factory=list)

    @property
    def handled(self) -> bool:
        """Whether the original command ended up running."""
        return self.outcome != Outcome.DECLINED_OR_FAILED
