"""
Command dispatcher — what happens when a typed command is not found.

State machine, run once per unresolved command:

    Recovery  → reload search paths; if the command appeared, run it
    Lookup    → ask the catalog; no recipe → terminal failure
    Confirm   → ask on the terminal; no/none → terminal failure
    Install   → one attempt, outcome ignored (partial installs happen)
    Retry     → reload again; found → run it, else terminal failure
    Failure   → "<shell>: command not found: <cmd>", exit 127

Non-interactive sessions never prompt: they skip Recovery as well and
fail at once. On the success paths the original argument vector is
passed through unchanged.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from typing import TextIO

from provisioner.core.environment import SessionEnvironment
from provisioner.core.errors import (
    DispatchError,
    InstallationDeclined,
    InstallationFailed,
    RecipeNotFound,
)
from provisioner.core.models.event import (
    COMMAND_NOT_FOUND,
    Decision,
    DispatchResult,
    FailureKind,
    InstallationEvent,
    Outcome,
)
from provisioner.core.models.result import ProcedureResult
from provisioner.core.services.catalog import RecipeCatalog
from provisioner.core.services.executor import CommandExecutor
from provisioner.core.services.search_path import SearchPathCache
from provisioner.core.services.terminal import TerminalPrompt

logger = logging.getLogger(__name__)

_FAILURE_KINDS: dict[type[DispatchError], FailureKind] = {
    RecipeNotFound: FailureKind.RECIPE_NOT_FOUND,
    InstallationDeclined: FailureKind.DECLINED,
    InstallationFailed: FailureKind.INSTALLATION_FAILED,
}


class CommandDispatcher:
    """Interceptor for unresolved commands."""

    def __init__(
        self,
        catalog: RecipeCatalog,
        path_cache: SearchPathCache,
        env: SessionEnvironment,
        *,
        prompt: TerminalPrompt | None = None,
        executor: CommandExecutor | None = None,
        interactive: bool | Callable[[], bool] = True,
        shell_name: str = "zsh",
        stderr: TextIO | None = None,
    ):
        self.catalog = catalog
        self.path_cache = path_cache
        self.env = env
        self.prompt = prompt or TerminalPrompt()
        self.executor = executor or CommandExecutor()
        self._interactive = interactive
        self.shell_name = shell_name
        self._stderr = stderr

    @property
    def interactive(self) -> bool:
        if callable(self._interactive):
            return bool(self._interactive())
        return self._interactive

    @property
    def stderr(self) -> TextIO:
        return self._stderr or sys.stderr

    def _say(self, message: str) -> None:
        print(message, file=self.stderr, flush=True)

    # ── Entry point ──────────────────────────────────────────────

    def __call__(self, argv: list[str]) -> DispatchResult:
        return self.dispatch(argv)

    def dispatch(self, argv: list[str]) -> DispatchResult:
        """Handle one unresolved command.

        Args:
            argv: The attempted command and its arguments, exactly as
                the shell would have passed them.
        """
        if not argv or not argv[0]:
            raise ValueError("dispatch needs at least a command name")

        command = argv[0]
        event = InstallationEvent(command=command)

        try:
            if not self.interactive:
                event.failure = FailureKind.NON_INTERACTIVE
                return self._fail(argv, event)

            # 1. Recovery
            recovered = self._reload_and_find(command)
            if recovered:
                event.outcome = Outcome.RECOVERED
                return self._execute(argv, recovered, event)

            # 2. Lookup
            package_id = self.catalog.lookup(command)
            if package_id is None:
                raise RecipeNotFound(command)
            event.package_id = package_id

            # 3. Confirm
            self._confirm(command, package_id, event)

            # 4. Install (exactly one attempt)
            event.install_attempts += 1
            try:
                result = self.catalog.install(package_id, [command])
            except Exception as e:
                logger.debug("Installing %s raised", package_id, exc_info=True)
                result = ProcedureResult.failure(package_id, f"Unexpected error: {e}")
            if result.failed:
                logger.warning("Installer reported failure for %s: %s", package_id, result.error)

            # 5. Reload & retry
            self._say("🔄 Reloading paths...")
            path = self._reload_and_find(command)
            if path is None:
                raise InstallationFailed(command, result.error or "")

            event.outcome = Outcome.INSTALLED
            return self._execute(argv, path, event)

        except DispatchError as e:
            event.failure = _FAILURE_KINDS.get(type(e), FailureKind.INSTALLATION_FAILED)
            event.message = str(e)
            if isinstance(e, InstallationFailed):
                self._say(
                    f"❌ Command '{command}' still not found after installation. "
                    "You may need to restart your shell."
                )
            return self._fail(argv, event)

    # ── Steps ────────────────────────────────────────────────────

    def _reload_and_find(self, command: str) -> str | None:
        self.path_cache.invalidate()
        path = self.path_cache.which(command)
        if path is None:
            self.path_cache.reload()
            path = self.path_cache.which(command)
        return path

    def _confirm(self, command: str, package_id: str, event: InstallationEvent) -> None:
        self._say(
            f"💡 Command '{command}' not found, but can be installed via package '{package_id}'."
        )
        answer = self.prompt.confirm(f"   Install {package_id}? [y/N] ")
        if answer is None:
            event.decision = Decision.NO_TERMINAL
            raise InstallationDeclined(command, package_id)
        if not answer:
            event.decision = Decision.DECLINED
            raise InstallationDeclined(command, package_id)
        event.decision = Decision.ACCEPTED

    def _execute(self, argv: list[str], path: str, event: InstallationEvent) -> DispatchResult:
        exit_code = self.executor.run(path, list(argv), self.env.snapshot())
        logger.debug("%s finished with %d (%s)", argv[0], exit_code, event.outcome)
        return DispatchResult(outcome=event.outcome, exit_code=exit_code, event=event, argv=argv)

    def _fail(self, argv: list[str], event: InstallationEvent) -> DispatchResult:
        event.outcome = Outcome.DECLINED_OR_FAILED
        if event.message:
            logger.info("%s", event.message)
        self._say(f"{self.shell_name}: command not found: {argv[0]}")
        return DispatchResult(
            outcome=Outcome.DECLINED_OR_FAILED,
            exit_code=COMMAND_NOT_FOUND,
            event=event,
            argv=argv,
        )
