"""
Credential registry — lazy, at-most-once secret resolution.

Entries are registered at session start without side effects. The
first consumer that calls ``load(name)`` runs the precondition (for
example "unlock the vault"), then the resolver, and publishes the
trimmed output into the session environment. Later callers find the
value there and run nothing: the environment variable is the cache.

Failures are never cached. A failed or empty resolution publishes
nothing, so the next ``load`` simply tries again.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Sequence

from provisioner.core.environment import SessionEnvironment
from provisioner.core.errors import (
    CredentialError,
    CredentialNotRegistered,
    PreconditionFailed,
    ResolverFailed,
)
from provisioner.core.models.credential import CredentialEntry, CredentialSpec
from provisioner.core.services.procedures import DEFAULT_SHELL, ProcedureLike, as_procedure
from provisioner.core.services.runner import TO_STDERR

logger = logging.getLogger(__name__)


class CredentialRegistry:
    """Registry of lazily resolved credentials for one session."""

    def __init__(self, env: SessionEnvironment, shell: Sequence[str] = DEFAULT_SHELL):
        self._env = env
        self._shell = tuple(shell)
        self._entries: dict[str, CredentialEntry] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    # ── Registration ─────────────────────────────────────────────

    def register(
        self,
        name: str,
        resolver: ProcedureLike,
        precondition: ProcedureLike | None = None,
    ) -> CredentialEntry:
        """Register a credential. Pure bookkeeping.

        Registering an existing name overwrites the previous entry
        (tests rely on this to swap in stub resolvers).

        Raises:
            ValueError: If ``name`` is empty.
        """
        name = name.strip() if name else ""
        if not name:
            raise ValueError("credential name must not be empty")

        entry = CredentialEntry(
            name=name,
            resolver=as_procedure(resolver, self._shell),
            precondition=as_procedure(precondition, self._shell) if precondition is not None else None,
        )
        with self._guard:
            if name in self._entries:
                logger.warning("Overwriting credential registration: %s", name)
            self._entries[name] = entry
        logger.debug("Registered credential: %s", name)
        return entry

    def register_spec(self, spec: CredentialSpec) -> CredentialEntry:
        """Register a credential declared in the config file."""
        return self.register(spec.name, spec.resolver, spec.precondition)

    def get(self, name: str) -> CredentialEntry | None:
        return self._entries.get(name)

    def names(self) -> list[str]:
        return sorted(self._entries)

    def entries(self) -> list[CredentialEntry]:
        return [self._entries[n] for n in self.names()]

    def is_resolved(self, name: str) -> bool:
        """Whether a value for ``name`` is already in the environment."""
        return self._env.has(name)

    # ── Resolution ───────────────────────────────────────────────

    def load(self, name: str) -> str:
        """Make sure ``name`` is set in the environment and return it.

        Raises:
            CredentialNotRegistered: Not set and nothing registered.
            PreconditionFailed: The precondition failed; the resolver
                was not run.
            ResolverFailed: The resolver failed or printed nothing;
                nothing was published.
        """
        existing = self._env.get(name)
        if existing:
            return existing

        entry = self._entries.get(name)
        if entry is None:
            raise CredentialNotRegistered(name)

        with self._lock_for(name):
            # Another consumer may have published while we waited.
            existing = self._env.get(name)
            if existing:
                return existing
            return self._resolve(entry)

    def load_many(self, names: Sequence[str]) -> dict[str, str]:
        """Load several credentials; stops at the first failure."""
        return {name: self.load(name) for name in names}

    def load_referenced(self, command_line: str) -> list[str]:
        """Load every unresolved credential referenced in a command line.

        A name counts as referenced when it appears as a whole word
        (not as part of a longer upper-case identifier). Failures are
        logged and skipped so the command itself still runs.

        Returns:
            Names that were resolved by this call.
        """
        loaded: list[str] = []
        for name in self.names():
            if self.is_resolved(name):
                continue
            if not _references(command_line, name):
                continue
            try:
                self.load(name)
            except CredentialError as e:
                logger.warning("%s", e)
                continue
            loaded.append(name)
        return loaded

    def _resolve(self, entry: CredentialEntry) -> str:
        name = entry.name

        if entry.precondition is not None:
            logger.debug("Running precondition for %s: %s", name, entry.precondition.description)
            pre = entry.precondition.run(self._env, capture=False, stdout=TO_STDERR)
            if pre.failed:
                raise PreconditionFailed(name, pre.error or "")

        logger.debug("Resolving %s via %s", name, entry.resolver.description)
        result = entry.resolver.run(self._env)
        if result.failed:
            raise ResolverFailed(name, result.error or "")

        value = result.output.strip()
        if not value:
            raise ResolverFailed(name, "resolver produced no output")

        if not self._env.set_if_absent(name, value):
            # Published by someone else while the resolver ran; theirs stands.
            logger.debug("%s was set during resolution, keeping existing value", name)
            return self._env.get(name) or value
        logger.info("Resolved credential %s", name)
        return value

    def _lock_for(self, name: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(name)
            if lock is None:
                lock = self._locks[name] = threading.Lock()
            return lock


def _references(command_line: str, name: str) -> bool:
    pattern = rf"(^|[^A-Z_]){re.escape(name)}([^A-Z_]|$)"
    return re.search(pattern, command_line) is not None
