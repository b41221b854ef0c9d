"""
Manager registry — lookup, availability and precedence for managers.

The installer never talks to managers directly; it asks the registry
which manager to use for a recipe and lets the registry refresh
package indexes at most once per session.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from provisioner.adapters.base import PackageManager
from provisioner.core.models.result import ProcedureResult

logger = logging.getLogger(__name__)

# Lower index = preferred. Recipes list the methods they support; the
# first available one in this order wins.
DEFAULT_PRECEDENCE: tuple[str, ...] = (
    "brew",
    "brew-cask",
    "pkg",
    "flatpak",
    "snap",
    "apt",
    "dnf",
    "pacman",
    "cargo",
)


class ManagerRegistry:
    """Central registry of package managers for one session.

    Features:
        - Register/unregister managers by name
        - Availability checked once per session and cached
        - Method selection by precedence
        - Index refresh at most once per manager per session
    """

    def __init__(
        self,
        precedence: Iterable[str] = DEFAULT_PRECEDENCE,
        primary: str | None = None,
    ):
        self._managers: dict[str, PackageManager] = {}
        self._precedence = list(precedence)
        self._primary = primary
        self._available: dict[str, bool] = {}
        self._refreshed: set[str] = set()
        self._needs_refresh: set[str] = set()

    @property
    def primary(self) -> str | None:
        """The host's primary manager name, when it is available."""
        if self._primary and self.is_available(self._primary):
            return self._primary
        return None

    def register(self, manager: PackageManager) -> None:
        name = manager.name
        if name in self._managers:
            logger.warning("Overwriting existing package manager: %s", name)
        self._managers[name] = manager
        self._available.pop(name, None)
        if name not in self._precedence:
            self._precedence.append(name)
        logger.debug("Registered package manager: %s", name)

    def unregister(self, name: str) -> None:
        self._managers.pop(name, None)
        self._available.pop(name, None)

    def get(self, name: str) -> PackageManager | None:
        return self._managers.get(name)

    def list_managers(self) -> list[str]:
        return list(self._managers.keys())

    def is_available(self, name: str) -> bool:
        if name not in self._available:
            manager = self._managers.get(name)
            try:
                self._available[name] = bool(manager and manager.is_available())
            except Exception:
                self._available[name] = False
        return self._available[name]

    def manager_status(self) -> dict[str, dict[str, Any]]:
        """Availability of every registered manager."""
        return {
            name: {
                "name": name,
                "available": self.is_available(name),
                "primary": name == self._primary,
                "type": manager.__class__.__name__,
            }
            for name, manager in self._managers.items()
        }

    def select(self, methods: Iterable[str]) -> str | None:
        """Pick the preferred available manager among ``methods``.

        ``default`` stands for the primary manager.
        """
        wanted = set(methods)
        for name in self._precedence:
            if name in wanted and self.is_available(name):
                return name
        if "default" in wanted and self.primary:
            return self.primary
        return None

    # ── Index refresh ───────────────────────────────────────────

    def request_refresh(self, name: str) -> None:
        """Force the next ``refresh_once`` (e.g. after adding a source)."""
        self._needs_refresh.add(name)

    def refresh_once(self, name: str, env: Mapping[str, str] | None = None) -> ProcedureResult:
        """Refresh a manager's index unless already done this session."""
        manager = self._managers.get(name)
        if manager is None:
            return ProcedureResult.failure(name, f"No package manager registered as '{name}'")
        if name in self._refreshed and name not in self._needs_refresh:
            return ProcedureResult.skip(name, "index already refreshed")

        result = manager.update(env)
        if result.ok:
            self._refreshed.add(name)
            self._needs_refresh.discard(name)
        return result
