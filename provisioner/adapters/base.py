"""
Package manager base — the contract between the installer and tools.

The installer never shells out to apt, brew or friends directly; it
asks a PackageManager. Managers report through ProcedureResult and
never raise.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping

from provisioner.core.models.result import ProcedureResult


class PackageManager(ABC):
    """Abstract base class for package managers.

    To add a new manager:
        1. Subclass PackageManager (or configure a CommandPackageManager)
        2. Implement name, is_available, install
        3. Register it in the ManagerRegistry
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The manager identifier as used in recipes (e.g. 'apt')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether this manager can be used on this host. Never raises."""

    @abstractmethod
    def install(
        self,
        packages: list[str],
        env: Mapping[str, str] | None = None,
    ) -> ProcedureResult:
        """Install packages. Installing what is present must be a no-op."""

    def update(self, env: Mapping[str, str] | None = None) -> ProcedureResult:
        """Refresh the package index. Default: nothing to do."""
        return ProcedureResult.skip(self.name, "no index to refresh")

    def add_repo(self, source: str, env: Mapping[str, str] | None = None) -> ProcedureResult:
        """Register a package source. Default: unsupported."""
        return ProcedureResult.failure(
            self.name, f"Adding sources is not supported for {self.name}"
        )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
