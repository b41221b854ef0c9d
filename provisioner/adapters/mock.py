"""
Mock package manager — test double for install operations.

Records every call instead of touching the system. Individual
packages can be configured to fail, and an ``on_install`` callback
lets tests make a binary appear once its package is "installed".
"""

from __future__ import annotations

from collections.abc import Callable, Mapping

from provisioner.adapters.base import PackageManager
from provisioner.core.models.result import ProcedureResult


class MockPackageManager(PackageManager):
    """Package manager that only records what it was asked to do."""

    def __init__(
        self,
        manager_name: str = "mock",
        available: bool = True,
        on_install: Callable[[list[str]], None] | None = None,
    ):
        self._name = manager_name
        self._available = available
        self._on_install = on_install
        self._failures: dict[str, str] = {}
        self.installs: list[list[str]] = []
        self.updates: int = 0
        self.repos: list[str] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_count(self) -> int:
        """Number of install calls."""
        return len(self.installs)

    @property
    def installed(self) -> list[str]:
        """Every package name passed to a successful install."""
        out: list[str] = []
        for packages in self.installs:
            if not any(p in self._failures for p in packages):
                out.extend(packages)
        return out

    def is_available(self) -> bool:
        return self._available

    def set_failure(self, package: str, error: str = "Mock failure") -> None:
        """Make installing ``package`` fail."""
        self._failures[package] = error

    def install(
        self,
        packages: list[str],
        env: Mapping[str, str] | None = None,
    ) -> ProcedureResult:
        self.installs.append(list(packages))
        for package in packages:
            if package in self._failures:
                return ProcedureResult.failure(
                    f"{self._name} install", self._failures[package], return_code=100
                )
        if self._on_install:
            self._on_install(list(packages))
        return ProcedureResult.success(f"{self._name} install", output=" ".join(packages))

    def update(self, env: Mapping[str, str] | None = None) -> ProcedureResult:
        self.updates += 1
        return ProcedureResult.success(f"{self._name} update")

    def add_repo(self, source: str, env: Mapping[str, str] | None = None) -> ProcedureResult:
        self.repos.append(source)
        return ProcedureResult.success(f"{self._name} add-repo")

    def reset(self) -> None:
        """Clear the call log and configured failures."""
        self.installs.clear()
        self.repos.clear()
        self.updates = 0
        self._failures.clear()
