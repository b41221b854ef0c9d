"""
Recipe catalog — which package provides which command.

The catalog is static configuration: it is filled once during session
initialization and only read afterwards. ``lookup`` is a pure dict
read. Batch operations (``install_by_tags``, key and repository
registration) attempt every entry and report failures together, so one
broken recipe never blocks provisioning of the rest.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from provisioner.core.models.recipe import (
    KeyRegistration,
    PackageRecipe,
    RecipeEntry,
    RepoRegistration,
)
from provisioner.core.models.result import BatchReport, ProcedureResult
from provisioner.core.services.installer import PackageInstaller
from provisioner.core.services.sources import SourceRegistrar

logger = logging.getLogger(__name__)


class RecipeCatalog:
    """Command → package lookup table plus trusted-source registrations.

    Args:
        platform: Current OS family; entries restricted to other
            platforms are not registered.
        installer: Platform installation procedure for batch installs.
        sources: Key/repository registrar for the current host.
    """

    def __init__(
        self,
        platform: str = "",
        installer: PackageInstaller | None = None,
        sources: SourceRegistrar | None = None,
    ):
        self.platform = platform
        self._entries: dict[str, RecipeEntry] = {}
        self._recipes: dict[str, PackageRecipe] = {}
        self._keys: dict[str, KeyRegistration] = {}
        self._repos: dict[str, RepoRegistration] = {}
        self._sources = sources
        self._installer: PackageInstaller | None = None
        if installer is not None:
            self.attach_installer(installer)

    def attach_installer(self, installer: PackageInstaller) -> None:
        """Use ``installer`` for batch installs and give it our recipes."""
        self._installer = installer
        installer.set_recipe_source(self.recipe)

    @property
    def installer(self) -> PackageInstaller | None:
        return self._installer

    # ── Registration ─────────────────────────────────────────────

    def register(
        self,
        command_name: str,
        package_id: str,
        tags: Iterable[str] = ("default",),
        platforms: Iterable[str] = (),
    ) -> RecipeEntry | None:
        """Register one command → package mapping.

        Re-registering a command replaces the earlier entry.

        Returns:
            The entry, or None if it does not apply to this platform.

        Raises:
            ValueError: If ``command_name`` or ``package_id`` is empty.
        """
        entry = RecipeEntry(
            command_name=command_name,
            package_id=package_id,
            tags=frozenset(tags),
            platforms=frozenset(platforms),
        )
        return self._add_entry(entry)

    def register_recipe(self, recipe: PackageRecipe) -> list[RecipeEntry]:
        """Register a full recipe and an entry for each command it provides."""
        if recipe.platforms and self.platform and self.platform not in recipe.platforms:
            logger.debug("Recipe %s inactive on %s", recipe.name, self.platform)
            return []
        if recipe.name in self._recipes:
            logger.warning("Overwriting recipe: %s", recipe.name)
        self._recipes[recipe.name] = recipe
        return [e for e in (self._add_entry(entry) for entry in recipe.entries()) if e]

    def _add_entry(self, entry: RecipeEntry) -> RecipeEntry | None:
        if self.platform and not entry.active_on(self.platform):
            return None
        previous = self._entries.get(entry.command_name)
        if previous is not None and previous.package_id != entry.package_id:
            logger.warning(
                "Command %s now provided by %s (was %s)",
                entry.command_name, entry.package_id, previous.package_id,
            )
        self._entries[entry.command_name] = entry
        return entry

    def register_key(self, key: KeyRegistration) -> None:
        self._keys[f"{key.name}:{key.manager}"] = key

    def register_repo(self, repo: RepoRegistration) -> None:
        self._repos[f"{repo.name}:{repo.manager}"] = repo

    # ── Queries ──────────────────────────────────────────────────

    def lookup(self, command_name: str) -> str | None:
        """Package id providing ``command_name``, or None."""
        entry = self._entries.get(command_name)
        return entry.package_id if entry else None

    def entry(self, command_name: str) -> RecipeEntry | None:
        return self._entries.get(command_name)

    def recipe(self, package_id: str) -> PackageRecipe | None:
        return self._recipes.get(package_id)

    def entries(self) -> list[RecipeEntry]:
        return [self._entries[name] for name in sorted(self._entries)]

    def entries_by_tags(self, tags: Iterable[str]) -> list[RecipeEntry]:
        """Entries whose tags intersect ``tags``, sorted by command."""
        wanted = set(tags)
        return [e for e in self.entries() if e.tags & wanted]

    def keys(self) -> list[KeyRegistration]:
        return list(self._keys.values())

    def repos(self) -> list[RepoRegistration]:
        return list(self._repos.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, command_name: object) -> bool:
        return command_name in self._entries

    # ── Batch operations ────────────────────────────────────────

    def install(self, package_id: str, provides: Iterable[str] = ()) -> ProcedureResult:
        """Install one package through the attached installer."""
        if self._installer is None:
            return ProcedureResult.failure(package_id, "No installer configured")
        return self._installer.install(package_id, list(provides))

    def install_by_tags(self, tags: Iterable[str]) -> BatchReport:
        """Install every package whose entries carry one of ``tags``.

        Entries are deduplicated by command, then by package. Every
        package is attempted; failures are collected in the report.
        """
        report = BatchReport(operation="install")
        by_package: dict[str, list[str]] = {}
        for entry in self.entries_by_tags(tags):
            by_package.setdefault(entry.package_id, []).append(entry.command_name)

        for package_id, commands in by_package.items():
            try:
                result = self.install(package_id, commands)
            except Exception as e:
                logger.exception("Installing %s raised", package_id)
                result = ProcedureResult.failure(package_id, f"Unexpected error: {e}")
            report.record(package_id, result)

        if report.failed:
            logger.warning(
                "Install by tags %s: %d failed (%s)",
                sorted(set(tags)), len(report.failed), ", ".join(sorted(report.failed)),
            )
        return report

    def add_registered_keys(self) -> BatchReport:
        """Add every registered signing key for available managers."""
        report = BatchReport(operation="add-keys")
        if self._sources is None:
            for name in self._keys:
                report.mark_skipped(name, "no source registrar")
            return report

        for name, key in self._keys.items():
            if not self._sources.applies(key.manager):
                report.mark_skipped(name, f"{key.manager} not available")
                continue
            report.record(name, self._guarded(name, lambda: self._sources.add_key(key)))
        return report

    def add_registered_repos(self) -> BatchReport:
        """Add every registered repository for available managers."""
        report = BatchReport(operation="add-repos")
        if self._sources is None:
            for name in self._repos:
                report.mark_skipped(name, "no source registrar")
            return report

        for name, repo in self._repos.items():
            if not self._sources.applies(repo.manager):
                report.mark_skipped(name, f"{repo.manager} not available")
                continue
            keyring = repo.keyring or self._keyring_for(repo)
            report.record(
                name, self._guarded(name, lambda: self._sources.add_repo(repo, keyring))
            )
        return report

    def _keyring_for(self, repo: RepoRegistration) -> str:
        key = self._keys.get(f"{repo.name}:{repo.manager}")
        return key.keyring_file if key else ""

    @staticmethod
    def _guarded(name: str, func) -> ProcedureResult:
        try:
            return func()
        except Exception as e:
            logger.exception("Registering %s raised", name)
            return ProcedureResult.failure(name, f"Unexpected error: {e}")
