"""
Package installer — the platform installation procedure.

Given a package id, the installer:
    1. resolves the dependency stack (dependencies first)
    2. skips every recipe whose commands are already reachable
    3. picks an install method: package managers by precedence, then
       a GitHub release, then the recipe's install_cmd
    4. runs pre_install, refreshes the manager index (once per
       session), installs, runs post_install

A package id without a recipe is installed literally through the
host's primary package manager.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from provisioner.adapters.registry import ManagerRegistry
from provisioner.core.environment import SessionEnvironment
from provisioner.core.models.recipe import PackageRecipe
from provisioner.core.models.result import ProcedureResult
from provisioner.core.services.procedures import DEFAULT_SHELL, CommandProcedure
from provisioner.core.services.releases import ReleaseInstaller
from provisioner.core.services.runner import TO_STDERR
from provisioner.core.services.search_path import SearchPathCache

logger = logging.getLogger(__name__)

RecipeSource = Callable[[str], PackageRecipe | None]


class DependencyCycle(ValueError):
    """Recipe dependencies loop back on themselves."""


class PackageInstaller:
    """Installs packages for one session."""

    def __init__(
        self,
        managers: ManagerRegistry,
        path_cache: SearchPathCache,
        env: SessionEnvironment,
        recipe_source: RecipeSource | None = None,
        shell: Sequence[str] = DEFAULT_SHELL,
        releases: ReleaseInstaller | None = None,
    ):
        self.managers = managers
        self.path_cache = path_cache
        self.env = env
        self.releases = releases
        self._recipe_source = recipe_source or (lambda _id: None)
        self._shell = tuple(shell)

    def set_recipe_source(self, source: RecipeSource) -> None:
        self._recipe_source = source

    # ── Resolution ───────────────────────────────────────────────

    def recipe_for(self, package_id: str, provides: Sequence[str] = ()) -> PackageRecipe:
        """The recipe for ``package_id``, or a literal stand-in."""
        recipe = self._recipe_source(package_id)
        if recipe is not None:
            return recipe
        return PackageRecipe(
            name=package_id,
            provides=list(provides) or [package_id],
            packages={"default": package_id},
        )

    def resolve_stack(self, package_id: str) -> list[str]:
        """Package ids to install for ``package_id``, dependencies first.

        Raises:
            DependencyCycle: If a recipe depends on itself, directly or not.
        """
        stack: list[str] = []
        visiting: set[str] = set()

        def visit(rid: str) -> None:
            if rid in stack:
                return
            if rid in visiting:
                raise DependencyCycle(f"Dependency cycle at {rid}")
            visiting.add(rid)
            recipe = self._recipe_source(rid)
            for dep in recipe.depends if recipe else []:
                visit(dep)
            visiting.discard(rid)
            stack.append(rid)

        visit(package_id)
        return stack

    def is_installed(self, recipe: PackageRecipe) -> bool:
        """Whether any command the recipe provides is reachable."""
        return any(self.path_cache.resolvable(cmd) for cmd in recipe.provides)

    def select_method(self, recipe: PackageRecipe) -> str | None:
        """Best available install method for ``recipe`` on this host."""
        method = self.managers.select(recipe.packages)
        if method:
            return method
        if recipe.github and self.releases is not None:
            return "github"
        if recipe.install_cmd:
            return "install_cmd"
        return None

    # ── Installation ─────────────────────────────────────────────

    def install(self, package_id: str, provides: Sequence[str] = ()) -> ProcedureResult:
        """Install ``package_id`` and its dependencies.

        Safe to call for an installed package: every recipe whose
        commands already resolve is skipped.
        """
        try:
            stack = self.resolve_stack(package_id)
        except DependencyCycle as e:
            logger.error("%s", e)
            return ProcedureResult.failure(package_id, str(e))

        installed: list[str] = []
        for rid in stack:
            recipe = self.recipe_for(rid, provides if rid == package_id else ())
            result = self._install_recipe(recipe)
            if result.failed:
                return ProcedureResult.failure(
                    package_id,
                    result.error if rid == package_id else f"dependency {rid}: {result.error}",
                    metadata={"installed": installed, "failed_at": rid},
                )
            if result.status == "ok":
                installed.append(rid)

        if not installed:
            return ProcedureResult.skip(package_id, "already installed")
        return ProcedureResult.success(
            package_id,
            output=f"Installed {', '.join(installed)}",
            metadata={"installed": installed},
        )

    def _install_recipe(self, recipe: PackageRecipe) -> ProcedureResult:
        rid = recipe.name
        if self.is_installed(recipe):
            logger.info("Already installed: %s", rid)
            return ProcedureResult.skip(rid, "already installed")

        method = self.select_method(recipe)
        if method is None:
            return ProcedureResult.failure(rid, f"No install method for '{rid}' on this system")

        pre = self._run_hook(recipe, "pre_install")
        if pre.failed:
            return ProcedureResult.failure(rid, f"pre_install failed: {pre.error}")

        if method == "github":
            release = recipe.release()
            assert release is not None and self.releases is not None
            result = self.releases.install(release)
        elif method == "install_cmd":
            assert recipe.install_cmd is not None
            result = CommandProcedure(recipe.install_cmd, shell=self._shell).run(
                self.env, capture=False, stdout=TO_STDERR
            )
        else:
            result = self._install_with_manager(recipe, method)

        # Installed binaries may live in a directory the table has not seen.
        self.path_cache.invalidate()
        if result.failed:
            logger.error("Installation of %s via %s failed: %s", rid, method, result.error)
            return ProcedureResult.failure(rid, result.error or f"{method} install failed")

        post = self._run_hook(recipe, "post_install")
        if post.failed:
            logger.warning("post_install for %s failed: %s", rid, post.error)

        logger.info("Installed %s via %s", rid, method)
        return ProcedureResult.success(rid, metadata={"method": method})

    def _install_with_manager(self, recipe: PackageRecipe, method: str) -> ProcedureResult:
        manager = self.managers.get(method)
        if manager is None:
            return ProcedureResult.failure(recipe.name, f"No package manager '{method}'")

        spec = recipe.packages.get(method) or recipe.packages.get("default", "")
        packages = spec.split()
        if not packages:
            return ProcedureResult.failure(recipe.name, f"No package listed for {method}")

        env = self.env.snapshot()
        refreshed = self.managers.refresh_once(method, env)
        if refreshed.failed:
            logger.warning("Index refresh for %s failed: %s", method, refreshed.error)
        return manager.install(packages, env)

    def _run_hook(self, recipe: PackageRecipe, hook: str) -> ProcedureResult:
        command = getattr(recipe, hook)
        if not command:
            return ProcedureResult.skip(hook)
        logger.info("Running %s for %s", hook, recipe.name)
        return CommandProcedure(command, shell=self._shell).run(
            self.env, capture=False, stdout=TO_STDERR
        )
