"""
Session — the explicit initialization phase.

Everything a shell session needs is built here, in a fixed order, from
one ProvisionConfig:

    environment → credentials → host → package managers → search paths
        → releases → installer → source registrar → catalog → dispatcher
        → runner

Nothing is registered as a side effect of importing a module, so tests
can build a session from a hand-written config and inspect every
registry it produced.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TextIO

from provisioner.adapters.base import PackageManager
from provisioner.adapters.package_managers import builtin_managers
from provisioner.adapters.registry import ManagerRegistry
from provisioner.core.engine.runner import CommandRunner
from provisioner.core.environment import SessionEnvironment
from provisioner.core.models.config import ProvisionConfig
from provisioner.core.services.catalog import RecipeCatalog
from provisioner.core.services.credentials import CredentialRegistry
from provisioner.core.services.dispatcher import CommandDispatcher
from provisioner.core.services.executor import CommandExecutor
from provisioner.core.services.host import HostProfile, detect_host
from provisioner.core.services.installer import PackageInstaller
from provisioner.core.services.releases import ReleaseInstaller
from provisioner.core.services.search_path import SearchPathCache
from provisioner.core.services.sources import SourceRegistrar
from provisioner.core.services.terminal import TerminalPrompt

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """All registries and services for one interactive session."""

    config: ProvisionConfig
    env: SessionEnvironment
    host: HostProfile
    credentials: CredentialRegistry
    managers: ManagerRegistry
    path_cache: SearchPathCache
    installer: PackageInstaller
    sources: SourceRegistrar
    catalog: RecipeCatalog
    dispatcher: CommandDispatcher
    runner: CommandRunner

    @classmethod
    def from_config(
        cls,
        config: ProvisionConfig | None = None,
        *,
        env: SessionEnvironment | None = None,
        host: HostProfile | None = None,
        managers: list[PackageManager] | None = None,
        prompt: TerminalPrompt | None = None,
        executor: CommandExecutor | None = None,
        interactive: bool | Callable[[], bool] = True,
        stderr: TextIO | None = None,
    ) -> Session:
        """Build a session.

        Args:
            config: Validated configuration (default: empty).
            env: Session environment (default: a snapshot of the process
                environment that writes through to it).
            host: Host profile (default: detected).
            managers: Package managers to register instead of the
                built-in set.
            prompt: Confirmation prompt (default: the configured tty).
            executor: Runs resolved commands.
            interactive: Whether the dispatcher may prompt at all.
            stderr: Stream for dispatcher messages (default: sys.stderr).
        """
        config = config or ProvisionConfig()
        env = env if env is not None else SessionEnvironment.from_process()
        host = host or detect_host()
        shell = tuple(config.procedure_shell)

        credentials = CredentialRegistry(env, shell)
        for spec in config.credentials:
            credentials.register_spec(spec)

        registry = ManagerRegistry(primary=host.primary_manager)
        for manager in managers if managers is not None else builtin_managers(host.os_family):
            registry.register(manager)

        path_cache = SearchPathCache(env, config.search_paths)
        releases = ReleaseInstaller(host, env)
        installer = PackageInstaller(registry, path_cache, env, shell=shell, releases=releases)
        sources = SourceRegistrar(registry, env, host)

        catalog = RecipeCatalog(platform=host.os_family, sources=sources)
        catalog.attach_installer(installer)
        for recipe in config.recipes:
            catalog.register_recipe(recipe)
        for key in config.keys:
            catalog.register_key(key)
        for repo in config.repos:
            catalog.register_repo(repo)

        executor = executor or CommandExecutor()
        dispatcher = CommandDispatcher(
            catalog,
            path_cache,
            env,
            prompt=prompt or TerminalPrompt(config.tty),
            executor=executor,
            interactive=interactive,
            shell_name=config.shell,
            stderr=stderr,
        )
        runner = CommandRunner(
            path_cache, env, executor=executor, shell_name=config.shell, stderr=stderr,
        )
        runner.add_interceptor(dispatcher)

        logger.debug(
            "Session ready: %d credential(s), %d catalog entr(ies), host=%s",
            len(credentials.names()), len(catalog), host.os_family,
        )
        return cls(
            config=config,
            env=env,
            host=host,
            credentials=credentials,
            managers=registry,
            path_cache=path_cache,
            installer=installer,
            sources=sources,
            catalog=catalog,
            dispatcher=dispatcher,
            runner=runner,
        )
