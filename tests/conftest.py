"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import io
import os
from pathlib import Path

import pytest

from provisioner.adapters.mock import MockPackageManager
from provisioner.adapters.registry import ManagerRegistry
from provisioner.core.environment import SessionEnvironment
from provisioner.core.models.config import SearchPaths
from provisioner.core.services.catalog import RecipeCatalog
from provisioner.core.services.dispatcher import CommandDispatcher
from provisioner.core.services.installer import PackageInstaller
from provisioner.core.services.search_path import SearchPathCache

from helpers import FakePrompt, RecordingExecutor, make_executable


@pytest.fixture
def bin_dir(tmp_path: Path) -> Path:
    """An empty directory that is the whole PATH of the test session."""
    d = tmp_path / "bin"
    d.mkdir()
    return d


@pytest.fixture
def env(bin_dir: Path, tmp_path: Path) -> SessionEnvironment:
    """Isolated session environment whose PATH is only ``bin_dir``."""
    return SessionEnvironment({"PATH": str(bin_dir), "HOME": str(tmp_path)})


@pytest.fixture
def shell_env(bin_dir: Path, tmp_path: Path) -> SessionEnvironment:
    """Isolated environment that can still run sh and coreutils."""
    path = os.pathsep.join([str(bin_dir), os.environ.get("PATH", os.defpath)])
    return SessionEnvironment({"PATH": path, "HOME": str(tmp_path)})


@pytest.fixture
def no_search_paths() -> SearchPaths:
    return SearchPaths(prepend=[], append_globs=[])


@pytest.fixture
def path_cache(env: SessionEnvironment, no_search_paths: SearchPaths) -> SearchPathCache:
    return SearchPathCache(env, no_search_paths)


@pytest.fixture
def mock_manager(bin_dir: Path) -> MockPackageManager:
    """Mock manager; installing ``<name>`` drops a ``<name>`` binary into bin_dir.

    Tests map a package to a different binary name via ``binaries``.
    """
    binaries: dict[str, str] = {}

    def on_install(packages: list[str]) -> None:
        for package in packages:
            make_executable(bin_dir, binaries.get(package, package))

    manager = MockPackageManager("mock", on_install=on_install)
    manager.binaries = binaries  # type: ignore[attr-defined]
    return manager


@pytest.fixture
def managers(mock_manager: MockPackageManager) -> ManagerRegistry:
    registry = ManagerRegistry(precedence=("mock",), primary="mock")
    registry.register(mock_manager)
    return registry


@pytest.fixture
def installer(managers, path_cache, env) -> PackageInstaller:
    return PackageInstaller(managers, path_cache, env)


@pytest.fixture
def catalog(installer: PackageInstaller) -> RecipeCatalog:
    return RecipeCatalog(platform="debian", installer=installer)


@pytest.fixture
def make_dispatcher(catalog, path_cache, env):
    """Factory for dispatchers with a scripted prompt and recording executor."""

    def factory(answer: bool | None = True, *, interactive: bool = True, executor=None):
        prompt = FakePrompt(answer)
        executor = executor or RecordingExecutor()
        stderr = io.StringIO()
        dispatcher = CommandDispatcher(
            catalog,
            path_cache,
            env,
            prompt=prompt,
            executor=executor,
            interactive=interactive,
            shell_name="zsh",
            stderr=stderr,
        )
        return dispatcher, prompt, executor, stderr

    return factory
