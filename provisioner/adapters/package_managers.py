"""
Command package managers — data-driven bindings for real tools.

Each built-in manager is a CommandPackageManager configured with the
argv prefixes for install, index refresh and source registration.
Managers marked ``sudo`` get a ``sudo`` prefix unless we already run
as root.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
from collections.abc import Mapping

from provisioner.adapters.base import PackageManager
from provisioner.core.models.result import ProcedureResult
from provisioner.core.services.runner import TO_STDERR, run_command

logger = logging.getLogger(__name__)


class CommandPackageManager(PackageManager):
    """A package manager driven by fixed command prefixes.

    Args:
        name: Recipe key (``apt``, ``brew-cask`` ...).
        binary: Executable that must be on PATH.
        install_cmd: Prefix; package names are appended.
        update_cmd: Full index-refresh command, if the tool has one.
        repo_cmd: Prefix for registering a source; the source's words
            are appended.
        sudo: Run through sudo when not root.
        families: OS families this manager belongs to (empty = any).
        host_family: The current host's OS family.
    """

    def __init__(
        self,
        name: str,
        binary: str,
        install_cmd: list[str],
        *,
        update_cmd: list[str] | None = None,
        repo_cmd: list[str] | None = None,
        sudo: bool = False,
        families: frozenset[str] = frozenset(),
        host_family: str = "",
    ):
        self._name = name
        self.binary = binary
        self.install_cmd = list(install_cmd)
        self.update_cmd = list(update_cmd) if update_cmd else None
        self.repo_cmd = list(repo_cmd) if repo_cmd else None
        self.sudo = sudo
        self.families = families
        self.host_family = host_family

    @property
    def name(self) -> str:
        return self._name

    def is_available(self) -> bool:
        if self.families and self.host_family not in self.families:
            return False
        return shutil.which(self.binary) is not None

    def _prefix(self, cmd: list[str]) -> list[str]:
        if self.sudo and os.geteuid() != 0:
            return ["sudo", *cmd]
        return list(cmd)

    def install(
        self,
        packages: list[str],
        env: Mapping[str, str] | None = None,
    ) -> ProcedureResult:
        if not packages:
            return ProcedureResult.skip(self.name, "no packages")
        cmd = self._prefix(self.install_cmd + packages)
        logger.info("Installing via %s: %s", self.name, " ".join(packages))
        # Uncaptured so the user sees progress and sudo can prompt; stdout
        # goes to stderr to keep the interrupted command's output clean.
        return run_command(
            cmd, env=env, capture=False, stdout=TO_STDERR, label=f"{self.name} install"
        )

    def update(self, env: Mapping[str, str] | None = None) -> ProcedureResult:
        if not self.update_cmd:
            return super().update(env)
        logger.info("Refreshing %s package index", self.name)
        return run_command(
            self._prefix(self.update_cmd),
            env=env,
            capture=False,
            stdout=TO_STDERR,
            label=f"{self.name} update",
        )

    def add_repo(self, source: str, env: Mapping[str, str] | None = None) -> ProcedureResult:
        if not self.repo_cmd:
            return super().add_repo(source, env)
        cmd = self._prefix(self.repo_cmd + shlex.split(source))
        return run_command(
            cmd, env=env, capture=False, stdout=TO_STDERR, label=f"{self.name} add-repo"
        )


def builtin_managers(host_family: str) -> list[CommandPackageManager]:
    """The managers shipped with the provisioner, bound to this host."""
    darwin = frozenset({"macos"})
    linux = frozenset({"debian", "fedora", "arch", "unsupported"})

    def make(name: str, binary: str, install: list[str], **kw) -> CommandPackageManager:
        return CommandPackageManager(name, binary, install, host_family=host_family, **kw)

    return [
        make("brew", "brew", ["brew", "install"],
             update_cmd=["brew", "update"], repo_cmd=["brew", "tap"]),
        make("brew-cask", "brew", ["brew", "install", "--cask"],
             repo_cmd=["brew", "tap"], families=darwin),
        make("pkg", "pkg", ["pkg", "install", "-y"],
             update_cmd=["pkg", "update"], families=frozenset({"termux"})),
        make("flatpak", "flatpak", ["flatpak", "install", "-y"],
             repo_cmd=["flatpak", "remote-add", "--if-not-exists"], families=linux),
        make("snap", "snap", ["snap", "install"], sudo=True, families=linux),
        make("apt", "apt-get", ["apt-get", "install", "-y"],
             update_cmd=["apt-get", "update", "-qq"],
             repo_cmd=["add-apt-repository", "-y"],
             sudo=True, families=frozenset({"debian"})),
        make("dnf", "dnf", ["dnf", "install", "-y"],
             update_cmd=["dnf", "makecache"],
             repo_cmd=["dnf", "config-manager", "--add-repo"],
             sudo=True, families=frozenset({"fedora"})),
        make("pacman", "pacman", ["pacman", "-S", "--noconfirm"],
             update_cmd=["pacman", "-Sy"], sudo=True, families=frozenset({"arch"})),
        make("cargo", "cargo", ["cargo", "install"]),
    ]
