"""
Trusted sources — signing keys and package repositories.

Some platforms must trust a key and know a repository before a
package can be installed from it. Each operation checks whether its
work is already present and skips if so, which makes the batch
operations that drive it safe to repeat.
"""

from __future__ import annotations

import logging
import os
import shlex
from pathlib import Path

from provisioner.adapters.registry import ManagerRegistry
from provisioner.core.environment import SessionEnvironment
from provisioner.core.models.recipe import KeyRegistration, RepoRegistration
from provisioner.core.models.result import ProcedureResult
from provisioner.core.services.host import HostProfile
from provisioner.core.services.runner import run_command

logger = logging.getLogger(__name__)

KEYRING_DIR = Path("/usr/share/keyrings")
APT_SOURCES_DIR = Path("/etc/apt/sources.list.d")
YUM_REPOS_DIR = Path("/etc/yum.repos.d")


def render_apt_source(line: str, host: HostProfile, keyring: str = "") -> str:
    """Fill %CODENAME%/%ARCH%/%DISTRO%/%KEYRING% tokens in a deb line.

    When a keyring is given and the line has no ``signed-by``, one is
    added to the line's option block.
    """
    tokens = {
        "CODENAME": host.codename,
        "ARCH": host.arch,
        "DISTRO": host.distro,
        "KEYRING": keyring,
    }
    for token, value in tokens.items():
        line = line.replace(f"%{token}%", value)

    if keyring and "signed-by=" not in line and line.startswith("deb "):
        rest = line[len("deb "):]
        if rest.startswith("["):
            line = f"deb [signed-by={keyring} {rest[1:]}"
        else:
            line = f"deb [signed-by={keyring}] {rest}"
    return line


def _sudo() -> str:
    return "" if os.geteuid() == 0 else "sudo "


class SourceRegistrar:
    """Adds signing keys and repositories for available managers."""

    def __init__(
        self,
        managers: ManagerRegistry,
        env: SessionEnvironment,
        host: HostProfile,
        *,
        keyring_dir: Path = KEYRING_DIR,
        apt_sources_dir: Path = APT_SOURCES_DIR,
        yum_repos_dir: Path = YUM_REPOS_DIR,
    ):
        self.managers = managers
        self.env = env
        self.host = host
        self.keyring_dir = keyring_dir
        self.apt_sources_dir = apt_sources_dir
        self.yum_repos_dir = yum_repos_dir

    def applies(self, manager: str) -> bool:
        return self.managers.is_available(manager)

    def keyring_path(self, keyring_file: str) -> Path:
        return self.keyring_dir / keyring_file

    # ── Keys ─────────────────────────────────────────────────────

    def add_key(self, key: KeyRegistration) -> ProcedureResult:
        target = self.keyring_path(key.keyring_file)
        label = f"key {key.name}"
        if target.exists():
            return ProcedureResult.skip(label, "already added")

        url, dest = shlex.quote(key.url), shlex.quote(str(target))
        if key.url.endswith((".gpg", ".asc")):
            script = f"curl -fsSL {url} | {_sudo()}gpg --dearmor --yes -o {dest}"
        else:
            script = f"curl -fsSL {url} | {_sudo()}tee {dest} >/dev/null"

        logger.info("Adding %s key", key.name)
        return run_command(["sh", "-c", script], env=self.env.snapshot(), label=label)

    # ── Repositories ─────────────────────────────────────────────

    def add_repo(self, repo: RepoRegistration, keyring: str = "") -> ProcedureResult:
        if repo.manager == "apt":
            result = self._add_apt_repo(repo, keyring)
        elif repo.manager == "dnf":
            result = self._add_dnf_repo(repo)
        else:
            manager = self.managers.get(repo.manager)
            if manager is None:
                return ProcedureResult.failure(repo.name, f"No package manager '{repo.manager}'")
            result = manager.add_repo(repo.source, self.env.snapshot())

        if result.status == "ok":
            self.managers.request_refresh(repo.manager)
        return result

    def _add_apt_repo(self, repo: RepoRegistration, keyring: str) -> ProcedureResult:
        label = f"repo {repo.name}"
        if not repo.source.startswith("deb "):
            # PPA or other add-apt-repository form.
            manager = self.managers.get("apt")
            if manager is None:
                return ProcedureResult.failure(label, "No package manager 'apt'")
            return manager.add_repo(repo.source, self.env.snapshot())

        keyring_path = str(self.keyring_path(keyring)) if keyring else ""
        line = render_apt_source(repo.source, self.host, keyring_path)
        list_file = self.apt_sources_dir / f"{repo.name}.list"
        try:
            if list_file.read_text(encoding="utf-8").strip() == line:
                return ProcedureResult.skip(label, "already configured")
        except OSError:
            pass

        logger.info("Configuring apt source for %s", repo.name)
        script = (
            f"printf '%s\\n' {shlex.quote(line)} | "
            f"{_sudo()}tee {shlex.quote(str(list_file))} >/dev/null"
        )
        return run_command(["sh", "-c", script], env=self.env.snapshot(), label=label)

    def _add_dnf_repo(self, repo: RepoRegistration) -> ProcedureResult:
        label = f"repo {repo.name}"
        repo_file = self.yum_repos_dir / repo.source.rstrip("/").rsplit("/", 1)[-1]
        if repo_file.exists():
            return ProcedureResult.skip(label, "already configured")
        manager = self.managers.get("dnf")
        if manager is None:
            return ProcedureResult.failure(label, "No package manager 'dnf'")
        return manager.add_repo(repo.source, self.env.snapshot())
