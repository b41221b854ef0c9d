"""
GitHub release installer — prebuilt tarballs unpacked per app.

A recipe's ``github: app:owner/repo@version`` installs the release
into ``<root>/<app>``, where ``root`` is ``$GITHUB_RELEASES_INSTALL_DIR``
or ``~/.local/opt``. The default ``~/.local/opt/*/bin`` search path
then makes the app's ``bin/`` reachable after a reload.

Only ``.tar.gz`` assets are supported, and no signature verification
is performed. A ``.version`` file records the installed tag so asking
for the same release twice does nothing.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tarfile
import tempfile
import urllib.request
from collections.abc import Callable
from pathlib import Path, PurePosixPath
from typing import Any

from provisioner.core.environment import SessionEnvironment
from provisioner.core.models.recipe import ReleaseSpec
from provisioner.core.models.result import ProcedureResult
from provisioner.core.services.host import HostProfile

logger = logging.getLogger(__name__)

RELEASES_DIR_ENV = "GITHUB_RELEASES_INSTALL_DIR"
API_BASE = "https://api.github.com/repos"

_LINUX_FAMILIES = frozenset({"debian", "fedora", "arch"})

# Asset name fragments per OS family.
_OS_MARKERS: dict[str, tuple[str, ...]] = {
    "macos": ("darwin", "macos", "apple"),
}

# Asset name fragments per normalized arch.
_ARCH_MARKERS: dict[str, tuple[str, ...]] = {
    "amd64": ("x86_64", "amd64", "x64"),
    "arm64": ("aarch64", "arm64"),
    "armhf": ("armv7", "armhf"),
    "i386": ("i686", "i386"),
}

FetchJSON = Callable[[str], dict[str, Any]]
Download = Callable[[str, Path], None]


# ── HTTP ─────────────────────────────────────────────────────────────


def fetch_json(url: str, timeout: int = 15) -> dict[str, Any]:
    """GET a GitHub API URL and decode the JSON body."""
    req = urllib.request.Request(
        url,
        headers={
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "shell-provisioner",
        },
    )
    with urllib.request.urlopen(req, timeout=timeout) as resp:
        return json.loads(resp.read())


def download_asset(url: str, dest: Path, timeout: int = 60) -> None:
    """Stream ``url`` into ``dest``."""
    req = urllib.request.Request(url, headers={"User-Agent": "shell-provisioner"})
    with urllib.request.urlopen(req, timeout=timeout) as resp, open(dest, "wb") as f:
        shutil.copyfileobj(resp, f)


# ── Asset selection ──────────────────────────────────────────────────


def os_markers(os_family: str) -> tuple[str, ...]:
    if os_family in _LINUX_FAMILIES:
        return ("linux",)
    return _OS_MARKERS.get(os_family, (os_family,))


def select_asset(assets: list[dict[str, Any]], os_family: str, arch: str) -> dict[str, Any] | None:
    """First ``.tar.gz`` asset whose name matches the host OS and arch."""
    wanted_os = os_markers(os_family)
    wanted_arch = _ARCH_MARKERS.get(arch, (arch,))
    for asset in assets:
        name = str(asset.get("name", "")).lower()
        if not name.endswith(".tar.gz"):
            continue
        if any(m in name for m in wanted_os) and any(m in name for m in wanted_arch):
            return asset
    return None


# ── Extraction ───────────────────────────────────────────────────────


def _wrapper_dir(names: list[str]) -> str | None:
    """The one top-level directory every member lives under, if any."""
    parts = [p for p in (PurePosixPath(n).parts for n in names) if p]
    roots = {p[0] for p in parts}
    if len(roots) != 1 or not any(len(p) > 1 for p in parts):
        return None
    return roots.pop()


def _strip(name: str, root: str) -> str:
    parts = PurePosixPath(name).parts
    if parts and parts[0] == root:
        parts = parts[1:]
    return str(PurePosixPath(*parts)) if parts else ""


def extract_release(archive: Path, dest: Path) -> None:
    """Unpack ``archive`` into ``dest``.

    A single top-level wrapper directory is stripped. Members that
    would land outside ``dest`` are rejected by tarfile's ``data``
    filter. When the release has no ``bin/`` directory, one is created
    with links to the top-level executables.
    """
    with tarfile.open(archive, "r:gz") as tar:
        members = tar.getmembers()
        root = _wrapper_dir([m.name for m in members])
        kept = []
        for member in members:
            if root is not None:
                member.name = _strip(member.name, root)
                if member.islnk():
                    member.linkname = _strip(member.linkname, root)
            if member.name:
                kept.append(member)
        tar.extractall(dest, members=kept, filter="data")
    _ensure_bin(dest)


def _ensure_bin(dest: Path) -> None:
    bin_dir = dest / "bin"
    if bin_dir.is_dir():
        return
    bin_dir.mkdir()
    for entry in sorted(dest.iterdir()):
        if entry.is_file() and os.access(entry, os.X_OK):
            link = bin_dir / entry.name
            if not link.exists():
                link.symlink_to(entry)


# ── Installer ────────────────────────────────────────────────────────


class ReleaseInstaller:
    """Installs GitHub releases for one session.

    ``fetch`` and ``download`` default to real HTTP; tests pass stubs.
    """

    def __init__(
        self,
        host: HostProfile,
        env: SessionEnvironment,
        *,
        fetch: FetchJSON | None = None,
        download: Download | None = None,
        root: Path | None = None,
    ):
        self.host = host
        self.env = env
        self._fetch = fetch or fetch_json
        self._download = download or download_asset
        self._root = root

    @property
    def root(self) -> Path:
        if self._root is not None:
            return self._root
        configured = self.env.get(RELEASES_DIR_ENV)
        if configured:
            return Path(configured)
        home = self.env.get("HOME")
        return (Path(home) if home else Path.home()) / ".local" / "opt"

    def release_url(self, spec: ReleaseSpec) -> str:
        if spec.version == "latest":
            return f"{API_BASE}/{spec.repo}/releases/latest"
        return f"{API_BASE}/{spec.repo}/releases/tags/{spec.version}"

    def installed_version(self, app: str) -> str | None:
        version_file = self.root / app / ".version"
        if not version_file.is_file():
            return None
        return version_file.read_text().strip() or None

    def install(self, spec: ReleaseSpec) -> ProcedureResult:
        label = f"github:{spec.repo}"
        try:
            release = self._fetch(self.release_url(spec))
        except (OSError, ValueError) as e:
            return ProcedureResult.failure(label, f"Could not fetch release for {spec.repo}: {e}")

        tag = str(release.get("tag_name") or spec.version)
        if self.installed_version(spec.app) == tag:
            logger.info("%s is already at %s", spec.app, tag)
            return ProcedureResult.skip(label, f"{spec.app} already at {tag}")

        asset = select_asset(release.get("assets") or [], self.host.os_family, self.host.arch)
        if asset is None:
            return ProcedureResult.failure(
                label,
                f"No .tar.gz asset for {self.host.os_family}/{self.host.arch} "
                f"in {spec.repo} {tag}",
            )

        dest = self.root / spec.app
        logger.info("Installing %s %s from %s", spec.app, tag, spec.repo)
        logger.warning("No signature verification for %s releases", spec.repo)
        with tempfile.TemporaryDirectory() as tmp:
            archive = Path(tmp) / "asset.tar.gz"
            try:
                self._download(asset["browser_download_url"], archive)
                dest.mkdir(parents=True, exist_ok=True)
                extract_release(archive, dest)
            except (OSError, KeyError, tarfile.TarError) as e:
                return ProcedureResult.failure(label, f"Could not install {asset.get('name')}: {e}")

        (dest / ".version").write_text(tag + "\n")
        return ProcedureResult.success(
            label,
            output=str(dest / "bin"),
            metadata={"version": tag, "asset": asset.get("name", "")},
        )
