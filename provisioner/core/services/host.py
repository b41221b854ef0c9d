"""
Host detection — OS family, architecture and release codename.

Read-only checks. The OS family decides which recipes are active and
which package manager is primary; arch and codename fill the tokens in
apt source lines.
"""

from __future__ import annotations

import os
import platform
import shutil
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path

OS_RELEASE = Path("/etc/os-release")

# Machine name normalization (Go-style names, as used by apt).
_ARCH_MAP: dict[str, str] = {
    "x86_64": "amd64",
    "AMD64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "armhf",
    "i686": "i386",
    "i386": "i386",
}

# os-release IDs → OS family
_FAMILIES: dict[str, str] = {
    "debian": "debian",
    "ubuntu": "debian",
    "fedora": "fedora",
    "arch": "arch",
}

PRIMARY_MANAGER: dict[str, str] = {
    "macos": "brew",
    "debian": "apt",
    "fedora": "dnf",
    "arch": "pacman",
    "termux": "pkg",
}


@dataclass(frozen=True)
class HostProfile:
    """What the installer needs to know about this machine."""

    os_family: str
    arch: str = "amd64"
    distro: str = ""
    codename: str = "stable"

    @property
    def primary_manager(self) -> str | None:
        return PRIMARY_MANAGER.get(self.os_family)

    def to_dict(self) -> dict:
        return {
            "os_family": self.os_family,
            "arch": self.arch,
            "distro": self.distro,
            "codename": self.codename,
            "primary_manager": self.primary_manager,
        }


def parse_os_release(text: str) -> dict[str, str]:
    """Parse ``/etc/os-release`` KEY=value lines."""
    values: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        values[key.strip()] = value.strip().strip('"').strip("'")
    return values


def _read_os_release(path: Path) -> dict[str, str]:
    try:
        return parse_os_release(path.read_text(encoding="utf-8"))
    except OSError:
        return {}


def is_termux(environ: dict[str, str] | None = None) -> bool:
    env = os.environ if environ is None else environ
    prefix = env.get("PREFIX", "")
    return bool(env.get("TERMUX_VERSION")) and bool(prefix) and Path(prefix).is_dir()


def detect_os_family(
    release: dict[str, str] | None = None,
    *,
    system: str | None = None,
    environ: dict[str, str] | None = None,
) -> str:
    """Return macos, debian, fedora, arch, termux, unsupported or unknown."""
    system = system or sys.platform
    if system == "darwin":
        return "macos"
    if not system.startswith("linux"):
        return "unknown"
    if is_termux(environ):
        return "termux"

    if release is None:
        release = _read_os_release(OS_RELEASE)
    if not release:
        return "unknown"

    distro = release.get("ID", "").lower()
    if distro in _FAMILIES:
        return _FAMILIES[distro]
    for like in release.get("ID_LIKE", "").lower().split():
        if like in _FAMILIES:
            return _FAMILIES[like]
    return "unsupported"


def detect_arch(machine: str | None = None) -> str:
    machine = machine or platform.machine()
    return _ARCH_MAP.get(machine, machine)


def detect_codename(release: dict[str, str]) -> str:
    """Release codename for apt sources, ``stable`` when unknown."""
    codename = release.get("VERSION_CODENAME") or release.get("UBUNTU_CODENAME")
    if codename:
        return codename
    if shutil.which("lsb_release"):
        try:
            r = subprocess.run(
                ["lsb_release", "-cs"],
                capture_output=True, text=True, timeout=5,
            )
            if r.returncode == 0 and r.stdout.strip():
                return r.stdout.strip()
        except (OSError, subprocess.TimeoutExpired):
            pass
    return "stable"


def detect_host() -> HostProfile:
    """Detect the current machine."""
    release = _read_os_release(OS_RELEASE) if sys.platform.startswith("linux") else {}
    family = detect_os_family(release)
    return HostProfile(
        os_family=family,
        arch=detect_arch(),
        distro=release.get("ID", "").lower() or family,
        codename=detect_codename(release) if release else "stable",
    )
