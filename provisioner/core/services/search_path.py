"""
Search path cache — command name → executable location.

Plays the role of the shell's command hash table. ``rebuild`` rescans
every PATH directory; ``reload`` first re-applies the configured search
paths to PATH (picking up directories that appeared since the session
started, e.g. ``/opt/<tool>/bin`` created by an installer) and then
rebuilds.
"""

from __future__ import annotations

import glob
import logging
import os
from pathlib import Path

from provisioner.core.environment import SessionEnvironment
from provisioner.core.models.config import SearchPaths

logger = logging.getLogger(__name__)


def _expand(entry: str, home: Path) -> str:
    if entry == "~" or entry.startswith("~/"):
        entry = str(home) + entry[1:]
    return os.path.expandvars(entry)


def compose_path(current: str, search_paths: SearchPaths, home: Path | None = None) -> str:
    """Apply configured search paths to a PATH string.

    Every ``prepend`` directory that exists is moved to the front, in
    order, so the last listed ends up first. Every existing directory
    matching an ``append_globs`` pattern is moved to the end. Missing
    directories are ignored; no directory appears twice.
    """
    home = home or Path.home()
    parts = [p for p in current.split(os.pathsep) if p]

    for entry in search_paths.prepend:
        d = _expand(entry, home)
        if not os.path.isdir(d):
            continue
        parts = [p for p in parts if p != d]
        parts.insert(0, d)

    for pattern in search_paths.append_globs:
        for d in sorted(glob.glob(_expand(pattern, home))):
            if not os.path.isdir(d):
                continue
            parts = [p for p in parts if p != d]
            parts.append(d)

    return os.pathsep.join(parts)


class SearchPathCache:
    """Hash table of executables reachable through the session's PATH."""

    def __init__(
        self,
        env: SessionEnvironment,
        search_paths: SearchPaths | None = None,
        home: Path | None = None,
    ):
        self._env = env
        self._search_paths = search_paths or SearchPaths()
        self._home = home
        self._table: dict[str, str] | None = None

    @property
    def is_built(self) -> bool:
        return self._table is not None

    def invalidate(self) -> None:
        """Drop the table; the next lookup rescans."""
        self._table = None

    def rebuild(self) -> int:
        """Rescan PATH. Returns the number of commands found."""
        table: dict[str, str] = {}
        for directory in (self._env.get("PATH") or "").split(os.pathsep):
            if not directory:
                continue
            try:
                entries = list(os.scandir(directory))
            except OSError:
                continue
            for entry in entries:
                if entry.name in table:
                    continue  # earlier PATH entries win
                try:
                    if entry.is_file() and os.access(entry.path, os.X_OK):
                        table[entry.name] = entry.path
                except OSError:
                    continue
        self._table = table
        logger.debug("Search path cache rebuilt: %d commands", len(table))
        return len(table)

    def reload(self) -> int:
        """Re-apply configured search paths to PATH, then rebuild."""
        current = self._env.get("PATH") or ""
        updated = compose_path(current, self._search_paths, self._home)
        if updated != current:
            logger.debug("PATH updated by reload")
            self._env.set("PATH", updated)
        return self.rebuild()

    def which(self, name: str) -> str | None:
        """Resolve a command name to an executable path."""
        if not name:
            return None
        if os.sep in name:
            return name if os.path.isfile(name) and os.access(name, os.X_OK) else None
        if self._table is None:
            self.rebuild()
        assert self._table is not None
        return self._table.get(name)

    def resolvable(self, name: str) -> bool:
        return self.which(name) is not None
