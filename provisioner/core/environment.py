"""
Session environment — the process-wide key/value state of one session.

This is the credential cache and the PATH holder. Every child process
spawned by the provisioning layer gets a snapshot of it, so a value
published here is inherited by everything started afterwards.

Design notes:
    - An explicit object, not ``os.environ``, so tests get an isolated
      map. The CLI passes ``write_through=True`` so published values
      also land in the real process environment.
    - All access goes through one re-entrant lock. The credential
      registry serializes resolution with its own per-name locks and
      publishes through ``set_if_absent``, so a value set meanwhile by
      another writer is never overwritten.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Iterator, Mapping


class SessionEnvironment:
    """Lock-guarded environment map for one interactive session."""

    def __init__(
        self,
        initial: Mapping[str, str] | None = None,
        *,
        write_through: bool = False,
    ):
        self._values: dict[str, str] = dict(initial or {})
        self._write_through = write_through
        self._lock = threading.RLock()

    @classmethod
    def from_process(cls, *, write_through: bool = True) -> SessionEnvironment:
        """Seed from the current process environment."""
        return cls(os.environ, write_through=write_through)

    # ── Reads ────────────────────────────────────────────────────

    def get(self, name: str, default: str | None = None) -> str | None:
        with self._lock:
            return self._values.get(name, default)

    def has(self, name: str) -> bool:
        """Whether a non-empty value is set for ``name``."""
        with self._lock:
            return bool(self._values.get(name))

    def snapshot(self) -> dict[str, str]:
        """Copy suitable for ``subprocess.run(env=...)``."""
        with self._lock:
            return dict(self._values)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.has(name)

    def __iter__(self) -> Iterator[str]:
        return iter(self.snapshot())

    # ── Writes ───────────────────────────────────────────────────

    def set(self, name: str, value: str) -> None:
        with self._lock:
            self._values[name] = value
            if self._write_through:
                os.environ[name] = value

    def set_if_absent(self, name: str, value: str) -> bool:
        """Publish ``value`` unless a non-empty value already exists.

        Returns:
            True if the value was published.
        """
        with self._lock:
            if self._values.get(name):
                return False
            self.set(name, value)
            return True

    def unset(self, name: str) -> None:
        with self._lock:
            self._values.pop(name, None)
            if self._write_through:
                os.environ.pop(name, None)

    @property
    def lock(self) -> threading.RLock:
        return self._lock
