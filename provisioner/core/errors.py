"""
Error taxonomy for the provisioning layer.

Registries raise these to their callers. The dispatcher catches the
dispatch errors and turns them into the standard "command not found"
exit; it never lets them reach the user as a traceback.
"""

from __future__ import annotations


class ProvisionError(Exception):
    """Base class for all provisioning errors."""


# ── Credentials ─────────────────────────────────────────────────


class CredentialError(ProvisionError):
    """A credential could not be made available."""

    def __init__(self, name: str, message: str = ""):
        self.name = name
        super().__init__(message or f"Credential '{name}' is unavailable")


class CredentialNotRegistered(CredentialError):
    """No resolver is registered under this name and no value is set."""

    def __init__(self, name: str):
        super().__init__(name, f"No credential registered as '{name}'")


class PreconditionFailed(CredentialError):
    """The gatekeeper (e.g. vault unlock) refused or failed."""

    def __init__(self, name: str, reason: str = ""):
        self.reason = reason
        msg = f"Precondition failed for '{name}'"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(name, msg)


class CredentialUnresolved(CredentialError):
    """Resolution ran but produced no usable value. Nothing was cached."""


class ResolverFailed(CredentialUnresolved):
    """The resolver exited non-zero or printed nothing."""

    def __init__(self, name: str, reason: str = ""):
        self.reason = reason
        msg = f"Could not resolve '{name}'"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(name, msg)


# ── Dispatch ────────────────────────────────────────────────────


class DispatchError(ProvisionError):
    """A missing command could not be provided."""

    def __init__(self, command: str, message: str = ""):
        self.command = command
        super().__init__(message or f"Command '{command}' could not be provided")


class RecipeNotFound(DispatchError):
    """No catalog entry provides the command."""

    def __init__(self, command: str):
        super().__init__(command, f"No recipe provides '{command}'")


class InstallationDeclined(DispatchError):
    """The user (or the lack of a terminal) refused the install."""

    def __init__(self, command: str, package_id: str = ""):
        self.package_id = package_id
        super().__init__(command, f"Installation of '{package_id or command}' declined")


class InstallationFailed(DispatchError):
    """The installer failed, or the command is still missing after reload."""

    def __init__(self, command: str, reason: str = ""):
        self.reason = reason
        msg = f"Command '{command}' still not found after installation"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(command, msg)


# ── Configuration ───────────────────────────────────────────────


class ConfigError(ProvisionError):
    """Raised when provisioning configuration is invalid or unreadable."""
