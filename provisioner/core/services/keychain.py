"""
OS keychain access — the usual backend for credential resolvers.

Wraps macOS ``security`` and the Linux Secret Service ``secret-tool``.
A resolver such as ``provision secret get anthropic`` prints the
secret on stdout, which is exactly what the credential registry
expects.
"""

from __future__ import annotations

import getpass
import logging
import shutil

from provisioner.core.models.result import ProcedureResult
from provisioner.core.services.runner import run_command

logger = logging.getLogger(__name__)


def keychain_backend() -> str | None:
    """Return the keychain CLI available on this system, if any."""
    for tool in ("security", "secret-tool"):
        if shutil.which(tool):
            return tool
    return None


def _account(account: str | None) -> str:
    return account or getpass.getuser()


def get_secret(service: str, account: str | None = None) -> str | None:
    """Read a secret. Returns None when missing or no keychain exists."""
    backend = keychain_backend()
    acct = _account(account)
    if backend == "security":
        cmd = ["security", "find-generic-password", "-a", acct, "-s", service, "-w"]
    elif backend == "secret-tool":
        cmd = ["secret-tool", "lookup", "service", service, "account", acct]
    else:
        logger.debug("No keychain backend available")
        return None

    result = run_command(cmd, label=f"{backend} lookup")
    if result.failed:
        return None
    value = result.output.rstrip("\n")
    return value or None


def store_secret(service: str, secret: str, account: str | None = None) -> ProcedureResult:
    """Store (or replace) a secret."""
    backend = keychain_backend()
    acct = _account(account)
    if backend == "security":
        run_command(
            ["security", "delete-generic-password", "-a", acct, "-s", service],
            label="security delete",
        )
        # The secret must not appear in argv (ps shows it); `security -i`
        # reads the command from stdin instead.
        line = " ".join(
            _security_quote(part)
            for part in ("add-generic-password", "-U", "-a", acct, "-s", service, "-w", secret)
        )
        return run_command(["security", "-i"], input_text=line + "\n", label="security add")
    if backend == "secret-tool":
        return run_command(
            [
                "secret-tool", "store", f"--label=Provision: {service}",
                "service", service, "account", acct,
            ],
            input_text=secret,
            label="secret-tool store",
        )
    return ProcedureResult.failure("keychain", "No OS keychain tool found")


def delete_secret(service: str, account: str | None = None) -> ProcedureResult:
    """Remove a secret."""
    backend = keychain_backend()
    acct = _account(account)
    if backend == "security":
        cmd = ["security", "delete-generic-password", "-a", acct, "-s", service]
    elif backend == "secret-tool":
        cmd = ["secret-tool", "clear", "service", service, "account", acct]
    else:
        return ProcedureResult.failure("keychain", "No OS keychain tool found")
    return run_command(cmd, label=f"{backend} delete")


def _security_quote(word: str) -> str:
    """Quote one word for ``security -i``, which splits on whitespace."""
    escaped = word.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'
