"""Adapters — package manager bindings.

Public re-exports for convenient access.
"""

from provisioner.adapters.base import PackageManager
from provisioner.adapters.mock import MockPackageManager
from provisioner.adapters.package_managers import CommandPackageManager, builtin_managers
from provisioner.adapters.registry import DEFAULT_PRECEDENCE, ManagerRegistry

__all__ = [
    "CommandPackageManager",
    "DEFAULT_PRECEDENCE",
    "ManagerRegistry",
    "MockPackageManager",
    "PackageManager",
    "builtin_managers",
]
