"""
Shell Provisioner — deferred provisioning for interactive shells.

Resolves credentials on first use and installs missing commands on
first invocation, then re-runs the original command.
"""

__version__ = "0.1.0"
