"""
CLI commands for the OS keychain.

``provision secret get SERVICE`` is meant to be used as a credential
resolver: it prints the bare secret and nothing else.
"""

from __future__ import annotations

import sys

import click


@click.group()
def secret() -> None:
    """Secret — get, store, delete in the OS keychain."""


@secret.command()
@click.argument("service")
@click.argument("account", required=False)
def get(service: str, account: str | None) -> None:
    """Print the secret stored for SERVICE."""
    from provisioner.core.services.keychain import get_secret

    value = get_secret(service, account)
    if value is None:
        click.secho(f"❌ No secret found for '{service}'", fg="red", err=True)
        sys.exit(1)
    click.echo(value)


@secret.command()
@click.argument("service")
@click.argument("account", required=False)
@click.option("--value", "value", default=None, help="Secret value (default: prompt).")
def store(service: str, account: str | None, value: str | None) -> None:
    """Store a secret for SERVICE (replaces an existing one)."""
    from provisioner.core.services.keychain import store_secret

    if value is None:
        value = click.prompt(f"Secret for {service}", hide_input=True, err=True)
    result = store_secret(service, value, account)
    if result.failed:
        click.secho(f"❌ {result.error}", fg="red", err=True)
        sys.exit(1)
    click.secho(f"✅ Stored secret for '{service}'", fg="green", err=True)


@secret.command()
@click.argument("service")
@click.argument("account", required=False)
def delete(service: str, account: str | None) -> None:
    """Remove the secret stored for SERVICE."""
    from provisioner.core.services.keychain import delete_secret

    result = delete_secret(service, account)
    if result.failed:
        click.secho(f"❌ {result.error}", fg="red", err=True)
        sys.exit(1)
    click.secho(f"🗑️  Deleted secret for '{service}'", fg="green", err=True)
