"""
CLI commands for the credential registry.

``load --export`` and ``preexec`` print shell assignments on stdout so
a shell can ``eval`` them; everything else goes to stderr.
"""

from __future__ import annotations

import json
import shlex
import sys

import click

from provisioner.ui.cli.common import build_session


@click.group()
def credentials() -> None:
    """Credentials — list, load, preexec."""


@credentials.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_credentials(ctx: click.Context, as_json: bool) -> None:
    """Show registered credentials and whether they are loaded."""
    session = build_session(ctx)
    registry = session.credentials
    rows = [
        {
            "name": entry.name,
            "resolved": registry.is_resolved(entry.name),
            "resolver": entry.resolver.description,
            "precondition": entry.precondition.description if entry.precondition else None,
        }
        for entry in registry.entries()
    ]

    if as_json:
        click.echo(json.dumps(rows, indent=2))
        return

    if not rows:
        click.secho("⚠️  No credentials registered", fg="yellow")
        return

    click.secho(f"🔑 Credentials ({len(rows)}):", fg="cyan", bold=True)
    for row in rows:
        icon = "✅" if row["resolved"] else "⏳"
        click.echo(f"   {icon} {row['name']:<28} {row['resolver']}")


@credentials.command()
@click.argument("names", nargs=-1, required=True)
@click.option("--export", "as_export", is_flag=True, help="Print export lines for eval.")
@click.pass_context
def load(ctx: click.Context, names: tuple[str, ...], as_export: bool) -> None:
    """Resolve credentials now (at most once per session)."""
    from provisioner.core.errors import CredentialError

    session = build_session(ctx)
    failed = False
    for name in names:
        try:
            value = session.credentials.load(name)
        except CredentialError as e:
            click.secho(f"❌ {e}", fg="red", err=True)
            failed = True
            continue
        if as_export:
            click.echo(f"export {name}={shlex.quote(value)}")
        else:
            click.secho(f"✅ {name} loaded", fg="green", err=True)

    if failed:
        sys.exit(1)


@credentials.command()
@click.argument("command_line")
@click.pass_context
def preexec(ctx: click.Context, command_line: str) -> None:
    """Load credentials referenced by COMMAND_LINE; print exports."""
    session = build_session(ctx)
    for name in session.credentials.load_referenced(command_line):
        click.echo(f"export {name}={shlex.quote(session.env.get(name) or '')}")
