"""
shell-provisioner — CLI entrypoint.

Usage:
    provision --help
    provision recipes lookup rg
    provision credentials load OPENAI_API_KEY --export
    eval "$(provision hook init zsh)"
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from provisioner import __version__
from provisioner.core.observability.logging_config import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="provision")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to provision.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """Deferred provisioning — lazy credentials and install-on-first-use."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = None

    setup_logging(level=level)


@cli.command(context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False})
@click.argument("argv", nargs=-1, required=True, type=click.UNPROCESSED)
@click.option("--non-interactive", is_flag=True, help="Never prompt to install.")
@click.pass_context
def run(ctx: click.Context, argv: tuple[str, ...], non_interactive: bool) -> None:
    """Run a command, installing it first if it is missing."""
    from provisioner.ui.cli.common import build_session

    interactive = not non_interactive and sys.stderr.isatty()
    session = build_session(ctx, interactive=interactive)
    report = session.runner.run(list(argv))
    sys.exit(report.exit_code)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show host profile, package managers and registry sizes."""
    from provisioner.ui.cli.common import build_session

    session = build_session(ctx)
    data = {
        "host": session.host.to_dict(),
        "managers": session.managers.manager_status(),
        "credentials": len(session.credentials.names()),
        "recipes": len(session.catalog),
    }

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    host = session.host
    click.secho(f"\n🖥️  {host.os_family} ({host.arch})", fg="cyan", bold=True)
    if host.distro:
        click.echo(f"   {host.distro} {host.codename}".rstrip())
    click.echo(f"   Primary manager: {host.primary_manager or '-'}")
    click.echo()

    click.secho("   Package managers:", fg="white", bold=True)
    for name, info in data["managers"].items():
        icon = "✅" if info.get("available") else "❌"
        click.echo(f"     {icon} {name}")

    click.echo()
    click.echo(f"   Credentials: {data['credentials']}")
    click.echo(f"   Recipes:     {data['recipes']}")
    click.echo()


# ── Register command groups ─────────────────────────────────────

from provisioner.ui.cli.credentials import credentials
from provisioner.ui.cli.hook import hook
from provisioner.ui.cli.recipes import recipes
from provisioner.ui.cli.secret import secret

cli.add_command(credentials)
cli.add_command(recipes)
cli.add_command(hook)
cli.add_command(secret)


if __name__ == "__main__":
    cli()
