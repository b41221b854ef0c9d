"""
CLI commands for the recipe catalog.

Thin wrappers over ``provisioner.core.services.catalog``.
"""

from __future__ import annotations

import json
import sys

import click

from provisioner.ui.cli.common import build_session, echo_report


@click.group()
def recipes() -> None:
    """Recipes — list, lookup, install, install-tags, add-keys, add-repos."""


# ── Observe ─────────────────────────────────────────────────────


@recipes.command("list")
@click.option("--tag", "-t", "tags", multiple=True, help="Only entries with this tag.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_recipes(ctx: click.Context, tags: tuple[str, ...], as_json: bool) -> None:
    """Show catalog entries (command → package)."""
    session = build_session(ctx)
    catalog = session.catalog
    entries = catalog.entries_by_tags(tags) if tags else catalog.entries()

    if as_json:
        click.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return

    if not entries:
        click.secho("⚠️  No recipes registered", fg="yellow")
        return

    click.secho(f"📦 Recipes ({len(entries)}):", fg="cyan", bold=True)
    for e in entries:
        installed = "✓" if session.path_cache.resolvable(e.command_name) else " "
        click.echo(f"   {installed} {e.command_name:<24} → {e.package_id:<24} [{', '.join(sorted(e.tags))}]")


@recipes.command()
@click.argument("command")
@click.pass_context
def lookup(ctx: click.Context, command: str) -> None:
    """Print the package that provides COMMAND."""
    session = build_session(ctx)
    package_id = session.catalog.lookup(command)
    if package_id is None:
        click.secho(f"❌ No recipe provides '{command}'", fg="red", err=True)
        sys.exit(1)
    click.echo(package_id)


# ── Act ─────────────────────────────────────────────────────────


@recipes.command()
@click.argument("package_ids", nargs=-1, required=True)
@click.pass_context
def install(ctx: click.Context, package_ids: tuple[str, ...]) -> None:
    """Install packages by id (dependencies first)."""
    session = build_session(ctx)
    failed = False
    for package_id in package_ids:
        result = session.catalog.install(package_id)
        if result.failed:
            click.secho(f"❌ {package_id}: {result.error}", fg="red")
            failed = True
        elif result.status == "skipped":
            click.secho(f"⏭️  {package_id}: {result.output}", fg="white")
        else:
            click.secho(f"✅ {package_id} installed", fg="green")
    if failed:
        sys.exit(1)


@recipes.command("install-tags")
@click.argument("tags", nargs=-1, required=True)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install_tags(ctx: click.Context, tags: tuple[str, ...], as_json: bool) -> None:
    """Install every package tagged with any of TAGS."""
    session = build_session(ctx)
    report = session.catalog.install_by_tags(tags)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        echo_report(report, quiet=ctx.find_root().obj.get("quiet", False))
    if not report.all_ok:
        sys.exit(1)


@recipes.command("add-keys")
@click.pass_context
def add_keys(ctx: click.Context) -> None:
    """Add registered signing keys for available managers."""
    session = build_session(ctx)
    report = session.catalog.add_registered_keys()
    echo_report(report, quiet=ctx.find_root().obj.get("quiet", False))
    if not report.all_ok:
        sys.exit(1)


@recipes.command("add-repos")
@click.pass_context
def add_repos(ctx: click.Context) -> None:
    """Add registered repositories for available managers."""
    session = build_session(ctx)
    report = session.catalog.add_registered_repos()
    echo_report(report, quiet=ctx.find_root().obj.get("quiet", False))
    if not report.all_ok:
        sys.exit(1)
