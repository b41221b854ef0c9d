"""
Shared CLI plumbing — config loading, session building, report output.
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from pathlib import Path

import click

from provisioner.core.models.result import BatchReport
from provisioner.core.session import Session


def build_session(ctx: click.Context, *, interactive: bool | Callable[[], bool] = True) -> Session:
    """Load config (from --config or auto-detect) and build a session.

    Exits with status 1 on configuration errors.
    """
    from provisioner.core.config.loader import load_config
    from provisioner.core.errors import ConfigError

    obj = ctx.find_root().obj or {}
    config_path: Path | None = obj.get("config_path")
    try:
        config = load_config(config_path)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)
    return Session.from_config(config, interactive=interactive)


def echo_report(report: BatchReport, *, quiet: bool = False) -> None:
    """Print a batch report the same way for every batch command."""
    for name in report.succeeded:
        if not quiet:
            click.secho(f"   ✅ {name}", fg="green")
    for name, reason in report.skipped.items():
        if not quiet:
            click.secho(f"   ⏭️  {name} ({reason})", fg="white")
    for name, error in report.failed.items():
        click.secho(f"   ❌ {name}: {error}", fg="red")

    summary = (
        f"{report.operation}: {len(report.succeeded)} succeeded, "
        f"{len(report.failed)} failed, {len(report.skipped)} skipped"
    )
    color = {"ok": "green", "partial": "yellow", "failed": "red"}[report.status]
    click.secho(summary, fg=color, bold=True)
