"""
CLI commands wired into the interactive shell.

``hook init zsh`` prints the functions a shell rc file evals:

    eval "$(provision hook init zsh)"

The not-found handler calls ``provision hook not-found`` with the
original argument vector and returns its exit status.
"""

from __future__ import annotations

import sys

import click

from provisioner.ui.cli.common import build_session

_ZSH_INIT = """\
command_not_found_handler() {
    local _flag=--non-interactive
    [[ -o interactive ]] && _flag=--interactive
    provision hook not-found "$_flag" -- "$@"
    local _rc=$?
    rehash
    return $_rc
}

_provision_preexec() {
    eval "$(provision credentials preexec -- "$1" 2>/dev/null)"
}
autoload -Uz add-zsh-hook
add-zsh-hook preexec _provision_preexec
"""

_BASH_INIT = """\
command_not_found_handle() {
    local _flag=--non-interactive
    [[ $- == *i* ]] && _flag=--interactive
    provision hook not-found "$_flag" -- "$@"
    local _rc=$?
    hash -r
    return $_rc
}
"""

INIT_SCRIPTS = {"zsh": _ZSH_INIT, "bash": _BASH_INIT}


@click.group()
def hook() -> None:
    """Shell hook — not-found handler and init snippets."""


@hook.command(
    "not-found",
    context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False},
)
@click.option(
    "--interactive/--non-interactive",
    default=None,
    help="Whether prompting is allowed (default: stderr is a terminal).",
)
@click.argument("argv", nargs=-1, required=True, type=click.UNPROCESSED)
@click.pass_context
def not_found(ctx: click.Context, interactive: bool | None, argv: tuple[str, ...]) -> None:
    """Handle an unresolved command: recover, offer install, re-run."""
    if interactive is None:
        interactive = sys.stderr.isatty()

    session = build_session(ctx, interactive=interactive)
    result = session.dispatcher.dispatch(list(argv))
    sys.exit(result.exit_code)


@hook.command()
@click.argument("shell", type=click.Choice(sorted(INIT_SCRIPTS)), default="zsh")
def init(shell: str) -> None:
    """Print the handler functions for SHELL."""
    click.echo(INIT_SCRIPTS[shell], nl=False)
