"""
Configuration model — the validated shape of provision.yml.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from provisioner.core.models.credential import CredentialSpec
from provisioner.core.models.recipe import KeyRegistration, PackageRecipe, RepoRegistration

DEFAULT_PREPEND = ["/usr/local/bin", "/usr/local/sbin", "~/.local/bin", "~/bin"]
DEFAULT_APPEND_GLOBS = [
    "~/.local/opt/*/bin",
    "~/.local/opt/*/sbin",
    "/opt/*/bin",
    "/opt/*/sbin",
]


class SearchPaths(BaseModel):
    """Directories re-applied to PATH on every reload.

    ``prepend`` entries go to the front in listed order (the last one
    ends up first, matching repeated prepends). ``append_globs`` are
    expanded and appended.
    """

    prepend: list[str] = Field(default_factory=lambda: list(DEFAULT_PREPEND))
    append_globs: list[str] = Field(default_factory=lambda: list(DEFAULT_APPEND_GLOBS))


class ProvisionConfig(BaseModel):
    """Root configuration object."""

    shell: str = "zsh"                      # name used in "command not found" lines
    procedure_shell: list[str] = Field(default_factory=lambda: ["sh", "-c"])
    tty: str = "/dev/tty"
    search_paths: SearchPaths = Field(default_factory=SearchPaths)
    credentials: list[CredentialSpec] = Field(default_factory=list)
    recipes: list[PackageRecipe] = Field(default_factory=list)
    recipes_dir: str | None = None
    keys: list[KeyRegistration] = Field(default_factory=list)
    repos: list[RepoRegistration] = Field(default_factory=list)
