"""
Recipe models — catalog entries, package recipes, trusted sources.

A ``RecipeEntry`` is the lookup row (command → package id). A
``PackageRecipe`` is the detailed definition behind a package id:
which package each manager installs, what it depends on, and the
hooks around installation.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, Field, field_validator, model_validator

_REPO_PATTERN = re.compile(r"^[A-Za-z0-9._/-]+$")


def _strip_required(value: str, what: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError(f"{what} must not be empty")
    return value


class RecipeEntry(BaseModel):
    """One catalog row. ``command_name`` is the lookup key."""

    model_config = {"frozen": True}

    command_name: str
    package_id: str
    tags: frozenset[str] = frozenset({"default"})
    platforms: frozenset[str] = frozenset()   # empty = every platform

    @field_validator("command_name")
    @classmethod
    def _check_command(cls, v: str) -> str:
        return _strip_required(v, "command_name")

    @field_validator("package_id")
    @classmethod
    def _check_package(cls, v: str) -> str:
        return _strip_required(v, "package_id")

    def active_on(self, platform: str) -> bool:
        """Whether this entry applies to the given OS family."""
        return not self.platforms or platform in self.platforms


class ReleaseSpec(BaseModel):
    """A GitHub release to install: ``app:owner/repo@version``.

    ``app`` names the directory under the releases root. The version
    defaults to ``latest``.
    """

    model_config = {"frozen": True}

    app: str
    repo: str
    version: str = "latest"

    @classmethod
    def parse(cls, value: str) -> ReleaseSpec:
        app, sep, rest = value.strip().partition(":")
        if not sep or not app:
            raise ValueError(f"Expected app:owner/repo[@version], got '{value}'")
        repo, _, version = rest.partition("@")
        if not _REPO_PATTERN.match(repo) or "/" not in repo:
            raise ValueError(f"Invalid GitHub repo: '{repo}'")
        return cls(app=app, repo=repo, version=version or "latest")


class PackageRecipe(BaseModel):
    """Installation recipe for one package id.

    ``packages`` maps a manager name (apt, brew, ...) to a space-separated
    package spec. The ``default`` key is installed through the system's
    primary package manager when no manager-specific spec applies.
    """

    name: str
    description: str = ""
    provides: list[str] = Field(default_factory=list)
    packages: dict[str, str] = Field(default_factory=dict)
    github: str | None = None               # app:owner/repo@version
    install_cmd: str | None = None
    tags: set[str] = Field(default_factory=lambda: {"default"})
    depends: list[str] = Field(default_factory=list)
    pre_install: str | None = None
    post_install: str | None = None
    platforms: set[str] = Field(default_factory=set)

    @field_validator("name")
    @classmethod
    def _check_name(cls, v: str) -> str:
        return _strip_required(v, "recipe name")

    @field_validator("github")
    @classmethod
    def _check_github(cls, v: str | None) -> str | None:
        if v is not None:
            ReleaseSpec.parse(v)
        return v

    @model_validator(mode="after")
    def _default_provides(self) -> PackageRecipe:
        if not self.provides:
            self.provides = [self.name]
        return self

    def methods(self) -> list[str]:
        """Install methods this recipe can use."""
        found = list(self.packages)
        if self.github:
            found.append("github")
        if self.install_cmd:
            found.append("install_cmd")
        return found

    def release(self) -> ReleaseSpec | None:
        return ReleaseSpec.parse(self.github) if self.github else None

    def entries(self) -> list[RecipeEntry]:
        """Catalog rows for every command this recipe provides."""
        return [
            RecipeEntry(
                command_name=cmd,
                package_id=self.name,
                tags=frozenset(self.tags),
                platforms=frozenset(self.platforms),
            )
            for cmd in self.provides
        ]


class KeyRegistration(BaseModel):
    """A signing key a package manager must trust before installing."""

    name: str
    manager: str = "apt"
    url: str
    keyring: str = ""       # filename under the keyring directory

    @property
    def keyring_file(self) -> str:
        return self.keyring or f"{self.name}.gpg"


class RepoRegistration(BaseModel):
    """A package source to register before installing.

    ``source`` format depends on the manager: an apt ``deb`` line (with
    optional %CODENAME%/%ARCH%/%DISTRO%/%KEYRING% tokens), a dnf .repo
    URL, a brew tap, or a flatpak ``name url`` remote.
    """

    name: str
    manager: str
    source: str
    keyring: str = ""
