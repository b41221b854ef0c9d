"""
Configuration loader — reads provision.yml into a ProvisionConfig.

Lookup order when no path is given:
    $PROVISION_CONFIG  →  provision.yml in cwd or any parent
                       →  $XDG_CONFIG_HOME/provision/provision.yml

A session without any config file is valid: it just starts with empty
registries and the default search paths.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from provisioner.core.errors import ConfigError
from provisioner.core.models.config import ProvisionConfig
from provisioner.core.models.recipe import PackageRecipe

logger = logging.getLogger(__name__)

CONFIG_FILE = "provision.yml"
CONFIG_ENV = "PROVISION_CONFIG"


def user_config_path(environ: Mapping[str, str] | None = None) -> Path:
    env = os.environ if environ is None else environ
    base = env.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / "provision" / CONFIG_FILE


def find_config_file(
    start_dir: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Path | None:
    """Locate provision.yml.

    Args:
        start_dir: Directory to start the upward search from (default: cwd).
        environ: Environment to read ``PROVISION_CONFIG`` and
            ``XDG_CONFIG_HOME`` from (default: ``os.environ``).

    Returns:
        Path to the config file, or None if there is none.
    """
    env = os.environ if environ is None else environ

    explicit = env.get(CONFIG_ENV)
    if explicit:
        return Path(explicit).expanduser()

    current = (start_dir or Path.cwd()).resolve()
    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        if current.parent == current:
            break
        current = current.parent

    fallback = user_config_path(env)
    if fallback.is_file():
        return fallback
    return None


def _read_yaml(path: Path) -> Any:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e


def load_config(path: Path | None = None) -> ProvisionConfig:
    """Load and validate provisioning configuration.

    Args:
        path: Explicit config path. If None, it is searched for; when
            nothing is found an empty configuration is returned.

    Raises:
        ConfigError: If an explicit file is missing, or any file is
            unreadable or invalid.
    """
    explicit = path is not None
    if path is None:
        path = find_config_file()

    if path is None:
        logger.debug("No %s found, using defaults", CONFIG_FILE)
        return ProvisionConfig()

    if not path.is_file():
        if explicit or os.environ.get(CONFIG_ENV):
            raise ConfigError(f"Config file not found: {path}")
        return ProvisionConfig()

    logger.debug("Loading config from %s", path)
    data = _read_yaml(path)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        config = ProvisionConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    if config.recipes_dir:
        recipes_dir = Path(config.recipes_dir).expanduser()
        if not recipes_dir.is_absolute():
            recipes_dir = path.parent / recipes_dir
        config.recipes.extend(load_recipes_dir(recipes_dir))

    logger.info(
        "Loaded %d credential(s), %d recipe(s) from %s",
        len(config.credentials), len(config.recipes), path,
    )
    return config


def load_recipes_dir(directory: Path) -> list[PackageRecipe]:
    """Load one recipe per ``*.yml``/``*.yaml`` file in a directory.

    The recipe name defaults to the file stem. A missing directory
    yields no recipes.
    """
    if not directory.is_dir():
        logger.warning("Recipe directory %s does not exist", directory)
        return []

    recipes: list[PackageRecipe] = []
    files = sorted([*directory.glob("*.yml"), *directory.glob("*.yaml")])
    for file in files:
        data = _read_yaml(file) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"Expected a YAML mapping in {file}, got {type(data).__name__}")
        data.setdefault("name", file.stem)
        try:
            recipes.append(PackageRecipe.model_validate(data))
        except ValidationError as e:
            raise ConfigError(f"Invalid recipe in {file}: {e}") from e
    return recipes
