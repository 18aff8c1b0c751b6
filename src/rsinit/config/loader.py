# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rsinit/config/loader.py

import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

import yaml
from pydantic import ValidationError

from .models import BootstrapConfig
from ..errors import ConfigError

log = logging.getLogger("rsinit")

USERNAME_ENV = "MONGO_INITDB_ROOT_USERNAME"
PASSWORD_ENV = "MONGO_INITDB_ROOT_PASSWORD"


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Recursively merge *override* into *base* (mutates base).
    Only overwrites when the override value is non-empty.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            _deep_merge(base[key], value)
        else:
            if value not in (None, ""):
                base[key] = value
    return base


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    try:
        raw = path.read_text()
    except OSError as exc:
        raise ConfigError(f"cannot read config file {path}: {exc}", phase="config") from exc

    expanded = os.path.expandvars(raw)
    try:
        data = yaml.safe_load(expanded) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {path}: {exc}", phase="config") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"expected a mapping in {path}, got {type(data).__name__}", phase="config")
    return data


def _from_env(environ: Mapping[str, str]) -> dict:
    return {
        "username": environ.get(USERNAME_ENV, ""),
        "password": environ.get(PASSWORD_ENV, ""),
    }


def load_config(
    path: Optional[str | Path] = None,
    *,
    argv: Optional[Sequence[str]] = None,
    overrides: Optional[dict[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> BootstrapConfig:
    """
    Build and validate the BootstrapConfig.

    Sources, lowest to highest precedence (empty values never win):
      1. optional YAML file, ``${ENV_VAR}`` placeholders expanded
      2. ``MONGO_INITDB_ROOT_USERNAME`` / ``MONGO_INITDB_ROOT_PASSWORD``
      3. explicit *overrides* (CLI options) and the server *argv*

    Raises ConfigError when the root credentials are missing or empty, before
    anything touches the filesystem or starts a process.
    """
    environ = os.environ if environ is None else environ
    data: dict = {}

    if path is not None:
        path = Path(path)
        log.debug("Loading config from %s", path)
        data = _load_yaml(path)

    _deep_merge(data, _from_env(environ))
    if overrides:
        _deep_merge(data, dict(overrides))
    if argv:
        data["argv"] = list(argv)

    missing = [k for k in ("username", "password") if not data.get(k)]
    if missing:
        raise ConfigError(
            f"{USERNAME_ENV} and {PASSWORD_ENV} must be set "
            f"(missing: {', '.join(missing)})",
            phase="config",
        )

    try:
        return BootstrapConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"invalid configuration: {exc}", phase="config") from exc
