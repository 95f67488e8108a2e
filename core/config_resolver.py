"""Layered configuration resolution, caching and persistence.

Precedence (low -> high):
1. Built-in defaults (core.config_schema.DEFAULT_CONFIG)
2. Global document ($DADGPT_HOME/config.yaml, DADGPT_HOME defaults to ~/.dadgpt)
3. Project document (./dadgpt.config.yaml)
4. Environment variables (DADGPT_PROVIDER, DADGPT_MODEL)
5. Caller-supplied overrides

Every source is loaded independently and tolerates being missing, blank or
malformed. Only the final merged object is validated, and a validation
failure is raised to the caller.
"""

from __future__ import annotations

import contextlib
import copy
import logging
import os
from collections.abc import Mapping
from functools import reduce
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from core.config_schema import DEFAULT_CONFIG, Config
from core.errors import ConfigSaveError, ConfigValidationError

logger = logging.getLogger("dadgpt.config")

GLOBAL_CONFIG_NAME = "config.yaml"
PROJECT_CONFIG_NAME = "dadgpt.config.yaml"

ENV_HOME = "DADGPT_HOME"
ENV_MAPPINGS = {
    "DADGPT_PROVIDER": "default_provider",
    "DADGPT_MODEL": "default_model",
}


def default_home(environ: Mapping[str, str] | None = None) -> Path:
    """Return the user-scoped DadGPT directory."""
    env = os.environ if environ is None else environ
    home = env.get(ENV_HOME)
    return Path(home) if home else Path.home() / ".dadgpt"


def load_source(path: Path) -> dict[str, Any]:
    """Load one YAML/JSON config document, returning {} when unusable."""
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as exc:
        logger.warning("Cannot read config file %s, ignoring it: %s", path, exc)
        return {}

    if not content.strip():
        logger.debug("Config file %s is empty, using defaults", path)
        return {}

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        logger.warning("Invalid config file %s, using defaults: %s", path, exc)
        return {}
    if data is None:
        logger.debug("Config file %s has no content, using defaults", path)
        return {}
    if not isinstance(data, dict):
        logger.warning(
            "Config file %s must contain a mapping, got %s; using defaults",
            path,
            type(data).__name__,
        )
        return {}
    return data


def merge_dicts(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge mappings without mutating either input.

    Nested mappings merge key by key. Lists and scalars from ``override``
    replace the base value outright. ``None`` counts as "not present".
    """
    merged: dict[str, Any] = copy.deepcopy(dict(base))
    for key, value in override.items():
        if value is None:
            continue
        if isinstance(value, Mapping):
            current = merged.get(key)
            merged[key] = merge_dicts(current if isinstance(current, Mapping) else {}, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def merge_all(*sources: Mapping[str, Any]) -> dict[str, Any]:
    """Merge sources left to right; later sources win."""
    return reduce(merge_dicts, sources, {})


def load_env_config(environ: Mapping[str, str]) -> dict[str, Any]:
    """Map supported environment variables onto config keys."""
    config: dict[str, Any] = {}
    for env_var, config_key in ENV_MAPPINGS.items():
        value = environ.get(env_var)
        if value:
            config[config_key] = value
    return config


class ConfigResolver:
    """Resolves and caches the effective Config for one process.

    Example:
        resolver = ConfigResolver()
        config = resolver.get()
        resolver.save({"theme": "light"})
        resolver.get().theme  # "light"

    The cache is a plain attribute with no lock. Two concurrent first-time
    ``get()`` calls may both resolve; the last one wins the cache slot.
    """

    def __init__(
        self,
        home_dir: Path | None = None,
        project_root: Path | None = None,
        environ: Mapping[str, str] | None = None,
        overrides: Mapping[str, Any] | None = None,
    ) -> None:
        self._home_dir = home_dir
        self._project_root = project_root
        self._environ = environ
        self.overrides: dict[str, Any] = dict(overrides or {})
        self._cached: Config | None = None

    @property
    def environ(self) -> Mapping[str, str]:
        return os.environ if self._environ is None else self._environ

    @property
    def home_dir(self) -> Path:
        return self._home_dir if self._home_dir is not None else default_home(self.environ)

    @property
    def global_config_path(self) -> Path:
        return self.home_dir / GLOBAL_CONFIG_NAME

    @property
    def project_config_path(self) -> Path:
        root = self._project_root if self._project_root is not None else Path.cwd()
        return root / PROJECT_CONFIG_NAME

    @property
    def is_cached(self) -> bool:
        return self._cached is not None

    def get(self) -> Config:
        """Return the cached Config, resolving all sources on a miss."""
        if self._cached is not None:
            return self._cached

        merged = merge_all(
            DEFAULT_CONFIG,
            load_source(self.global_config_path),
            load_source(self.project_config_path),
            load_env_config(self.environ),
            self.overrides,
        )
        try:
            config = Config.model_validate(merged)
        except ValidationError as exc:
            raise ConfigValidationError(
                f"Invalid configuration: {exc.error_count()} error(s)",
                errors=exc.errors(include_url=False),
            ) from exc

        self._cached = config
        return config

    def invalidate(self) -> None:
        """Drop the cached Config; the next get() re-resolves."""
        self._cached = None

    def save(self, partial: Mapping[str, Any]) -> None:
        """Deep-merge ``partial`` into the global document and persist it.

        Raises:
            ConfigSaveError: if the document cannot be written. The cache is
                left untouched in that case.
        """
        config_path = self.global_config_path
        updated = merge_dicts(load_source(config_path), partial)
        tmp_path = config_path.with_name(config_path.name + ".tmp")
        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as fh:
                yaml.safe_dump(updated, fh, sort_keys=False, allow_unicode=True)
            tmp_path.replace(config_path)
        except (OSError, yaml.YAMLError) as exc:
            with contextlib.suppress(OSError):
                tmp_path.unlink(missing_ok=True)
            logger.error("Failed to save configuration to %s: %s", config_path, exc)
            raise ConfigSaveError(
                f"Failed to save configuration to {config_path}: {exc}"
            ) from exc
        self.invalidate()
