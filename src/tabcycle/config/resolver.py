"""Merging of configuration sources into validated settings.

Every source is a nested mapping whose keys may also be dotted paths such as
``"aging.thresholds.green_to_yellow_minutes"``, so a single field can be
addressed from the file, the environment or the command line alike.
"""

from __future__ import annotations

import json
from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Dict, Mapping

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import TabCycleConfig

ENV_PREFIX = "TABCYCLE__"
_SOURCES = ("file", "environment", "cli")


def resolve_with_precedence(
    *,
    defaults: TabCycleConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> TabCycleConfig:
    """Merge configuration sources: defaults < file < environment < CLI.

    Raises:
        ConfigError: If an override is malformed or the merged result fails validation,
            including out-of-order aging thresholds.
    """
    merged: dict[str, Any] = defaults.model_dump(mode="python")
    for name, source in zip(_SOURCES, (file_overrides, env_overrides, cli_overrides)):
        if source is not None:
            merged = merge_overrides(merged, source, source_name=name)

    try:
        return TabCycleConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def merge_overrides(
    base: Mapping[str, Any],
    overrides: Mapping[str, Any],
    *,
    source_name: str = "override",
) -> dict[str, Any]:
    """Return a copy of ``base`` with ``overrides`` applied.

    Nested mappings are merged key by key; any other value replaces what was
    there. Dotted keys are expanded into nested sections first.

    Raises:
        ConfigError: If ``overrides`` is not a mapping or uses non-string keys.
    """
    if not isinstance(overrides, MappingABC):
        raise ConfigError(f"{source_name.capitalize()} overrides must be a mapping.")

    merged = deepcopy(dict(base))
    for key, value in overrides.items():
        if not isinstance(key, str):
            raise ConfigError(f"{source_name.capitalize()} override keys must be strings.")
        *parents, leaf = key.split(".")
        node = merged
        for segment in parents:
            child = node.get(segment)
            if not isinstance(child, dict):
                child = {}
                node[segment] = child
            node = child
        if isinstance(value, MappingABC):
            existing = node.get(leaf)
            node[leaf] = merge_overrides(
                existing if isinstance(existing, dict) else {}, value, source_name=source_name
            )
        else:
            node[leaf] = deepcopy(value)
    return merged


def parse_env(environ: Mapping[str, str]) -> Dict[str, Any]:
    """Collect ``TABCYCLE__SECTION__FIELD`` variables as dotted overrides.

    Values are read as YAML scalars so ``false`` and ``7`` keep their types.
    """
    overrides: Dict[str, Any] = {}
    for key, raw_value in environ.items():
        if not key.startswith(ENV_PREFIX) or key == ENV_PREFIX:
            continue
        path = key[len(ENV_PREFIX) :].lower().replace("__", ".")
        try:
            overrides[path] = yaml.safe_load(raw_value)
        except yaml.YAMLError:
            overrides[path] = raw_value
    return overrides


def flatten_for_env(config: TabCycleConfig) -> Dict[str, str]:
    """Render ``config`` as environment variables that :func:`parse_env` reads back."""
    flat: Dict[str, str] = {}
    pending: list[tuple[tuple[str, ...], Any]] = [((), config.model_dump(mode="json"))]
    while pending:
        prefix, value = pending.pop()
        if isinstance(value, dict):
            pending.extend((prefix + (str(key),), child) for key, child in value.items())
            continue
        name = ENV_PREFIX + "__".join(part.upper() for part in prefix)
        if isinstance(value, bool):
            flat[name] = "true" if value else "false"
        elif value is None:
            flat[name] = "null"
        elif isinstance(value, str) and yaml.safe_load(value) != value:
            # Quote strings YAML would read back as something else, e.g. "".
            flat[name] = json.dumps(value)
        else:
            flat[name] = str(value)
    return flat


__all__ = ["ENV_PREFIX", "resolve_with_precedence", "merge_overrides", "parse_env", "flatten_for_env"]
