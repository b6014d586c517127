"""Settings storage for tabcycle.

The YAML file holds overrides on top of the built-in defaults. Both
``tabcycle config set`` and the engine change it through
:meth:`ConfigManager.update`, which validates the merged settings first, so a
rejected change (for example out-of-order thresholds) never reaches the file
or a running engine.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple

import yaml

from .exceptions import ConfigError
from .models import TabCycleConfig
from .resolver import flatten_for_env, merge_overrides, parse_env, resolve_with_precedence

DEFAULT_CONFIG_PATH = Path("~/.tabcycle/config.yaml")
_CONFIG_HEADER = (
    "# tabcycle configuration file\n"
    "# Change values with `tabcycle config set KEY --value VALUE` or edit by hand;\n"
    "# a running engine picks up saved changes. Thresholds are minutes and must\n"
    "# be strictly increasing.\n"
)
_STAMP_PREFIX = "# Last updated: "

Fingerprint = Tuple[int, int]


class ConfigManager:
    """Read, validate and update the settings file.

    The manager remembers which version of the file it last read or wrote, so
    a file watcher can tell edits made elsewhere from its own writes.
    """

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._config_path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._env = env if env is not None else os.environ
        self._seen: Optional[Fingerprint] = None

    @property
    def config_path(self) -> Path:
        return self._config_path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
        ensure_file: bool = True,
        env_overrides: Mapping[str, str] | None = None,
    ) -> TabCycleConfig:
        """Return the effective settings: defaults < file < environment < CLI.

        Args:
            cli_overrides: Highest-precedence overrides, nested or dotted.
            include_env: Whether ``TABCYCLE__SECTION__FIELD`` variables apply.
            ensure_file: Write the default file first when it is missing.
            env_overrides: Environment to read instead of the manager's own.

        Raises:
            ConfigError: If the file cannot be parsed or the merged settings are invalid.
        """
        if ensure_file:
            self.ensure_exists()

        fingerprint = self._fingerprint()
        environ = (env_overrides if env_overrides is not None else self._env) if include_env else None
        config = resolve_with_precedence(
            defaults=TabCycleConfig(),
            file_overrides=self.load_file_overrides(),
            env_overrides=parse_env(environ) if environ else None,
            cli_overrides=cli_overrides,
        )
        self._seen = fingerprint
        return config

    def update(self, changes: Mapping[str, Any]) -> bool:
        """Merge ``changes`` into the file once the result validates.

        Args:
            changes: Overrides keyed by section or by dotted path, e.g.
                ``{"aging.yellow_group_name": "Later"}``.

        Returns:
            bool: ``True`` when the file was rewritten, ``False`` when it already
            held these values.

        Raises:
            ConfigError: If the merged settings are invalid. The file is left untouched.
        """
        current = self.load_file_overrides()
        merged = merge_overrides(current, changes)
        resolve_with_precedence(defaults=TabCycleConfig(), file_overrides=merged)
        if merged == current and self._config_path.exists():
            return False
        self._write_file(merged)
        return True

    def changed_on_disk(self) -> bool:
        """Return whether the file differs from the version last loaded or written."""
        return self._fingerprint() != self._seen

    def load_file_overrides(self) -> dict[str, Any]:
        """Return the raw overrides stored on disk.

        Raises:
            ConfigError: If the file is not valid YAML or not a mapping.
        """
        if not self._config_path.exists():
            return {}
        try:
            raw = yaml.safe_load(self._config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse configuration file: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError("Configuration file must contain a mapping at the top level.")
        return raw

    def ensure_exists(self) -> Path:
        """Write the default settings when no file exists yet."""
        if not self._config_path.exists():
            self._write_file(TabCycleConfig().model_dump(mode="python"))
        return self._config_path

    def read_text(self) -> str:
        if not self._config_path.exists():
            return ""
        return self._config_path.read_text(encoding="utf-8")

    def _fingerprint(self) -> Optional[Fingerprint]:
        try:
            stat = self._config_path.stat()
        except FileNotFoundError:
            return None
        return stat.st_mtime_ns, stat.st_size

    def _write_file(self, data: Mapping[str, Any]) -> None:
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        body = yaml.safe_dump(dict(data), sort_keys=False)
        self._config_path.write_text(f"{_CONFIG_HEADER}{_STAMP_PREFIX}{stamp}\n{body}", encoding="utf-8")
        self._seen = self._fingerprint()


__all__ = [
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "TabCycleConfig",
    "resolve_with_precedence",
    "flatten_for_env",
    "parse_env",
    "ConfigError",
]
