"""Configuration management for snapgen."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError
from .models import LoggingSettings, OutputSettings, ScanSettings, SnapgenConfig
from .resolver import ENV_PREFIX, flatten_for_env, resolve_with_precedence

DEFAULT_CONFIG_PATH = Path("~/.snapgen/config.yaml")
CONFIG_HEADER = (
    "# snapgen configuration file\n"
    "# Managed via `snapgen config set`; JSON files are accepted as well.\n"
)

# Flat keys of `snap-gen` style JSON configs and the settings they map to.
LEGACY_KEYS = {
    "path": "scan.path",
    "out": "scan.out",
    "exclude": "scan.exclude",
    "name": "scan.name",
    "quiet": "output.quiet",
    "sign": "output.sign",
    "checksum": "output.checksum",
}
LEGACY_ENV = {
    "SNAP_PATH": "scan.path",
    "SNAP_OUT": "scan.out",
}


def environment_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    """Collect dotted overrides from ``SNAPGEN__SECTION__KEY`` and legacy variables.

    Values are parsed as YAML literals so ``true``, ``42`` and ``['a', 'b']``
    arrive typed; anything unparseable is kept as the raw string.
    """
    overrides: dict[str, Any] = {
        dotted: env[name] for name, dotted in LEGACY_ENV.items() if env.get(name)
    }
    for name, raw in env.items():
        if not name.startswith(ENV_PREFIX):
            continue
        segments = name[len(ENV_PREFIX) :].lower().split("__")
        if not all(segments):
            continue
        try:
            value = yaml.safe_load(raw)
        except yaml.YAMLError:
            value = raw
        overrides[".".join(segments)] = value
    return overrides


def _lift_legacy_keys(raw: Mapping[str, Any]) -> dict[str, Any]:
    return {LEGACY_KEYS.get(key, key): value for key, value in raw.items()}


def _render(data: Mapping[str, Any]) -> str:
    stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    body = yaml.safe_dump(dict(data), sort_keys=False)
    return f"{CONFIG_HEADER}# Last updated: {stamp}\n{body}"


class ConfigManager:
    """Read and write the configuration file and resolve effective settings.

    Args:
        config_path: File to use instead of ``~/.snapgen/config.yaml``.
        env: Environment mapping; defaults to ``os.environ``.
    """

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._config_path = Path(config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._env = os.environ if env is None else env

    @property
    def config_path(self) -> Path:
        return self._config_path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
        env_overrides: Mapping[str, str] | None = None,
    ) -> SnapgenConfig:
        """Return the effective configuration: defaults < environment < file < CLI.

        A missing configuration file contributes nothing and is not created.

        Args:
            cli_overrides: Dotted or nested values given on the command line.
            include_env: Whether environment variables are consulted.
            env_overrides: Environment to read instead of the manager's own.

        Raises:
            ConfigError: If the file is unreadable or a value fails validation.
        """
        env_values: dict[str, Any] = {}
        if include_env:
            env_values = environment_overrides(
                self._env if env_overrides is None else env_overrides
            )
        return resolve_with_precedence(
            defaults=SnapgenConfig(),
            env_overrides=env_values or None,
            file_overrides=self.load_file_overrides(),
            cli_overrides=cli_overrides,
        )

    def load_file_overrides(self) -> dict[str, Any]:
        """Return the raw mapping stored in the configuration file.

        Raises:
            ConfigError: If the file cannot be read, parsed, or is not a mapping.
        """
        path = self._config_path
        if not path.exists():
            return {}
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse configuration file {path}: {exc}") from exc
        except OSError as exc:
            raise ConfigError(f"Cannot read configuration file {path}: {exc}") from exc
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise ConfigError(f"Configuration file {path} must contain a top-level mapping.")
        return _lift_legacy_keys(raw)

    def save(self, config: SnapgenConfig | Mapping[str, Any]) -> None:
        """Write ``config`` to the configuration file, replacing its contents."""
        if isinstance(config, SnapgenConfig):
            data = config.model_dump(mode="python")
        else:
            data = dict(config)
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        self._config_path.write_text(_render(data), encoding="utf-8")

    def set_value(self, dotted_key: str, value: Any) -> SnapgenConfig:
        """Store ``value`` under ``dotted_key`` in the file after validating the result.

        Raises:
            ConfigError: If the key is empty, collides with a scalar, or the
                updated file would not validate.
        """
        segments = [segment for segment in dotted_key.split(".") if segment]
        if not segments:
            raise ConfigError("Configuration key must be a dotted path such as 'scan.batch_size'.")

        data = self.load_file_overrides()
        node = data
        for segment in segments[:-1]:
            child = node.setdefault(segment, {})
            if not isinstance(child, dict):
                raise ConfigError(f"Cannot set {dotted_key}: {segment} is not a section.")
            node = child
        node[segments[-1]] = value

        config = resolve_with_precedence(defaults=SnapgenConfig(), file_overrides=data)
        self.save(data)
        return config

    def ensure_exists(self) -> Path:
        """Write a default configuration file unless one is already present."""
        if not self._config_path.exists():
            self.save(SnapgenConfig())
        return self._config_path

    def read_text(self) -> str:
        if not self._config_path.exists():
            return ""
        return self._config_path.read_text(encoding="utf-8")


__all__ = [
    "ConfigError",
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "LEGACY_ENV",
    "LEGACY_KEYS",
    "LoggingSettings",
    "OutputSettings",
    "ScanSettings",
    "SnapgenConfig",
    "environment_overrides",
    "flatten_for_env",
    "resolve_with_precedence",
]
