"""Merging of configuration sources into a validated `SnapgenConfig`."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Dict, Iterable, Iterator, Mapping

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import SnapgenConfig

ENV_PREFIX = "SNAPGEN__"

# (section, key) of the list that accumulates across sources.
_ACCUMULATED = ("scan", "exclude")


def resolve_with_precedence(
    *,
    defaults: SnapgenConfig,
    env_overrides: Mapping[str, Any] | None = None,
    file_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> SnapgenConfig:
    """Merge configuration sources: defaults < environment < file < CLI.

    Override keys may be nested mappings or dotted paths (``scan.out``).
    Scalars from a later source replace earlier ones, while ``scan.exclude``
    lists are concatenated with the highest-precedence source first and
    duplicates dropped.

    Raises:
        ConfigError: If an override is malformed or the result fails validation.
    """
    merged = defaults.model_dump(mode="python")
    excludes = [_take_accumulated(merged, "defaults")]

    for name, source in (
        ("environment", env_overrides),
        ("file", file_overrides),
        ("cli", cli_overrides),
    ):
        if source is None:
            continue
        expanded = _expand(source, name)
        excludes.append(_take_accumulated(expanded, name))
        merged = _merge(merged, expanded)

    section, key = _ACCUMULATED
    merged.setdefault(section, {})[key] = _dedupe(
        pattern for chunk in reversed(excludes) for pattern in chunk
    )

    try:
        return SnapgenConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def flatten_for_env(config: SnapgenConfig) -> Dict[str, str]:
    """Render ``config`` as ``SNAPGEN__SECTION__KEY`` environment variables."""
    flat: Dict[str, str] = {}
    for path, value in _leaves(config.model_dump(mode="python"), ()):
        if isinstance(value, list):
            rendered = yaml.safe_dump(value, default_flow_style=True).strip()
        elif value is None:
            rendered = "null"
        else:
            rendered = str(value)
        flat[ENV_PREFIX + "__".join(part.upper() for part in path)] = rendered
    return flat


def _leaves(
    data: Mapping[str, Any], prefix: tuple[str, ...]
) -> Iterator[tuple[tuple[str, ...], Any]]:
    for key, value in data.items():
        path = (*prefix, str(key))
        if isinstance(value, MappingABC):
            yield from _leaves(value, path)
        else:
            yield path, value


def _take_accumulated(data: dict[str, Any], source_name: str) -> list[Any]:
    section, key = _ACCUMULATED
    node = data.get(section)
    if not isinstance(node, dict) or key not in node:
        return []
    value = node.pop(key)
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ConfigError(f"{source_name.capitalize()} value for {section}.{key} must be a list.")
    return list(value)


def _dedupe(items: Iterable[Any]) -> list[Any]:
    unique: list[Any] = []
    for item in items:
        if item not in unique:
            unique.append(item)
    return unique


def _expand(source: Mapping[str, Any], source_name: str) -> dict[str, Any]:
    """Return ``source`` as nested dictionaries, splitting dotted keys."""
    if not isinstance(source, MappingABC):
        raise ConfigError(f"{source_name.capitalize()} overrides must be a mapping.")

    tree: dict[str, Any] = {}
    for key, value in source.items():
        if not isinstance(key, str):
            raise ConfigError(f"{source_name.capitalize()} override keys must be strings.")
        *parents, leaf = key.split(".")
        node = tree
        for segment in parents:
            child = node.setdefault(segment, {})
            if not isinstance(child, dict):
                raise ConfigError(
                    f"{source_name.capitalize()} override for {key} conflicts with existing value."
                )
            node = child
        if isinstance(value, MappingABC):
            current = node.get(leaf)
            node[leaf] = _merge(
                current if isinstance(current, dict) else {}, _expand(value, source_name)
            )
        else:
            node[leaf] = value
    return tree


def _merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Return a deep copy of ``base`` with ``overrides`` applied recursively."""
    result = deepcopy(dict(base))
    for key, value in overrides.items():
        current = result.get(key)
        if isinstance(value, MappingABC) and isinstance(current, MappingABC):
            result[key] = _merge(current, value)
        else:
            result[key] = deepcopy(value)
    return result


__all__ = ["ENV_PREFIX", "flatten_for_env", "resolve_with_precedence"]
