"""Layered configuration resolution.

Sources are applied in order (defaults, file, environment variables, CLI) and
the active profile is selected last, so ``--env`` always wins over the
``environment`` key found in any layer.
"""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Iterable, Mapping, Optional, Tuple

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import TidydropConfig

ENV_PREFIX = "TIDYDROP__"


def parse_env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    """Collect ``TIDYDROP__A__B`` variables into a nested override mapping.

    Values are parsed as YAML scalars so numbers and booleans keep their type;
    unparseable values are kept as raw strings.

    Args:
        env: Environment mapping, usually ``os.environ``.

    Returns:
        dict[str, Any]: Nested overrides keyed by lower-cased segments.
    """
    overrides: dict[str, Any] = {}
    for key, raw_value in env.items():
        if not key.startswith(ENV_PREFIX):
            continue
        segments = [segment.lower() for segment in key[len(ENV_PREFIX) :].split("__")]
        if not all(segments):
            continue
        try:
            value: Any = yaml.safe_load(raw_value)
        except yaml.YAMLError:
            value = raw_value
        _set_path(overrides, segments, value, source="environment", key=key)
    return overrides


def resolve_with_precedence(
    *,
    defaults: TidydropConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
    environment: Optional[str] = None,
) -> TidydropConfig:
    """Merge every configuration layer and select the active profile.

    Args:
        defaults: Baseline configuration.
        file_overrides: Values read from the YAML file.
        env_overrides: Nested values from ``TIDYDROP__`` variables.
        cli_overrides: Dotted-key values supplied on the command line.
        environment: Profile to activate, overriding every layer.

    Returns:
        TidydropConfig: Validated configuration.

    Raises:
        ConfigError: If a layer is malformed, a value is invalid, or the
            requested environment has no profile.
    """
    layers: Iterable[Tuple[str, Mapping[str, Any] | None]] = (
        ("file", file_overrides),
        ("environment", env_overrides),
        ("cli", cli_overrides),
    )
    merged = defaults.model_dump(mode="python")
    for source, layer in layers:
        if layer:
            merged = _merge(merged, _expand(layer, source=source))

    if environment is not None:
        profiles = merged.get("profiles") or {}
        if environment not in profiles:
            known = ", ".join(sorted(profiles)) or "none"
            raise ConfigError(f"Unknown environment '{environment}'. Known: {known}.")
        merged["environment"] = environment

    try:
        return TidydropConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def _expand(layer: Mapping[str, Any], *, source: str) -> dict[str, Any]:
    """Turn dotted keys such as ``profiles.production.origin_dir`` into nesting."""
    if not isinstance(layer, MappingABC):
        raise ConfigError(f"{source.capitalize()} overrides must be a mapping.")
    expanded: dict[str, Any] = {}
    for key, value in layer.items():
        if not isinstance(key, str):
            raise ConfigError(f"{source.capitalize()} override keys must be strings.")
        if isinstance(value, MappingABC):
            value = _expand(value, source=source)
        _set_path(expanded, key.split("."), value, source=source, key=key)
    return expanded


def _set_path(
    target: dict[str, Any], path: list[str], value: Any, *, source: str, key: str
) -> None:
    node = target
    for segment in path[:-1]:
        child = node.setdefault(segment, {})
        if not isinstance(child, dict):
            raise ConfigError(f"{source.capitalize()} override {key} conflicts with a value.")
        node = child
    leaf = path[-1]
    if isinstance(value, dict) and isinstance(node.get(leaf), dict):
        node[leaf] = _merge(node[leaf], value)
    else:
        node[leaf] = value


def _merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    result = deepcopy(dict(base))
    for key, value in overrides.items():
        current = result.get(key)
        if isinstance(value, MappingABC) and isinstance(current, dict):
            result[key] = _merge(current, value)
        else:
            result[key] = deepcopy(value)
    return result


__all__ = ["resolve_with_precedence", "parse_env_overrides", "ENV_PREFIX"]
