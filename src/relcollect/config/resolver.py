"""Layered resolution of relcollect settings."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import CollectorConfig

ENV_PREFIX = "RELCOLLECT__"

Layer = Tuple[str, Dict[str, Any]]


def resolve_with_precedence(
    *,
    defaults: CollectorConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> CollectorConfig:
    """Merge configuration sources: defaults < file < environment < CLI.

    Keys may be nested mappings or dotted strings (``database.url``). CLI
    overrides whose value is None are treated as unset.

    Raises:
        ConfigError: If a source is malformed or the merged values fail
            validation. The error names the field and the source that set it.
    """
    layers: list[Layer] = []
    for name, source in (
        ("file", file_overrides),
        ("environment", env_overrides),
        ("cli", cli_overrides),
    ):
        if source is None:
            continue
        if name == "cli":
            source = {key: value for key, value in source.items() if value is not None}
        layers.append((name, _expand(source, source_name=name)))

    merged = defaults.model_dump(mode="python")
    for _, overrides in layers:
        merged = _deep_merge(merged, overrides)

    try:
        return CollectorConfig.model_validate(merged)
    except ValidationError as exc:
        raise _explain(exc, layers) from exc


def flatten_for_env(config: CollectorConfig) -> Dict[str, str]:
    """Render the config as ``RELCOLLECT__SECTION__KEY`` variables.

    Values are YAML literals, which is how the environment layer parses them
    back, so the mapping round-trips through ``ConfigManager.load``.
    """
    flat: Dict[str, str] = {}

    def _walk(prefix: list[str], value: Any) -> None:
        if isinstance(value, dict):
            for key, child in value.items():
                _walk(prefix + [str(key)], child)
            return
        name = ENV_PREFIX + "__".join(part.upper() for part in prefix)
        if isinstance(value, (list, bool)) or value is None:
            flat[name] = yaml.safe_dump(value, default_flow_style=True, width=2**31).splitlines()[0]
        else:
            flat[name] = str(value)

    _walk([], config.model_dump(mode="python"))
    return flat


def _expand(source: Mapping[str, Any], *, source_name: str) -> dict[str, Any]:
    """Turn dotted keys into nested dictionaries."""
    if not isinstance(source, MappingABC):
        raise ConfigError(
            f"{source_name.capitalize()} overrides must be a mapping.", source=source_name
        )

    expanded: dict[str, Any] = {}
    for key, value in source.items():
        if not isinstance(key, str) or not key.strip():
            raise ConfigError(
                f"{source_name.capitalize()} override keys must be non-empty strings.",
                source=source_name,
            )
        if isinstance(value, MappingABC):
            value = _expand(value, source_name=source_name)
        path = [segment.strip() for segment in key.split(".")]
        node = expanded
        for depth, segment in enumerate(path[:-1]):
            child = node.setdefault(segment, {})
            if not isinstance(child, dict):
                raise ConfigError(
                    f"{source_name.capitalize()} override '{key}' conflicts with "
                    f"'{'.'.join(path[: depth + 1])}'.",
                    source=source_name,
                    field=".".join(path[: depth + 1]),
                )
            node = child
        leaf = path[-1]
        if isinstance(value, dict) and isinstance(node.get(leaf), dict):
            node[leaf] = _deep_merge(node[leaf], value)
        else:
            node[leaf] = value
    return expanded


def _deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    merged = {key: deepcopy(value) for key, value in base.items()}
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(value, MappingABC) and isinstance(current, MappingABC):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = deepcopy(value)
    return merged


def _origin(location: Sequence[Any], layers: Sequence[Layer]) -> Optional[str]:
    """Return the highest-precedence source that set the field at location."""
    for name, overrides in reversed(layers):
        node: Any = overrides
        for part in location:
            if not isinstance(node, MappingABC) or part not in node:
                break
            node = node[part]
        else:
            return name
    return None


def _explain(exc: ValidationError, layers: Sequence[Layer]) -> ConfigError:
    problems: list[str] = []
    first_field: Optional[str] = None
    first_source: Optional[str] = None
    for error in exc.errors():
        location = [part for part in error["loc"] if isinstance(part, str)]
        field = ".".join(location) or "<root>"
        source = _origin(location, layers) or "defaults"
        if first_field is None:
            first_field, first_source = field, source
        problems.append(f"{field} (from {source}): {error['msg']}")
    return ConfigError(
        "Invalid configuration values: " + "; ".join(problems),
        source=first_source,
        field=first_field,
    )


__all__ = ["ENV_PREFIX", "resolve_with_precedence", "flatten_for_env"]
