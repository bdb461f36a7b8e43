"""
recovery-readiness-sim: runtime config loader.

File: src/recovery_sim/config/loader.py
Last updated: 2026-10-19

Purpose
- Resolve the effective runtime config as a stack of layers: defaults, the TOML file,
  ``RSIM_`` environment variables and explicit dotted overrides, later layers winning.

Notes
- Environment variables are bound per ``section.key`` from the defaults table, plus the
  optional ``[policy]`` keys, so the set of recognised names never depends on the file.
- Only callers load config; engine code never reads files or the environment.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, Final

from recovery_sim.config.schema import (
    PATH_FIELDS,
    POLICY_BINDINGS,
    assert_valid_config,
    default_config,
    merge_config,
)

DEFAULT_CONFIG_FILE: Final[str] = "recovery_sim.toml"
ENV_PREFIX: Final[str] = "RSIM_"

_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_FALSY: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})


class ConfigLoadError(ValueError):
    """Raised when config cannot be loaded or overrides cannot be coerced."""


def _parse_bool(raw: str) -> bool:
    lowered = raw.lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ValueError(raw)


# value type -> (parser, description used in error messages)
_ENV_PARSERS: Final[dict[type, tuple[Callable[[str], object], str]]] = {
    bool: (_parse_bool, "a boolean (true/false/1/0/yes/no/on/off)"),
    int: (int, "an integer"),
    float: (float, "a number"),
    str: (str, "a string"),
}

EnvBinding = tuple[str, str, type]


def env_bindings() -> dict[str, EnvBinding]:
    """Map every recognised ``RSIM_<SECTION>_<KEY>`` name to its section, key and type."""

    table: dict[str, EnvBinding] = {}
    for section, values in default_config().items():
        for key, default in values.items():
            table[_env_name(section, key)] = (section, key, type(default))
    for key, value_type in POLICY_BINDINGS:
        table.setdefault(_env_name("policy", key), ("policy", key, value_type))
    return dict(sorted(table.items()))


def load_config(
    path: str | Path | None = None,
    *,
    overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Load effective config with deterministic precedence: overrides > env > file > defaults."""

    config_path = _resolve_config_path(path)
    layers = (
        _read_toml(config_path, required=path is not None),
        _env_layer(os.environ if environ is None else environ),
        _override_layer(overrides or {}),
    )

    effective: dict[str, Any] = dict(default_config())
    for layer in layers:
        effective = merge_config(effective, layer)
    effective = assert_valid_config(effective)
    return normalize_paths(effective, base_dir=config_path.parent)


def normalize_paths(config: Mapping[str, object], *, base_dir: Path) -> dict[str, Any]:
    """Anchor relative path fields at ``base_dir``; absolute paths are only normalized."""

    resolved = merge_config({}, config)
    for section, key in PATH_FIELDS:
        table = resolved.get(section)
        if isinstance(table, dict) and isinstance(table.get(key), str):
            table[key] = _anchor_path(table[key], base_dir)
    return resolved


def dump_effective_config(config: Mapping[str, object]) -> str:
    """Return deterministic JSON dump of the effective config."""

    return json.dumps(config, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _resolve_config_path(config_path: str | Path | None) -> Path:
    if config_path is None:
        return (Path.cwd() / DEFAULT_CONFIG_FILE).resolve()
    return Path(config_path).expanduser().resolve()


def _read_toml(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.is_file():
        if required:
            raise ConfigLoadError(f"config file not found: {path}")
        return {}
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc


def _env_layer(environ: Mapping[str, str]) -> dict[str, Any]:
    layer: dict[str, dict[str, object]] = {}
    for env_name, (section, key, value_type) in env_bindings().items():
        raw = environ.get(env_name)
        if raw is None:
            continue
        parser, description = _ENV_PARSERS[value_type]
        try:
            value = parser(raw.strip())
        except ValueError as exc:
            raise ConfigLoadError(
                f"{env_name}={raw!r}: {section}.{key} must be {description}"
            ) from exc
        layer.setdefault(section, {})[key] = value
    return layer


def _override_layer(overrides: Mapping[str, object]) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for dotted in sorted(overrides):
        parts = [part for part in dotted.split(".") if part]
        if not parts:
            raise ConfigLoadError(f"invalid override key {dotted!r}")
        cursor = layer
        for part in parts[:-1]:
            child = cursor.get(part)
            if not isinstance(child, dict):
                child = cursor[part] = {}
            cursor = child
        cursor[parts[-1]] = overrides[dotted]
    return layer


def _anchor_path(raw: str, base_dir: Path) -> str:
    candidate = Path(os.path.expandvars(raw)).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    return Path(os.path.normpath(candidate)).as_posix()


def _env_name(section: str, key: str) -> str:
    return f"{ENV_PREFIX}{section.upper()}_{key.upper()}"


__all__ = [
    "ConfigLoadError",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "dump_effective_config",
    "env_bindings",
    "load_config",
    "normalize_paths",
]
