"""
artifact-resolver — runtime config loader.

Purpose
- Build the effective config from four layers, later layers winning:
  built-in defaults, ``artifact-resolver.toml``, ``ARTIFACT_RESOLVER_*`` environment
  variables, and ``--set key=value`` CLI overrides.

Functional requirements
- Every scalar default is reachable from the environment as
  ``ARTIFACT_RESOLVER_<SECTION>_<KEY>``; the architecture list is comma separated
  and the build command is split like a shell command line.
- Data-source tables (``[[sources.images]]``) can only be set from the file.
- Relative catalog and log paths are resolved against the config file's directory.
- The result is validated twice: once after the file layer (so file mistakes are
  reported against the file) and once after all overrides.
"""

from __future__ import annotations

import json
import os
import shlex
import tomllib
from collections.abc import Callable, Iterator, Mapping
from pathlib import Path
from typing import Any, Final

from artifact_resolver.config.schema import (
    PATH_FIELDS,
    assert_valid_config,
    default_config,
    merge_config,
    redact_config,
)

DEFAULT_CONFIG_FILE: Final[str] = "artifact-resolver.toml"
ENV_PREFIX: Final[str] = "ARTIFACT_RESOLVER_"

_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_FALSY: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})

KeyPath = tuple[str, ...]
_Coercer = Callable[[str, str], object]


class ConfigLoadError(ValueError):
    """Raised when config cannot be read or an override cannot be coerced."""


def load_config(
    config_path: str | Path | None = None,
    *,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """
    Return the validated effective config.

    ``config_path=None`` means ``./artifact-resolver.toml`` if it exists; an explicit
    path that does not exist is an error.
    """

    path = (
        Path.cwd() / DEFAULT_CONFIG_FILE
        if config_path is None
        else Path(config_path).expanduser()
    ).resolve()
    from_file = assert_valid_config(
        merge_config(default_config(), _read_toml(path, required=config_path is not None))
    )

    coercers = _coercers_for(from_file)
    layered = merge_config(
        from_file, _env_layer(coercers, os.environ if environ is None else environ)
    )
    layered = merge_config(layered, _cli_layer(coercers, cli_overrides or {}))
    return assert_valid_config(normalize_paths(layered, base_dir=path.parent))


def normalize_paths(config: Mapping[str, object], *, base_dir: Path) -> dict[str, Any]:
    """Resolve every configured path field against ``base_dir``."""

    result = merge_config({}, config)
    for key_path in PATH_FIELDS:
        section = _lookup(result, key_path[:-1])
        if isinstance(section, dict) and isinstance(section.get(key_path[-1]), str):
            section[key_path[-1]] = _resolve_path(section[key_path[-1]], base_dir)
    return result


def dump_effective_config(config: Mapping[str, object]) -> str:
    """Compact, key-sorted JSON of the redacted config."""

    return json.dumps(
        redact_config(config), sort_keys=True, separators=(",", ":"), ensure_ascii=False
    )


# ---------------------------------------------------------------------------
# Layers
# ---------------------------------------------------------------------------


def _read_toml(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigLoadError(f"config file not found: {path}")
        return {}
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc


def _env_layer(
    coercers: Mapping[KeyPath, _Coercer], environ: Mapping[str, str]
) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for key_path, coerce in sorted(coercers.items()):
        env_name = env_var_name(key_path)
        if env_name in environ:
            _assign(layer, key_path, coerce(environ[env_name].strip(), env_name))
    return layer


def _cli_layer(
    coercers: Mapping[KeyPath, _Coercer], overrides: Mapping[str, object]
) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for dotted, value in sorted(overrides.items()):
        if value is None:
            continue
        key_path = tuple(part for part in dotted.split(".") if part)
        if not key_path:
            raise ConfigLoadError(f"invalid CLI override key {dotted!r}")
        coerce = coercers.get(key_path)
        if isinstance(value, str) and coerce is not None:
            value = coerce(value.strip(), f"override {dotted}")
        _assign(layer, key_path, value)
    return layer


def env_var_name(key_path: KeyPath) -> str:
    return ENV_PREFIX + "_".join(part.upper() for part in key_path)


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------


def _coercers_for(config: Mapping[str, object]) -> dict[KeyPath, _Coercer]:
    """Pick a text coercer for every overridable key, based on its current value."""

    coercers: dict[KeyPath, _Coercer] = {
        ("provider", "supported_architectures"): _as_csv,
        ("build", "command"): _as_argv,
    }
    for key_path, value in _leaves(config):
        if isinstance(value, bool):
            coercers.setdefault(key_path, _as_bool)
        elif isinstance(value, int):
            coercers.setdefault(key_path, _as_int)
        elif isinstance(value, str):
            coercers.setdefault(key_path, _as_str)
    return coercers


def _as_str(text: str, origin: str) -> object:
    del origin
    return text


def _as_csv(text: str, origin: str) -> object:
    del origin
    return [item.strip() for item in text.split(",") if item.strip()]


def _as_argv(text: str, origin: str) -> object:
    try:
        return shlex.split(text)
    except ValueError as exc:
        raise ConfigLoadError(f"{origin} must be a shell-style command line") from exc


def _as_int(text: str, origin: str) -> object:
    try:
        return int(text)
    except ValueError as exc:
        raise ConfigLoadError(f"{origin} must be an integer, got {text!r}") from exc


def _as_bool(text: str, origin: str) -> object:
    lowered = text.lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ConfigLoadError(f"{origin} must be a boolean (true/false/1/0/yes/no/on/off)")


# ---------------------------------------------------------------------------
# Nested mapping helpers
# ---------------------------------------------------------------------------


def _leaves(
    payload: Mapping[str, object], prefix: KeyPath = ()
) -> Iterator[tuple[KeyPath, object]]:
    for key, value in payload.items():
        if isinstance(value, Mapping):
            yield from _leaves(value, (*prefix, key))
        else:
            yield (*prefix, key), value


def _lookup(payload: Mapping[str, object], key_path: KeyPath) -> object:
    node: object = payload
    for part in key_path:
        if not isinstance(node, Mapping) or part not in node:
            return None
        node = node[part]
    return node


def _assign(target: dict[str, Any], key_path: KeyPath, value: object) -> None:
    *parents, leaf = key_path
    for part in parents:
        child = target.get(part)
        if not isinstance(child, dict):
            child = target[part] = {}
        target = child
    target[leaf] = value


def _resolve_path(raw: str, base_dir: Path) -> str:
    candidate = Path(os.path.expandvars(raw)).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    return Path(os.path.normpath(candidate)).as_posix()


__all__ = [
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "ConfigLoadError",
    "dump_effective_config",
    "env_var_name",
    "load_config",
    "normalize_paths",
]
