"""
artifact-resolver — configuration schema and validation.

Purpose
- Declare every config section as a table of field rules and validate payloads
  against it, reporting each problem with its dotted path.

Functional requirements
- Unknown keys are rejected; keys that look like secrets get a dedicated message
  because credentials must never be stored in ``artifact-resolver.toml``.
- ``meta.schema_version`` mismatches carry upgrade guidance.
- The public catalog base URLs are explicit fields; there is no process-wide
  override of where published documents are fetched from.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, TypedDict

from artifact_resolver.constants import (
    BINARY_STORE_DIR,
    CONFIG_SCHEMA_VERSION,
    LOG_DIR,
    STATE_DB_PATH,
)

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION

# Config paths resolved relative to the config file location.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("catalog", "state_db"),
    ("catalog", "binary_store"),
    ("observability", "log_dir"),
)

ARCHITECTURES: Final[tuple[str, ...]] = (
    "amd64",
    "arm64",
    "armhf",
    "i386",
    "ppc64",
    "ppc64el",
    "riscv64",
    "s390x",
)
LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")

_SECRET_WORDS: Final[frozenset[str]] = frozenset(
    {"secret", "token", "password", "passwd", "apikey", "credential", "credentials", "auth"}
)
_WORD_SPLIT = re.compile(r"[^a-z0-9]+")
_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")


class MetaConfig(TypedDict):
    schema_version: int


class CatalogConfig(TypedDict):
    state_db: str
    binary_store: str


class ProviderSection(TypedDict):
    name: str
    type: str
    region: str
    endpoint: str
    supported_architectures: list[str]
    agent_version: str
    development: bool
    default_series: str
    image_stream: str


class SourceEntry(TypedDict, total=False):
    id: str
    url: str
    priority: int
    description: str


class SourcesConfig(TypedDict):
    default_image_url: str
    default_tools_url: str
    images: list[SourceEntry]
    tools: list[SourceEntry]


class BuildConfig(TypedDict):
    command: list[str]
    timeout_seconds: int


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_dir: str
    log_to_stdout: bool
    redact_secrets: bool


class ResolverConfig(TypedDict):
    meta: MetaConfig
    catalog: CatalogConfig
    provider: ProviderSection
    sources: SourcesConfig
    build: BuildConfig
    observability: ObservabilityConfig


DEFAULT_CONFIG: Final[ResolverConfig] = {
    "meta": {"schema_version": ConfigSchemaVersion},
    "catalog": {
        "state_db": STATE_DB_PATH.as_posix(),
        "binary_store": BINARY_STORE_DIR.as_posix(),
    },
    "provider": {
        "name": "local",
        "type": "manual",
        "region": "",
        "endpoint": "",
        "supported_architectures": ["amd64", "arm64"],
        "agent_version": "",
        "development": False,
        "default_series": "jammy",
        "image_stream": "released",
    },
    "sources": {
        "default_image_url": "https://cloud-images.ubuntu.com/releases",
        "default_tools_url": "https://streams.canonical.com/juju/tools",
        "images": [],
        "tools": [],
    },
    "build": {"command": [], "timeout_seconds": 900},
    "observability": {
        "log_level": "INFO",
        "log_dir": f"{LOG_DIR.as_posix()}/",
        "log_to_stdout": False,
        "redact_secrets": True,
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """One validation problem at a dotted config path."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised by ``assert_valid_config``; ``issues`` holds every problem found."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered or 'unknown validation failure'}")


# ---------------------------------------------------------------------------
# Field rules
# ---------------------------------------------------------------------------

_Kind = Literal["str", "path", "bool", "int", "enum", "str_list"]
_OMIT: Final = object()


@dataclass(frozen=True, slots=True)
class _Rule:
    kind: _Kind
    required: bool = False
    default: object = _OMIT
    allow_empty: bool = False
    minimum: int | None = None
    choices: tuple[str, ...] = ()
    pattern: re.Pattern[str] | None = None
    pattern_message: str = ""


_Section = Mapping[str, _Rule]

_TEXT = _Rule("str", default="", allow_empty=True)

_SOURCE_ENTRY: Final[_Section] = {
    "id": _Rule(
        "str",
        required=True,
        pattern=re.compile(r"^[A-Za-z0-9][A-Za-z0-9 ._:-]*$"),
        pattern_message="must start with a letter or digit",
    ),
    "url": _Rule("path", required=True),
    "priority": _Rule("int", default=0, minimum=0),
    "description": _Rule("str", allow_empty=True),
}

_SECTIONS: Final[Mapping[str, _Section]] = {
    "meta": {"schema_version": _Rule("int", required=True, minimum=1)},
    "catalog": {
        "state_db": _Rule("path", required=True),
        "binary_store": _Rule("path", required=True),
    },
    "provider": {
        "name": _Rule("str", required=True),
        "type": _Rule("str", required=True),
        "region": _TEXT,
        "endpoint": _TEXT,
        "default_series": _TEXT,
        "image_stream": _TEXT,
        "agent_version": _Rule(
            "str",
            default="",
            allow_empty=True,
            pattern=re.compile(r"^\d+\.\d+\.\d+(?:\.\d+)?$"),
            pattern_message="must be a version like 1.18.0 or 1.19.0.1",
        ),
        "development": _Rule("bool", default=False),
        "supported_architectures": _Rule("str_list", required=True, choices=ARCHITECTURES),
    },
    "sources": {
        "default_image_url": _TEXT,
        "default_tools_url": _TEXT,
    },
    "build": {
        "command": _Rule("str_list", default=(), allow_empty=True),
        "timeout_seconds": _Rule("int", default=900, minimum=1),
    },
    "observability": {
        "log_level": _Rule("enum", required=True, choices=LOG_LEVELS),
        "log_dir": _Rule("path", required=True),
        "log_to_stdout": _Rule("bool", default=False),
        "redact_secrets": _Rule("bool", default=True),
    },
}
_SOURCE_LISTS: Final[tuple[str, ...]] = ("images", "tools")


class _Invalid(Exception):
    """Internal signal: the value was rejected and the issue already recorded."""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def default_config() -> ResolverConfig:
    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade artifact-resolver.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade the artifact-resolver runtime"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deep-merge ``overlay`` onto a copy of ``base``; neither input is mutated."""

    merged: dict[str, Any] = _plain_copy(base)
    for key, value in overlay.items():
        current = merged.get(key)
        if isinstance(value, Mapping) and isinstance(current, dict):
            merged[key] = merge_config(current, value)
        else:
            merged[key] = _plain_copy(value)
    return merged


def validate_config(config: object) -> ConfigValidationResult:
    issues: list[ConfigValidationIssue] = []
    if not isinstance(config, Mapping):
        issues.append(
            ConfigValidationIssue("<root>", f"expected object, got {type(config).__name__}")
        )
        return ConfigValidationResult(config=None, issues=tuple(issues))

    _check_keys(config, set(_SECTIONS), required=set(_SECTIONS), path="", issues=issues)
    normalized: dict[str, Any] = {}
    for name, rules in _SECTIONS.items():
        raw = config.get(name)
        if raw is None:
            continue
        if not isinstance(raw, Mapping):
            issues.append(
                ConfigValidationIssue(name, f"expected object, got {type(raw).__name__}")
            )
            continue
        extra = set(_SOURCE_LISTS) if name == "sources" else set()
        normalized[name] = _check_section(raw, rules, name, issues, extra_keys=extra)

    _check_meta(normalized.get("meta", {}), issues)
    _check_provider(normalized.get("provider", {}), issues)
    sources = config.get("sources")
    if isinstance(sources, Mapping) and "sources" in normalized:
        for list_name in _SOURCE_LISTS:
            normalized["sources"][list_name] = _check_source_list(
                sources.get(list_name, []), f"sources.{list_name}", issues
            )

    if issues:
        return ConfigValidationResult(config=None, issues=tuple(issues))
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: object) -> dict[str, Any]:
    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def redact_config(config: object) -> dict[str, Any]:
    """Copy of ``config`` with secret-looking keys replaced by ``<redacted>``."""

    if not isinstance(config, Mapping):
        return {}
    redacted: dict[str, Any] = _redact(config)
    return redacted


# ---------------------------------------------------------------------------
# Section checks
# ---------------------------------------------------------------------------


def _check_section(
    payload: Mapping[str, object],
    rules: _Section,
    path: str,
    issues: list[ConfigValidationIssue],
    *,
    extra_keys: set[str] | None = None,
) -> dict[str, Any]:
    required = {key for key, rule in rules.items() if rule.required}
    _check_keys(payload, set(rules) | (extra_keys or set()), required, path, issues)

    out: dict[str, Any] = {}
    for key, rule in rules.items():
        if key in payload:
            value = payload[key]
        elif rule.default is not _OMIT:
            value = copy.deepcopy(rule.default)
        else:
            continue
        try:
            out[key] = _check_value(value, rule, f"{path}.{key}", issues)
        except _Invalid:
            continue
    return out


def _check_meta(meta: Mapping[str, object], issues: list[ConfigValidationIssue]) -> None:
    version = meta.get("schema_version")
    if isinstance(version, int) and version != ConfigSchemaVersion:
        issues.append(ConfigValidationIssue("meta.schema_version", migration_guidance(version)))


def _check_provider(provider: Mapping[str, object], issues: list[ConfigValidationIssue]) -> None:
    if provider.get("endpoint") and not provider.get("region"):
        issues.append(ConfigValidationIssue("provider.endpoint", "endpoint requires a region"))


def _check_source_list(
    raw: object, path: str, issues: list[ConfigValidationIssue]
) -> list[dict[str, Any]]:
    if not isinstance(raw, list):
        issues.append(ConfigValidationIssue(path, f"expected array, got {type(raw).__name__}"))
        return []
    entries: list[dict[str, Any]] = []
    seen: set[str] = set()
    for index, item in enumerate(raw):
        entry_path = f"{path}[{index}]"
        if not isinstance(item, Mapping):
            issues.append(
                ConfigValidationIssue(entry_path, f"expected object, got {type(item).__name__}")
            )
            continue
        entry = _check_section(item, _SOURCE_ENTRY, entry_path, issues)
        source_id = entry.get("id")
        if source_id in seen:
            issues.append(
                ConfigValidationIssue(f"{entry_path}.id", f"duplicate source id {source_id!r}")
            )
            continue
        if isinstance(source_id, str):
            seen.add(source_id)
        entries.append(entry)
    return entries


def _check_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    required: set[str],
    path: str,
    issues: list[ConfigValidationIssue],
) -> None:
    prefix = f"{path}." if path else ""
    for key in sorted(str(key) for key in payload):
        if key in allowed:
            continue
        message = (
            "embedded secret values are forbidden" if _is_secret_key(key) else "unknown field"
        )
        issues.append(ConfigValidationIssue(prefix + key, message))
    for key in sorted(required - set(payload)):
        issues.append(ConfigValidationIssue(prefix + key, "missing required field"))


def _check_value(
    value: object, rule: _Rule, path: str, issues: list[ConfigValidationIssue]
) -> object:
    def reject(message: str) -> _Invalid:
        issues.append(ConfigValidationIssue(path, message))
        return _Invalid()

    if rule.kind == "bool":
        if not isinstance(value, bool):
            raise reject(f"expected boolean, got {type(value).__name__}")
        return value

    if rule.kind == "int":
        if isinstance(value, bool) or not isinstance(value, int):
            raise reject(f"expected integer, got {type(value).__name__}")
        if rule.minimum is not None and value < rule.minimum:
            raise reject(f"must be >= {rule.minimum}")
        return value

    if rule.kind == "str_list":
        if not isinstance(value, (list, tuple)):
            raise reject(f"expected array, got {type(value).__name__}")
        item_rule = _Rule("enum" if rule.choices else "str", choices=rule.choices)
        items: list[str] = []
        for index, item in enumerate(value):
            try:
                checked = _check_value(item, item_rule, f"{path}[{index}]", issues)
            except _Invalid:
                continue
            if checked not in items:
                items.append(str(checked))
        if not value and not rule.allow_empty:
            raise reject("must not be empty")
        return items

    if not isinstance(value, str):
        raise reject(f"expected string, got {type(value).__name__}")
    text = value.strip()
    if not text and not rule.allow_empty:
        raise reject("must not be empty")
    if rule.kind == "path" and "\x00" in text:
        raise reject("must not contain NUL bytes")
    if rule.kind == "enum" and text not in rule.choices:
        expected = ", ".join(sorted(rule.choices))
        raise reject(f"invalid value {text!r}; expected one of: {expected}")
    if text and rule.pattern is not None and not rule.pattern.fullmatch(text):
        raise reject(rule.pattern_message)
    return text


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _is_secret_key(key: str) -> bool:
    words = _WORD_SPLIT.split(_CAMEL_BOUNDARY.sub(r"\1_\2", key.strip()).lower())
    return any(word in _SECRET_WORDS for word in words if word)


def _plain_copy(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(key): _plain_copy(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_plain_copy(item) for item in value]
    return copy.deepcopy(value)


def _redact(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {
            key: "<redacted>" if _is_secret_key(key) else _redact(item)
            for key, item in sorted(value.items())
        }
    if isinstance(value, (list, tuple)):
        return [_redact(item) for item in value]
    return value


__all__ = [
    "ARCHITECTURES",
    "DEFAULT_CONFIG",
    "LOG_LEVELS",
    "PATH_FIELDS",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "ResolverConfig",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "redact_config",
    "validate_config",
]
