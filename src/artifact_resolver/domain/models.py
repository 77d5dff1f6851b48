"""Frozen dataclass domain models for published-artifact resolution."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from enum import StrEnum
from functools import total_ordering
from typing import NoReturn

from artifact_resolver.constants import DEFAULT_SOURCE, DEFAULT_STREAM

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

_VERSION_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)(?:\.(\d+))?$")
_BINARY_RE = re.compile(r"^(?P<number>[\d.]+)-(?P<series>[^-]+)-(?P<arch>[^-]+)$")
_SHA256_RE = re.compile(r"^[0-9a-f]{64}$")


class ContentType(StrEnum):
    """Kinds of published catalog content a data source can serve."""

    IMAGE_IDS = "image-ids"
    AGENT_TOOLS = "content-download"


def _fail(model: str, message: str) -> NoReturn:
    raise ValueError(f"{model}: {message}")


def _as_str(value: object, model: str, field_name: str) -> str:
    if not isinstance(value, str):
        _fail(model, f"{field_name} must be a string, got {type(value).__name__}")
    if "\x00" in value:
        _fail(model, f"{field_name} must not contain NUL bytes")
    return value.strip()


def _as_non_empty_str(value: object, model: str, field_name: str) -> str:
    parsed = _as_str(value, model, field_name)
    if not parsed:
        _fail(model, f"{field_name} must not be empty")
    return parsed


def _as_str_set(values: Iterable[str], model: str, field_name: str) -> frozenset[str]:
    if isinstance(values, str):
        _fail(model, f"{field_name} must be a collection of strings, not a string")
    return frozenset(
        item for item in (_as_str(value, model, field_name) for value in values) if item
    )


def _as_non_negative_int(value: object, model: str, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        _fail(model, f"{field_name} must be an integer")
    if value < 0:
        _fail(model, f"{field_name} must be >= 0")
    return value


@dataclass(frozen=True, slots=True)
class CloudSpec:
    """Region and endpoint pair identifying one cloud placement."""

    region: str
    endpoint: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "region", _as_str(self.region, "CloudSpec", "region"))
        object.__setattr__(
            self,
            "endpoint",
            _as_str(self.endpoint, "CloudSpec", "endpoint").rstrip("/"),
        )

    def matches(self, region: str, endpoint: str) -> bool:
        return self.region == region.strip() and self.endpoint == endpoint.strip().rstrip("/")

    def __str__(self) -> str:
        return f"{self.region}@{self.endpoint}" if self.endpoint else self.region


@dataclass(frozen=True, slots=True)
class LookupConstraint:
    """
    Narrowing applied to records decoded from a data source.

    Empty ``series``/``arches`` and an empty ``stream`` match everything. When
    ``cloud_spec`` is ``None`` the lookup is unconstrained by region.
    """

    cloud_spec: CloudSpec | None = None
    series: frozenset[str] = frozenset()
    arches: frozenset[str] = frozenset()
    stream: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "series", _as_str_set(self.series, "LookupConstraint", "series")
        )
        object.__setattr__(
            self, "arches", _as_str_set(self.arches, "LookupConstraint", "arches")
        )
        object.__setattr__(self, "stream", _as_str(self.stream, "LookupConstraint", "stream"))

    @property
    def unconstrained(self) -> bool:
        return self.cloud_spec is None

    def accepts_placement(self, region: str, endpoint: str) -> bool:
        if self.cloud_spec is None:
            return True
        if not region.strip():
            return False
        return self.cloud_spec.matches(region, endpoint)

    def accepts_series(self, series: str) -> bool:
        return not self.series or series in self.series

    def accepts_arch(self, arch: str) -> bool:
        return not self.arches or arch in self.arches

    def accepts_stream(self, stream: str) -> bool:
        return not self.stream or (stream or DEFAULT_STREAM) == self.stream


@dataclass(frozen=True, slots=True)
class CatalogRecord:
    """One catalog entry; ``artifact_id`` is the value, everything else is identity."""

    artifact_id: str
    region: str = ""
    series: str = ""
    arch: str = ""
    virt_type: str = ""
    root_storage_type: str = ""
    root_storage_size: int | None = None
    source: str = ""
    stream: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "artifact_id",
            _as_non_empty_str(self.artifact_id, "CatalogRecord", "artifact_id"),
        )
        for name in ("region", "series", "arch", "virt_type", "root_storage_type", "source"):
            object.__setattr__(self, name, _as_str(getattr(self, name), "CatalogRecord", name))
        object.__setattr__(self, "stream", _as_str(self.stream, "CatalogRecord", "stream"))
        if self.root_storage_size is not None:
            object.__setattr__(
                self,
                "root_storage_size",
                _as_non_negative_int(
                    self.root_storage_size, "CatalogRecord", "root_storage_size"
                ),
            )

    @property
    def identity(self) -> tuple[str, str, str, str, str, str, str]:
        return (
            self.region,
            self.series,
            self.arch,
            self.virt_type,
            self.root_storage_type,
            self.source,
            self.stream,
        )

    def with_source(self, source: str) -> CatalogRecord:
        return replace(self, source=source)

    def with_defaults(self) -> CatalogRecord:
        """Return a copy with ``stream``/``source`` defaulted when unset."""

        return replace(
            self,
            stream=self.stream or DEFAULT_STREAM,
            source=self.source or DEFAULT_SOURCE,
        )

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "artifact_id": self.artifact_id,
            "region": self.region,
            "series": self.series,
            "arch": self.arch,
            "virt_type": self.virt_type,
            "root_storage_type": self.root_storage_type,
            "root_storage_size": self.root_storage_size,
            "source": self.source,
            "stream": self.stream,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> CatalogRecord:
        size = payload.get("root_storage_size")
        return cls(
            artifact_id=_as_non_empty_str(
                payload.get("artifact_id"), "CatalogRecord", "artifact_id"
            ),
            region=_as_str(payload.get("region", ""), "CatalogRecord", "region"),
            series=_as_str(payload.get("series", ""), "CatalogRecord", "series"),
            arch=_as_str(payload.get("arch", ""), "CatalogRecord", "arch"),
            virt_type=_as_str(payload.get("virt_type", ""), "CatalogRecord", "virt_type"),
            root_storage_type=_as_str(
                payload.get("root_storage_type", ""), "CatalogRecord", "root_storage_type"
            ),
            root_storage_size=None
            if size is None
            else _as_non_negative_int(size, "CatalogRecord", "root_storage_size"),
            source=_as_str(payload.get("source", ""), "CatalogRecord", "source"),
            stream=_as_str(payload.get("stream", ""), "CatalogRecord", "stream"),
        )


@dataclass(frozen=True, slots=True)
class MetadataFilter:
    """Store query; empty fields match everything."""

    region: str = ""
    series: tuple[str, ...] = ()
    arches: tuple[str, ...] = ()
    stream: str = ""
    virt_type: str = ""
    root_storage_type: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "series", tuple(sorted(_as_str_set(self.series, "MetadataFilter", "series")))
        )
        object.__setattr__(
            self, "arches", tuple(sorted(_as_str_set(self.arches, "MetadataFilter", "arches")))
        )

    def matches(self, record: CatalogRecord) -> bool:
        if self.region and record.region != self.region:
            return False
        if self.series and record.series not in self.series:
            return False
        if self.arches and record.arch not in self.arches:
            return False
        if self.stream and record.stream != self.stream:
            return False
        if self.virt_type and record.virt_type != self.virt_type:
            return False
        return not self.root_storage_type or record.root_storage_type == self.root_storage_type


@dataclass(frozen=True, slots=True)
class DataSource:
    """
    Named, orderable origin of published catalog documents.

    ``url`` carries the base location documents are fetched from. It is set per
    source rather than read from any process-wide default.
    """

    id: str
    url: str
    priority: int = 0
    description: str = ""
    content: ContentType = ContentType.IMAGE_IDS

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", _as_non_empty_str(self.id, "DataSource", "id"))
        object.__setattr__(self, "url", _as_non_empty_str(self.url, "DataSource", "url"))
        if isinstance(self.priority, bool) or not isinstance(self.priority, int):
            _fail("DataSource", "priority must be an integer")
        description = _as_str(self.description, "DataSource", "description")
        object.__setattr__(self, "description", description or self.id)
        object.__setattr__(self, "content", ContentType(self.content))


@total_ordering
@dataclass(frozen=True, slots=True)
class Version:
    """Agent version number ``major.minor.patch[.build]``."""

    major: int
    minor: int
    patch: int = 0
    build: int = 0

    def __post_init__(self) -> None:
        for name in ("major", "minor", "patch", "build"):
            _as_non_negative_int(getattr(self, name), "Version", name)

    @classmethod
    def parse(cls, text: str) -> Version:
        match = _VERSION_RE.match(_as_str(text, "Version", "text"))
        if match is None:
            _fail("Version", f"invalid version {text!r}")
        major, minor, patch, build = match.groups()
        return cls(int(major), int(minor), int(patch), int(build or 0))

    @property
    def key(self) -> tuple[int, int, int, int]:
        return (self.major, self.minor, self.patch, self.build)

    @property
    def is_dev(self) -> bool:
        """Odd minor numbers and non-zero builds denote development builds."""

        return self.minor % 2 == 1 or self.build > 0

    def next_build(self) -> Version:
        return replace(self, build=self.build + 1)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.key < other.key

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        return f"{base}.{self.build}" if self.build else base


def parse_binary(text: str) -> tuple[Version, str, str]:
    """Parse ``1.19.0-trusty-arm64`` into ``(version, series, arch)``."""

    match = _BINARY_RE.match(_as_str(text, "Binary", "text"))
    if match is None:
        _fail("Binary", f"invalid binary version {text!r}")
    return Version.parse(match["number"]), match["series"], match["arch"]


@dataclass(frozen=True, slots=True)
class ToolBinary:
    """One agent executable artifact."""

    version: Version
    series: str
    arch: str
    size: int = 0
    sha256: str = ""
    storage_location: str = ""
    source: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.version, Version):
            _fail("ToolBinary", "version must be a Version")
        object.__setattr__(self, "series", _as_non_empty_str(self.series, "ToolBinary", "series"))
        object.__setattr__(self, "arch", _as_non_empty_str(self.arch, "ToolBinary", "arch"))
        _as_non_negative_int(self.size, "ToolBinary", "size")
        digest = _as_str(self.sha256, "ToolBinary", "sha256").lower()
        if digest and _SHA256_RE.fullmatch(digest) is None:
            _fail("ToolBinary", "sha256 must be a 64-character hex digest")
        object.__setattr__(self, "sha256", digest)

    @property
    def binary(self) -> str:
        return f"{self.version}-{self.series}-{self.arch}"

    def with_source(self, source: str) -> ToolBinary:
        return replace(self, source=source)

    def with_location(self, location: str) -> ToolBinary:
        return replace(self, storage_location=location)


@dataclass(frozen=True, slots=True)
class VersionConstraint:
    """Filter for tool binaries; ``-1`` is a major/minor wildcard."""

    major_version: int = -1
    minor_version: int = -1
    series: str = ""
    arch: str | None = None

    def __post_init__(self) -> None:
        for name in ("major_version", "minor_version"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < -1:
                _fail("VersionConstraint", f"{name} must be an integer >= -1")
        object.__setattr__(self, "series", _as_str(self.series, "VersionConstraint", "series"))
        if self.arch is not None:
            arch = _as_str(self.arch, "VersionConstraint", "arch")
            object.__setattr__(self, "arch", arch or None)

    def matches(self, tool: ToolBinary) -> bool:
        if self.major_version != -1 and tool.version.major != self.major_version:
            return False
        if self.minor_version != -1 and tool.version.minor != self.minor_version:
            return False
        if self.series and tool.series != self.series:
            return False
        return self.arch is None or tool.arch == self.arch


@dataclass(frozen=True, slots=True)
class BuiltArtifact:
    """Tarball produced by the build tool, before upload."""

    version: Version
    path: str
    storage_name: str
    size: int
    sha256: str
    series: str = ""
    arch: str = ""


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    """Outcome of persisting one record; ``error`` is ``None`` on success."""

    record: CatalogRecord
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class FetchOutcome:
    """Per-source summary kept for observability."""

    source: DataSource
    record_count: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


__all__ = [
    "BuiltArtifact",
    "CatalogRecord",
    "CloudSpec",
    "ContentType",
    "DataSource",
    "FetchOutcome",
    "JSONValue",
    "LookupConstraint",
    "MetadataFilter",
    "ReconcileResult",
    "ToolBinary",
    "Version",
    "VersionConstraint",
    "parse_binary",
]
