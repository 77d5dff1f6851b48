"""Shared deterministic builders and collaborator fakes for unit tests."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from pathlib import Path

from artifact_resolver.domain.errors import SourceUnavailableError
from artifact_resolver.domain.models import (
    BuiltArtifact,
    CatalogRecord,
    CloudSpec,
    ContentType,
    DataSource,
    LookupConstraint,
    MetadataFilter,
    ToolBinary,
    Version,
)
from artifact_resolver.providers.base import ProviderConfig
from artifact_resolver.utils.hashing import sha256_bytes

DEFAULT_ARCHES: tuple[str, ...] = ("amd64", "arm64")


def make_source(
    source_id: str,
    *,
    priority: int = 0,
    content: ContentType = ContentType.IMAGE_IDS,
) -> DataSource:
    return DataSource(
        id=source_id,
        url=f"https://{source_id}.example.test/streams",
        priority=priority,
        description=f"{source_id} metadata",
        content=content,
    )


def make_tools_source(source_id: str, *, priority: int = 0) -> DataSource:
    return make_source(source_id, priority=priority, content=ContentType.AGENT_TOOLS)


def make_image_item(
    artifact_id: str,
    *,
    region: str = "us-east-1",
    endpoint: str = "https://ec2.us-east-1.example.test",
    series: str = "jammy",
    arch: str = "amd64",
    virt: str = "hvm",
    root_store: str = "ebs",
    stream: str = "",
    **extra: object,
) -> dict[str, object]:
    item: dict[str, object] = {
        "id": artifact_id,
        "region": region,
        "endpoint": endpoint,
        "series": series,
        "arch": arch,
        "virt": virt,
        "root_store": root_store,
    }
    if stream:
        item["stream"] = stream
    item.update(extra)
    return item


def make_record(
    artifact_id: str,
    *,
    region: str = "us-east-1",
    series: str = "jammy",
    arch: str = "amd64",
    virt_type: str = "hvm",
    root_storage_type: str = "ebs",
    source: str = "",
    stream: str = "",
    root_storage_size: int | None = None,
) -> CatalogRecord:
    return CatalogRecord(
        artifact_id=artifact_id,
        region=region,
        series=series,
        arch=arch,
        virt_type=virt_type,
        root_storage_type=root_storage_type,
        root_storage_size=root_storage_size,
        source=source,
        stream=stream,
    )


def make_tool(binary: str, *, size: int = 1024, location: str = "") -> ToolBinary:
    number, series, arch = binary.rsplit("-", 2)
    return ToolBinary(
        version=Version.parse(number),
        series=series,
        arch=arch,
        size=size,
        sha256=sha256_bytes(binary.encode("utf-8")),
        storage_location=location or f"tools/releases/agent-{binary}.tgz",
    )


def make_tool_item(binary: str, *, size: int = 1024) -> dict[str, object]:
    tool = make_tool(binary, size=size)
    return {
        "binary": binary,
        "size": tool.size,
        "sha256": tool.sha256,
        "path": tool.storage_location,
    }


def make_provider_config(
    *,
    development: bool = False,
    agent_version: str = "",
    image_stream: str = "",
    default_series: str = "jammy",
) -> ProviderConfig:
    return ProviderConfig(
        name="test-env",
        type="fake",
        default_series=default_series,
        image_stream=image_stream,
        development=development,
        agent_version=Version.parse(agent_version) if agent_version else None,
    )


class FakeProvider:
    """Provider without region capability."""

    def __init__(
        self,
        *,
        config: ProviderConfig | None = None,
        supported: Sequence[str] = DEFAULT_ARCHES,
        image_sources: Sequence[DataSource] = (),
        tools_sources: Sequence[DataSource] = (),
    ) -> None:
        self._config = config if config is not None else make_provider_config()
        self._supported = tuple(supported)
        self._image_sources = tuple(image_sources)
        self._tools_sources = tuple(tools_sources)

    def config(self) -> ProviderConfig:
        return self._config

    def supported_architectures(self) -> tuple[str, ...]:
        return self._supported

    def image_data_sources(self) -> tuple[DataSource, ...]:
        return self._image_sources

    def registered_image_sources(self) -> tuple[DataSource, ...]:
        return self._image_sources

    def tools_data_sources(self) -> tuple[DataSource, ...]:
        return self._tools_sources


class FakeRegionalProvider(FakeProvider):
    """Provider reporting a fixed cloud spec, or raising ``region_error``."""

    def __init__(
        self,
        *,
        cloud_spec: CloudSpec | None = None,
        region_error: Exception | None = None,
        **kwargs: object,
    ) -> None:
        super().__init__(**kwargs)  # type: ignore[arg-type]
        self._cloud_spec = cloud_spec or CloudSpec(
            region="us-east-1", endpoint="https://ec2.us-east-1.example.test"
        )
        self._region_error = region_error

    def region(self) -> CloudSpec:
        if self._region_error is not None:
            raise self._region_error
        return self._cloud_spec


class FakeTransport:
    """Transport serving canned items per source id; unknown ids are unreachable."""

    def __init__(
        self, documents: Mapping[str, Sequence[Mapping[str, object]] | Exception]
    ) -> None:
        self._documents = dict(documents)
        self.calls: list[tuple[str, LookupConstraint]] = []

    def fetch(
        self, source: DataSource, constraint: LookupConstraint
    ) -> list[Mapping[str, object]]:
        self.calls.append((source.id, constraint))
        document = self._documents.get(source.id)
        if document is None:
            raise SourceUnavailableError(source.id, "connection refused")
        if isinstance(document, Exception):
            raise document
        return list(document)


class MemoryCatalogStore:
    """In-memory ``CatalogStore`` with identity-key upsert and optional failures."""

    def __init__(self, *, fail_when: Callable[[CatalogRecord], str | None] | None = None) -> None:
        self._records: dict[tuple[str, ...], CatalogRecord] = {}
        self._fail_when = fail_when
        self.save_calls = 0

    def save_metadata(self, record: CatalogRecord) -> None:
        self.save_calls += 1
        if self._fail_when is not None:
            message = self._fail_when(record)
            if message is not None:
                raise RuntimeError(message)
        self._records[record.identity] = record

    def find_metadata(self, metadata_filter: MetadataFilter) -> dict[str, list[CatalogRecord]]:
        grouped: dict[str, list[CatalogRecord]] = {}
        for record in self._records.values():
            if metadata_filter.matches(record):
                grouped.setdefault(record.source, []).append(record)
        return grouped

    def all(self) -> list[CatalogRecord]:
        return list(self._records.values())


class FakeBuildTool:
    """Build tool that writes a small tarball, or raises ``error``."""

    def __init__(self, output_dir: Path, *, error: Exception | None = None) -> None:
        self._output_dir = output_dir
        self._error = error
        self.requested: list[Version | None] = []

    def build_tarball(self, force_version: Version | None) -> BuiltArtifact:
        self.requested.append(force_version)
        if self._error is not None:
            raise self._error
        assert force_version is not None
        self._output_dir.mkdir(parents=True, exist_ok=True)
        payload = f"agent {force_version}".encode()
        path = self._output_dir / f"agent-{force_version}.tgz"
        path.write_bytes(payload)
        return BuiltArtifact(
            version=force_version,
            path=str(path),
            storage_name=path.name,
            size=len(payload),
            sha256=sha256_bytes(payload),
        )


def sources_ids(sources: Iterable[DataSource]) -> list[str]:
    return [source.id for source in sources]


class RecordingLogger:
    """Structlog-compatible logger capturing ``(level, event, fields)`` tuples."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict[str, object]]] = []

    def _record(self, level: str, event: str, **fields: object) -> None:
        self.events.append((level, event, fields))

    def debug(self, event: str, **fields: object) -> None:
        self._record("debug", event, **fields)

    def info(self, event: str, **fields: object) -> None:
        self._record("info", event, **fields)

    def warning(self, event: str, **fields: object) -> None:
        self._record("warning", event, **fields)

    def error(self, event: str, **fields: object) -> None:
        self._record("error", event, **fields)

    def named(self, event: str) -> list[tuple[str, str, dict[str, object]]]:
        return [entry for entry in self.events if entry[1] == event]


__all__ = [
    "DEFAULT_ARCHES",
    "FakeBuildTool",
    "FakeProvider",
    "FakeRegionalProvider",
    "FakeTransport",
    "MemoryCatalogStore",
    "RecordingLogger",
    "make_image_item",
    "make_provider_config",
    "make_record",
    "make_source",
    "make_tool",
    "make_tool_item",
    "make_tools_source",
    "sources_ids",
]
