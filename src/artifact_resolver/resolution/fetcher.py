"""Per-source fetchers: decode published entries and apply the lookup constraint."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import structlog

from artifact_resolver.domain.models import CatalogRecord, ToolBinary, Version, parse_binary
from artifact_resolver.domain.series import UnknownSeriesError, version_series

if TYPE_CHECKING:
    from artifact_resolver.domain.models import DataSource, LookupConstraint
    from artifact_resolver.resolution.transports import Transport


def _text(item: Mapping[str, object], *keys: str) -> str:
    for key in keys:
        value = item.get(key)
        if value is None:
            continue
        if not isinstance(value, str):
            raise TypeError(f"field {key!r} must be a string, got {type(value).__name__}")
        return value.strip()
    return ""


def _optional_int(item: Mapping[str, object], key: str) -> int | None:
    value = item.get(key)
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise TypeError(f"field {key!r} must be an integer")
    if isinstance(value, str):
        return int(value)
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if not isinstance(value, int):
        raise TypeError(f"field {key!r} must be an integer, got {type(value).__name__}")
    return value


def image_entry_series(item: Mapping[str, object]) -> str:
    """
    Return the series name of an image entry.

    Entries may carry ``series`` directly or a release ``version`` such as
    ``14.04`` which is translated through the series table.
    """

    series = _text(item, "series")
    if series:
        return series
    version = _text(item, "version")
    if not version:
        return ""
    return version_series(version)


def image_record(item: Mapping[str, object]) -> tuple[CatalogRecord, str]:
    """Convert one decoded image entry into a record and its endpoint."""

    record = CatalogRecord(
        artifact_id=_text(item, "id", "artifact_id"),
        region=_text(item, "region"),
        series=image_entry_series(item),
        arch=_text(item, "arch"),
        virt_type=_text(item, "virt", "virt_type"),
        root_storage_type=_text(item, "root_store", "root_storage_type"),
        root_storage_size=_optional_int(item, "root_size"),
        stream=_text(item, "stream"),
    )
    return record, _text(item, "endpoint")


def tool_binary(item: Mapping[str, object]) -> ToolBinary:
    """Convert one decoded tools entry into a ``ToolBinary``."""

    binary = _text(item, "binary")
    if binary:
        version, series, arch = parse_binary(binary)
    else:
        version = Version.parse(_text(item, "version"))
        series = _text(item, "series")
        arch = _text(item, "arch")
    return ToolBinary(
        version=version,
        series=series,
        arch=arch,
        size=_optional_int(item, "size") or 0,
        sha256=_text(item, "sha256"),
        storage_location=_text(item, "path"),
    )


class CatalogFetcher:
    """Fetch image records visible from one data source under a lookup constraint."""

    def __init__(self, transport: Transport, *, logger: Any | None = None) -> None:
        self._transport = transport
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def fetch(self, source: DataSource, constraint: LookupConstraint) -> list[CatalogRecord]:
        items = self._transport.fetch(source, constraint)
        records: list[CatalogRecord] = []
        for index, item in enumerate(items):
            try:
                record, endpoint = image_record(item)
            except (UnknownSeriesError, ValueError, TypeError) as exc:
                self._logger.warning(
                    "image_entry_skipped",
                    source=source.description,
                    index=index,
                    reason=str(exc),
                )
                continue

            if not constraint.accepts_placement(record.region, endpoint):
                continue
            if not constraint.accepts_series(record.series):
                continue
            if not constraint.accepts_arch(record.arch):
                continue
            if not constraint.accepts_stream(record.stream):
                continue
            records.append(record)
        return records


class ToolsFetcher:
    """Fetch tool binaries visible from one data source under a lookup constraint."""

    def __init__(self, transport: Transport, *, logger: Any | None = None) -> None:
        self._transport = transport
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def fetch(self, source: DataSource, constraint: LookupConstraint) -> list[ToolBinary]:
        items = self._transport.fetch(source, constraint)
        tools: list[ToolBinary] = []
        for index, item in enumerate(items):
            try:
                tool = tool_binary(item)
            except (ValueError, TypeError) as exc:
                self._logger.warning(
                    "tools_entry_skipped",
                    source=source.description,
                    index=index,
                    reason=str(exc),
                )
                continue
            if constraint.accepts_series(tool.series) and constraint.accepts_arch(tool.arch):
                tools.append(tool)
        self._logger.debug("tools_fetched", source=source.description, count=len(tools))
        return tools


__all__ = ["CatalogFetcher", "ToolsFetcher", "image_entry_series", "image_record", "tool_binary"]
