"""Ordered data-source registry: custom sources first, the public default last."""

from __future__ import annotations

from typing import TYPE_CHECKING

from artifact_resolver.constants import DEFAULT_SOURCE_PRIORITY
from artifact_resolver.domain.models import ContentType, DataSource

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence


class DataSourceRegistryError(ValueError):
    """Raised when a registration conflicts with an existing source."""


class DataSourceRegistry:
    """
    Registration-ordered collection of data sources for one content type.

    Explicitly registered sources are visited in ``(priority, registration)``
    order. The environment's default source, when present, is always last.
    """

    def __init__(
        self,
        content: ContentType,
        *,
        default: DataSource | None = None,
    ) -> None:
        self._content = ContentType(content)
        self._custom: list[DataSource] = []
        self._default: DataSource | None = None
        if default is not None:
            self.set_default(default)

    @property
    def content(self) -> ContentType:
        return self._content

    @property
    def default(self) -> DataSource | None:
        return self._default

    def set_default(self, source: DataSource) -> None:
        self._check_content(source)
        if any(existing.id == source.id for existing in self._custom):
            raise DataSourceRegistryError(f"data source {source.id!r} is already registered")
        self._default = source

    def register(self, source: DataSource) -> None:
        self._check_content(source)
        taken = {existing.id for existing in self._custom}
        if self._default is not None:
            taken.add(self._default.id)
        if source.id in taken:
            raise DataSourceRegistryError(f"data source {source.id!r} is already registered")
        self._custom.append(source)

    def registered(self) -> tuple[DataSource, ...]:
        """Return custom sources in registration order, without the default."""

        return tuple(self._custom)

    def sources(self) -> tuple[DataSource, ...]:
        """Return sources in visiting order."""

        ordered = [
            source
            for _, source in sorted(
                enumerate(self._custom), key=lambda item: (item[1].priority, item[0])
            )
        ]
        if self._default is not None:
            ordered.append(self._default)
        return tuple(ordered)

    def _check_content(self, source: DataSource) -> None:
        if source.content is not self._content:
            raise DataSourceRegistryError(
                f"data source {source.id!r} serves {source.content.value}, "
                f"registry holds {self._content.value}"
            )


def presentation_order(
    found: Iterable[str],
    *,
    registered: Sequence[str],
    default_source: str | None,
) -> tuple[str, ...]:
    """
    Order source keys for listing.

    Registered custom sources come first in registration order, then sources the
    registry does not know about (sorted), and the default/public source last.
    """

    remaining = set(found)
    ordered: list[str] = []
    for source_id in registered:
        if source_id == default_source or source_id not in remaining:
            continue
        ordered.append(source_id)
        remaining.discard(source_id)
    tail_default = default_source is not None and default_source in remaining
    if tail_default:
        remaining.discard(default_source)
    ordered.extend(sorted(remaining))
    if tail_default and default_source is not None:
        ordered.append(default_source)
    return tuple(ordered)


def default_data_source(
    content: ContentType,
    *,
    source_id: str,
    url: str,
    description: str | None = None,
) -> DataSource:
    return DataSource(
        id=source_id,
        url=url,
        priority=DEFAULT_SOURCE_PRIORITY,
        description=description or source_id,
        content=content,
    )


__all__ = [
    "DataSourceRegistry",
    "DataSourceRegistryError",
    "default_data_source",
    "presentation_order",
]
