"""
artifact-resolver — image metadata refresh and listing service.

Purpose
- Refresh the catalog from the provider's published image data sources.
- Expose listing and bulk save over the persistent catalog.

Functional requirements
- Scope is resolved before any source is visited or the store is touched; a
  provider without region capability aborts the refresh.
- Per-source failures are logged and skipped; only per-record persistence
  failures surface, as one combined error.
- Each source batch is reconciled in visiting order so a later source's
  identity-key collision overwrites an earlier one.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from artifact_resolver.constants import DEFAULT_IMAGE_SOURCE_ID
from artifact_resolver.domain.models import (
    CatalogRecord,
    FetchOutcome,
    LookupConstraint,
    MetadataFilter,
    ReconcileResult,
)
from artifact_resolver.observability.logging import correlation_scope
from artifact_resolver.reconciliation.reconciler import MetadataReconciler, combine_failures
from artifact_resolver.resolution.aggregator import SourceAggregator
from artifact_resolver.resolution.cloud_spec import CloudSpecFilter
from artifact_resolver.resolution.fetcher import CatalogFetcher

if TYPE_CHECKING:
    from artifact_resolver.domain.errors import RecordPersistError
    from artifact_resolver.persistence.catalog_store import CatalogStore
    from artifact_resolver.providers.base import Provider
    from artifact_resolver.resolution.transports import Transport


@dataclass(frozen=True, slots=True)
class RefreshReport:
    """What one refresh visited, what it saved, and the combined persistence error."""

    outcomes: tuple[FetchOutcome, ...] = ()
    results: tuple[ReconcileResult, ...] = ()
    error: RecordPersistError | None = None

    @property
    def saved(self) -> int:
        return sum(1 for result in self.results if result.ok)

    @property
    def failed_sources(self) -> tuple[FetchOutcome, ...]:
        return tuple(outcome for outcome in self.outcomes if not outcome.ok)


class ImageMetadataService:
    """Application service for the image-metadata catalog."""

    def __init__(
        self,
        provider: Provider,
        store: CatalogStore,
        *,
        transport: Transport,
        cloud_spec_filter: CloudSpecFilter | None = None,
        default_source_id: str | None = DEFAULT_IMAGE_SOURCE_ID,
        logger: Any | None = None,
    ) -> None:
        self._provider = provider
        self._default_source_id = default_source_id
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._cloud_spec_filter = cloud_spec_filter or CloudSpecFilter(logger=self._logger)
        self._aggregator: SourceAggregator[CatalogRecord] = SourceAggregator(
            CatalogFetcher(transport, logger=self._logger), logger=self._logger
        )
        self._reconciler = MetadataReconciler(store, logger=self._logger)

    def refresh(self) -> RefreshReport:
        """Run scope resolution, aggregation, and reconciliation for images."""

        with correlation_scope(refresh_id=uuid.uuid4().hex):
            cloud_spec = self._cloud_spec_filter.resolve(self._provider, require_scope=True)
            constraint = LookupConstraint(
                cloud_spec=cloud_spec,
                stream=self._provider.config().image_stream,
            )
            sources = tuple(self._provider.image_data_sources())
            self._logger.info(
                "image_metadata_refresh_started",
                region=cloud_spec.region if cloud_spec is not None else "",
                source_count=len(sources),
            )

            aggregation = self._aggregator.aggregate(sources, constraint)
            results: list[ReconcileResult] = []
            messages: list[str] = []
            for source, batch in aggregation.batches():
                with correlation_scope(source_id=source.id):
                    report = self._reconciler.reconcile(batch)
                results.extend(report.results)
                messages.extend(report.messages)

            refreshed = RefreshReport(
                outcomes=aggregation.outcomes,
                results=tuple(results),
                error=combine_failures(messages),
            )
            self._logger.info(
                "image_metadata_refresh_finished",
                saved=refreshed.saved,
                failed_records=len(messages),
                failed_sources=len(refreshed.failed_sources),
            )
            return refreshed

    def refresh_published_metadata(self) -> None:
        """
        Refresh the catalog, raising only the combined persistence error.

        Scope failures raise ``ScopeUndeterminableError`` before anything is
        fetched or saved. Source failures never raise.
        """

        report = self.refresh()
        if report.error is not None:
            raise report.error

    def list_metadata(self, metadata_filter: MetadataFilter | None = None) -> list[CatalogRecord]:
        """Stored records grouped by source, custom sources before the default one."""

        registered = [source.id for source in self._provider.registered_image_sources()]
        return self._reconciler.list(
            metadata_filter,
            registered=registered,
            default_source=self._default_source_id,
        )

    def save_metadata(self, records: Iterable[CatalogRecord]) -> list[ReconcileResult]:
        """Persist caller-supplied records; failures are reported per record, never raised."""

        return list(self._reconciler.reconcile(records).results)


__all__ = ["ImageMetadataService", "RefreshReport"]
