"""
artifact-resolver — metadata reconciliation.

Purpose
- Persist resolved catalog records one at a time and report every outcome.

Functional requirements
- Defaults (``stream="released"``, ``source="custom"``) are applied before saving.
- One record failing never blocks its siblings; each record either saves fully
  or is reported as one failed result.
- Results preserve input order; a combined ``RecordPersistError`` whose message
  is the newline-joined failure messages is returned when anything failed.
- Listing groups stored records by source: registered sources in registration
  order, then unknown sources, then the environment's default source.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from artifact_resolver.domain.errors import RecordPersistError
from artifact_resolver.domain.models import CatalogRecord, MetadataFilter, ReconcileResult
from artifact_resolver.resolution.registry import presentation_order

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from artifact_resolver.persistence.catalog_store import CatalogStore


@dataclass(frozen=True, slots=True)
class ReconcileReport:
    """Per-record results for one batch plus the combined error, if any."""

    results: tuple[ReconcileResult, ...]
    error: RecordPersistError | None = None

    @property
    def saved(self) -> int:
        return sum(1 for result in self.results if result.ok)

    @property
    def failed(self) -> int:
        return len(self.results) - self.saved

    @property
    def messages(self) -> tuple[str, ...]:
        return tuple(result.error for result in self.results if result.error is not None)


def combine_failures(messages: Sequence[str]) -> RecordPersistError | None:
    """Fold failure messages into one error, or ``None`` when there are none."""

    if not messages:
        return None
    return RecordPersistError(messages)


class MetadataReconciler:
    """Upsert catalog records against a ``CatalogStore`` with per-record isolation."""

    def __init__(self, store: CatalogStore, *, logger: Any | None = None) -> None:
        self._store = store
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def reconcile(self, records: Iterable[CatalogRecord]) -> ReconcileReport:
        results = tuple(self._save_one(record) for record in records)
        messages = tuple(result.error for result in results if result.error is not None)
        return ReconcileReport(results=results, error=combine_failures(messages))

    def list(
        self,
        metadata_filter: MetadataFilter | None = None,
        *,
        registered: Sequence[str] = (),
        default_source: str | None = None,
    ) -> list[CatalogRecord]:
        found = self._store.find_metadata(metadata_filter or MetadataFilter())
        ordered: list[CatalogRecord] = []
        for source in presentation_order(
            found, registered=registered, default_source=default_source
        ):
            ordered.extend(found[source])
        return ordered

    def _save_one(self, record: CatalogRecord) -> ReconcileResult:
        canonical = record.with_defaults()
        try:
            self._store.save_metadata(canonical)
        except Exception as exc:  # noqa: BLE001 - each failure becomes one result
            message = str(exc) or type(exc).__name__
            self._logger.warning(
                "catalog_record_save_failed",
                artifact_id=canonical.artifact_id,
                source=canonical.source,
                region=canonical.region,
                error=message,
            )
            return ReconcileResult(record=canonical, error=message)
        return ReconcileResult(record=canonical)


__all__ = ["MetadataReconciler", "ReconcileReport", "combine_failures"]
