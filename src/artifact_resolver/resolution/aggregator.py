"""
artifact-resolver — multi-source aggregation.

Purpose
- Visit data sources strictly in order and merge what each one yields.

Functional requirements
- A source failing with ``SourceUnavailableError`` is logged and skipped; later
  sources are still visited and their records kept.
- Records are tagged with the id of the source that produced them.
- No deduplication happens here; identity collisions are resolved by the
  reconciler's upsert, where the later-visited source wins.

The loop is a fold over sources producing ``(records, outcomes)``; per-source
errors are accumulated as values, never used to leave the loop early.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import reduce
from typing import TYPE_CHECKING, Any, Generic, Protocol, Self, TypeVar

import structlog

from artifact_resolver.domain.errors import SourceUnavailableError
from artifact_resolver.domain.models import FetchOutcome

if TYPE_CHECKING:
    from collections.abc import Sequence

    from artifact_resolver.domain.models import DataSource, LookupConstraint


class _SourceTagged(Protocol):
    def with_source(self, source: str) -> Self: ...


RecordT = TypeVar("RecordT", bound=_SourceTagged)
RecordT_co = TypeVar("RecordT_co", bound=_SourceTagged, covariant=True)


class Fetcher(Protocol[RecordT_co]):
    def fetch(
        self, source: DataSource, constraint: LookupConstraint
    ) -> Sequence[RecordT_co]: ...


@dataclass(frozen=True, slots=True)
class Aggregation(Generic[RecordT]):
    """Merged records plus one outcome per visited source."""

    records: tuple[RecordT, ...] = ()
    outcomes: tuple[FetchOutcome, ...] = ()

    @property
    def errors(self) -> tuple[str, ...]:
        return tuple(outcome.error for outcome in self.outcomes if outcome.error is not None)

    def batches(self) -> tuple[tuple[DataSource, tuple[RecordT, ...]], ...]:
        """Split ``records`` back into per-source batches in visiting order."""

        batches: list[tuple[DataSource, tuple[RecordT, ...]]] = []
        offset = 0
        for outcome in self.outcomes:
            if not outcome.ok:
                continue
            batches.append(
                (outcome.source, self.records[offset : offset + outcome.record_count])
            )
            offset += outcome.record_count
        return tuple(batches)


class SourceAggregator(Generic[RecordT]):
    """Drive one fetcher across an ordered list of sources."""

    def __init__(self, fetcher: Fetcher[RecordT], *, logger: Any | None = None) -> None:
        self._fetcher = fetcher
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def aggregate(
        self,
        sources: Sequence[DataSource],
        constraint: LookupConstraint,
    ) -> Aggregation[RecordT]:
        return reduce(
            lambda acc, source: self._visit(acc, source, constraint),
            sources,
            Aggregation(),
        )

    def _visit(
        self,
        acc: Aggregation[RecordT],
        source: DataSource,
        constraint: LookupConstraint,
    ) -> Aggregation[RecordT]:
        try:
            fetched = self._fetcher.fetch(source, constraint)
        except SourceUnavailableError as exc:
            self._logger.error(
                "data_source_fetch_failed",
                source=source.description,
                source_id=source.id,
                error=str(exc),
            )
            return Aggregation(
                records=acc.records,
                outcomes=(*acc.outcomes, FetchOutcome(source=source, error=str(exc))),
            )

        tagged = tuple(record.with_source(source.id) for record in fetched)
        self._logger.debug(
            "data_source_fetched", source=source.description, record_count=len(tagged)
        )
        return Aggregation(
            records=(*acc.records, *tagged),
            outcomes=(*acc.outcomes, FetchOutcome(source=source, record_count=len(tagged))),
        )


__all__ = ["Aggregation", "Fetcher", "SourceAggregator"]
