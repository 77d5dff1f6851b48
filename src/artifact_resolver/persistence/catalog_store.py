"""
artifact-resolver — catalog store backed by the state DB.

Purpose
- Persist and query reconciled catalog records.

Functional requirements
- ``save_metadata`` upserts on the identity tuple
  ``(region, series, arch, virt_type, root_storage_type, source, stream)``;
  the artifact id and root storage size are overwritten, history is not kept.
- ``find_metadata`` groups matching records by source, preserving insertion
  order within each group.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

from artifact_resolver.domain.models import CatalogRecord, MetadataFilter

if TYPE_CHECKING:
    from artifact_resolver.persistence.state_db import SQLValue, StateDB

_UPSERT_SQL = """
INSERT INTO cloud_image_metadata (
    artifact_id,
    region,
    series,
    arch,
    virt_type,
    root_storage_type,
    root_storage_size,
    source,
    stream,
    created_at,
    updated_at
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(region, series, arch, virt_type, root_storage_type, source, stream) DO UPDATE SET
    artifact_id=excluded.artifact_id,
    root_storage_size=excluded.root_storage_size,
    updated_at=excluded.updated_at
"""


class CatalogStore(Protocol):
    """Persistent catalog collaborator."""

    def find_metadata(self, metadata_filter: MetadataFilter) -> dict[str, list[CatalogRecord]]: ...

    def save_metadata(self, record: CatalogRecord) -> None: ...


class CatalogRepo:
    """SQLite implementation of ``CatalogStore``."""

    def __init__(self, db: StateDB) -> None:
        self._db = db
        self._db.migrate()

    def save_metadata(self, record: CatalogRecord) -> None:
        if not record.source:
            raise ValueError("catalog record source must be set before saving")
        if not record.stream:
            raise ValueError("catalog record stream must be set before saving")
        now = _utc_now_iso()
        self._db.execute(
            _UPSERT_SQL,
            (
                record.artifact_id,
                record.region,
                record.series,
                record.arch,
                record.virt_type,
                record.root_storage_type,
                record.root_storage_size,
                record.source,
                record.stream,
                now,
                now,
            ),
        )

    def find_metadata(self, metadata_filter: MetadataFilter) -> dict[str, list[CatalogRecord]]:
        sql, params = _filter_query(metadata_filter)
        grouped: dict[str, list[CatalogRecord]] = {}
        for row in self._db.query_all(sql, params):
            record = CatalogRecord.from_dict(row)
            grouped.setdefault(record.source, []).append(record)
        return grouped

    def count(self) -> int:
        row = self._db.query_one("SELECT COUNT(*) AS total FROM cloud_image_metadata")
        if row is None:
            return 0
        total = row["total"]
        return total if isinstance(total, int) else 0


def _filter_query(metadata_filter: MetadataFilter) -> tuple[str, tuple[SQLValue, ...]]:
    clauses: list[str] = []
    params: list[SQLValue] = []
    for column, value in (
        ("region", metadata_filter.region),
        ("stream", metadata_filter.stream),
        ("virt_type", metadata_filter.virt_type),
        ("root_storage_type", metadata_filter.root_storage_type),
    ):
        if value:
            clauses.append(f"{column} = ?")
            params.append(value)
    for column, values in (("series", metadata_filter.series), ("arch", metadata_filter.arches)):
        if values:
            placeholders = ", ".join("?" for _ in values)
            clauses.append(f"{column} IN ({placeholders})")
            params.extend(values)

    sql = (
        "SELECT artifact_id, region, series, arch, virt_type, root_storage_type, "
        "root_storage_size, source, stream FROM cloud_image_metadata"
    )
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    sql += " ORDER BY rowid ASC"
    return sql, tuple(params)


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


__all__ = ["CatalogRepo", "CatalogStore"]
