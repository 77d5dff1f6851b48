"""State DB migration, pragmas, transactions, and error surfacing."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from artifact_resolver.constants import STATE_DB_SCHEMA_VERSION
from artifact_resolver.persistence.state_db import (
    StateDB,
    StateDBError,
    StateDBMigrationError,
)

if TYPE_CHECKING:
    from pathlib import Path


def test_migration_idempotence_schema_version_and_pragmas(tmp_path: Path) -> None:
    db = StateDB(tmp_path / "state" / "catalog.sqlite3", busy_timeout_ms=4_321)

    version_first = db.migrate()
    version_second = db.migrate()

    assert version_first == STATE_DB_SCHEMA_VERSION
    assert version_second == STATE_DB_SCHEMA_VERSION

    with db.connection() as conn:
        tables = {
            str(row[0])
            for row in conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name"
            ).fetchall()
        }
        assert {"schema_versions", "cloud_image_metadata"}.issubset(tables)

        index_names = {
            str(row[0])
            for row in conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'index' ORDER BY name"
            ).fetchall()
        }
        assert "idx_cloud_image_metadata_source" in index_names

        pragma_journal = conn.execute("PRAGMA journal_mode").fetchone()
        pragma_timeout = conn.execute("PRAGMA busy_timeout").fetchone()
        assert pragma_journal is not None and str(pragma_journal[0]).lower() == "wal"
        assert pragma_timeout is not None and int(pragma_timeout[0]) == 4_321

    rows = db.query_all("SELECT version FROM schema_versions")
    assert rows == [{"version": 1}]


def test_context_manager_migrates(tmp_path: Path) -> None:
    with StateDB(tmp_path / "catalog.sqlite3") as db:
        assert db.schema_version() == STATE_DB_SCHEMA_VERSION


def test_tampered_migration_checksum_is_rejected(tmp_path: Path) -> None:
    db = StateDB(tmp_path / "catalog.sqlite3")
    db.migrate()
    db.execute("UPDATE schema_versions SET checksum = ? WHERE version = 1", ("0" * 64,))

    with pytest.raises(StateDBMigrationError, match="checksum mismatch"):
        db.migrate()


def test_newer_schema_is_rejected(tmp_path: Path) -> None:
    db = StateDB(tmp_path / "catalog.sqlite3")
    db.migrate()
    db.execute(
        "INSERT INTO schema_versions (version, name, checksum, applied_at) VALUES (?, ?, ?, ?)",
        (STATE_DB_SCHEMA_VERSION + 1, "future", "f" * 64, "2030-01-01T00:00:00Z"),
    )

    with pytest.raises(StateDBMigrationError, match="newer than supported"):
        db.migrate()


def test_transaction_rolls_back_on_error(tmp_path: Path) -> None:
    db = StateDB(tmp_path / "catalog.sqlite3")
    db.migrate()

    with pytest.raises(RuntimeError, match="abort"):
        with db.transaction() as conn:
            db.execute(
                "INSERT INTO schema_versions (version, name, checksum, applied_at) "
                "VALUES (?, ?, ?, ?)",
                (99, "scratch", "a" * 64, "2030-01-01T00:00:00Z"),
                conn=conn,
            )
            raise RuntimeError("abort")

    assert db.query_one("SELECT COUNT(*) AS total FROM schema_versions") == {"total": 1}


def test_nested_transaction_uses_savepoint(tmp_path: Path) -> None:
    db = StateDB(tmp_path / "catalog.sqlite3")
    db.migrate()
    insert = (
        "INSERT INTO schema_versions (version, name, checksum, applied_at) VALUES (?, ?, ?, ?)"
    )

    with db.transaction() as conn:
        db.execute(insert, (50, "outer", "b" * 64, "2030-01-01T00:00:00Z"), conn=conn)
        with pytest.raises(RuntimeError):
            with db.transaction(conn=conn):
                db.execute(insert, (51, "inner", "c" * 64, "2030-01-01T00:00:00Z"), conn=conn)
                raise RuntimeError("inner abort")

    versions = [row["version"] for row in db.query_all("SELECT version FROM schema_versions")]
    assert versions == [1, 50]


def test_sql_errors_are_wrapped_with_operation(tmp_path: Path) -> None:
    db = StateDB(tmp_path / "catalog.sqlite3")
    db.migrate()

    with pytest.raises(StateDBError, match="query all failed"):
        db.query_all("SELECT * FROM missing_table")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"busy_timeout_ms": -1},
        {"busy_retry_limit": -1},
        {"busy_retry_backoff_ms": -1},
    ],
)
def test_negative_settings_are_rejected(tmp_path: Path, kwargs: dict[str, int]) -> None:
    with pytest.raises(ValueError):
        StateDB(tmp_path / "catalog.sqlite3", **kwargs)
