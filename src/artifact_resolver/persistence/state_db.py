"""
artifact-resolver — SQLite catalog database.

Purpose
- Own the SQLite file that backs the image catalog: schema, migrations, and
  short-lived connections.

Functional requirements
- ``migrate`` is idempotent and refuses databases written by a newer schema or
  whose recorded migration checksum no longer matches the code.
- Catalog rows are unique on the record identity tuple so upserts overwrite in place.
- Lock contention is retried a bounded number of times with exponential backoff.

Non-functional requirements
- Connections are opened per call; no lock is held between calls.
"""

from __future__ import annotations

import hashlib
import itertools
import sqlite3
import time
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Final, TypeVar

from artifact_resolver.constants import STATE_DB_SCHEMA_VERSION

SQLValue = str | int | float | bytes | None
SQLParams = Sequence[SQLValue]
RowValue = SQLValue
Row = dict[str, RowValue]

DEFAULT_BUSY_TIMEOUT_MS: Final[int] = 5_000
DEFAULT_BUSY_RETRY_LIMIT: Final[int] = 4
DEFAULT_BUSY_RETRY_BACKOFF_MS: Final[int] = 25

_T = TypeVar("_T")

_LOCK_ERROR_NAMES: Final[tuple[str, ...]] = ("SQLITE_BUSY", "SQLITE_LOCKED")

_SCHEMA_VERSIONS_DDL: Final[str] = """
CREATE TABLE IF NOT EXISTS schema_versions (
    version INTEGER PRIMARY KEY CHECK (version > 0),
    name TEXT NOT NULL,
    checksum TEXT NOT NULL CHECK (length(checksum) = 64),
    applied_at TEXT NOT NULL
)
"""


class StateDBError(RuntimeError):
    """Base class for catalog database errors."""


class StateDBBusyError(StateDBError):
    """Raised when the database stays locked after every retry."""


class StateDBMigrationError(StateDBError):
    """Raised when the on-disk schema cannot be brought up to date safely."""


@dataclass(frozen=True, slots=True)
class Migration:
    """One forward-only schema step, identified by version and content checksum."""

    version: int
    name: str
    statements: tuple[str, ...]

    @property
    def checksum(self) -> str:
        digest = hashlib.sha256(f"{self.version}:{self.name}\n".encode())
        for statement in self.statements:
            lines = (line.rstrip() for line in statement.strip().splitlines())
            digest.update("\n".join(lines).encode("utf-8") + b"\n--\n")
        return digest.hexdigest()


MIGRATIONS: Final[tuple[Migration, ...]] = (
    Migration(
        version=1,
        name="cloud_image_metadata",
        statements=(
            _SCHEMA_VERSIONS_DDL,
            """
            CREATE TABLE IF NOT EXISTS cloud_image_metadata (
                artifact_id TEXT NOT NULL CHECK (length(artifact_id) > 0),
                region TEXT NOT NULL,
                series TEXT NOT NULL,
                arch TEXT NOT NULL,
                virt_type TEXT NOT NULL,
                root_storage_type TEXT NOT NULL,
                root_storage_size INTEGER
                    CHECK (root_storage_size IS NULL OR root_storage_size >= 0),
                source TEXT NOT NULL CHECK (length(source) > 0),
                stream TEXT NOT NULL CHECK (length(stream) > 0),
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                UNIQUE (region, series, arch, virt_type, root_storage_type, source, stream)
            )
            """,
            """
            CREATE INDEX IF NOT EXISTS idx_cloud_image_metadata_source
            ON cloud_image_metadata(source)
            """,
        ),
    ),
)


class StateDB:
    """Catalog database file plus the migration and retry policy applied to it."""

    def __init__(
        self,
        path: str | Path,
        *,
        busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
        busy_retry_limit: int = DEFAULT_BUSY_RETRY_LIMIT,
        busy_retry_backoff_ms: int = DEFAULT_BUSY_RETRY_BACKOFF_MS,
    ) -> None:
        for name, value in (
            ("busy_timeout_ms", busy_timeout_ms),
            ("busy_retry_limit", busy_retry_limit),
            ("busy_retry_backoff_ms", busy_retry_backoff_ms),
        ):
            if value < 0:
                raise ValueError(f"{name} must be >= 0")

        self._path = Path(path).expanduser()
        self._busy_timeout_ms = busy_timeout_ms
        self._busy_retry_limit = busy_retry_limit
        self._busy_retry_backoff_ms = busy_retry_backoff_ms
        self._savepoints = itertools.count(1)

    @property
    def path(self) -> Path:
        return self._path

    def __enter__(self) -> StateDB:
        self.migrate()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        del exc_type, exc, tb

    # ------------------------------------------------------------------
    # Connections and transactions
    # ------------------------------------------------------------------

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Open a WAL-mode connection in autocommit mode and close it afterwards."""

        self._path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(
            self._path,
            timeout=self._busy_timeout_ms / 1000.0,
            isolation_level=None,
            check_same_thread=False,
        )
        try:
            conn.row_factory = sqlite3.Row
            conn.execute(f"PRAGMA busy_timeout={self._busy_timeout_ms}")
            (journal_mode,) = conn.execute("PRAGMA journal_mode=WAL").fetchone()
            if str(journal_mode).lower() != "wal":
                raise StateDBError(f"{self._path} cannot use WAL journaling: {journal_mode!r}")
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(
        self,
        *,
        conn: sqlite3.Connection | None = None,
        immediate: bool = True,
    ) -> Iterator[sqlite3.Connection]:
        """
        Commit on success and roll back on error.

        Without ``conn`` a fresh connection is opened for the transaction. Inside an
        already open transaction a savepoint is used so only the inner block is undone.
        """

        if conn is None:
            with self.connection() as owned, self.transaction(conn=owned, immediate=immediate):
                yield owned
            return

        if conn.in_transaction:
            name = f"sp_{next(self._savepoints)}"
            begin, commit = f"SAVEPOINT {name}", f"RELEASE SAVEPOINT {name}"
            rollback: tuple[str, ...] = (f"ROLLBACK TO SAVEPOINT {name}", commit)
        else:
            begin = "BEGIN IMMEDIATE" if immediate else "BEGIN"
            commit, rollback = "COMMIT", ("ROLLBACK",)

        self._run(conn, begin, operation="begin")
        try:
            yield conn
        except Exception:
            for statement in rollback:
                self._run(conn, statement, operation="rollback")
            raise
        self._run(conn, commit, operation="commit")

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def execute(
        self,
        sql: str,
        params: SQLParams = (),
        *,
        conn: sqlite3.Connection | None = None,
    ) -> int:
        """Run one write statement and return the affected row count."""

        if conn is not None:
            return self._run(conn, sql, params, operation="execute").rowcount
        with self.transaction() as tx:
            return self._run(tx, sql, params, operation="execute").rowcount

    def query_all(
        self,
        sql: str,
        params: SQLParams = (),
        *,
        conn: sqlite3.Connection | None = None,
    ) -> list[Row]:
        with self._reader(conn) as reader:
            rows = self._run(reader, sql, params, operation="query all").fetchall()
        return [dict(row) for row in rows]

    def query_one(
        self,
        sql: str,
        params: SQLParams = (),
        *,
        conn: sqlite3.Connection | None = None,
    ) -> Row | None:
        with self._reader(conn) as reader:
            row = self._run(reader, sql, params, operation="query one").fetchone()
        return None if row is None else dict(row)

    # ------------------------------------------------------------------
    # Migrations
    # ------------------------------------------------------------------

    def migrate(self) -> int:
        """Apply pending migrations and return the resulting schema version."""

        known = {migration.version for migration in MIGRATIONS}
        missing = set(range(1, STATE_DB_SCHEMA_VERSION + 1)) - known
        if missing:
            raise StateDBMigrationError(f"missing migration for schema version {min(missing)}")

        with self.connection() as conn:
            self._run(conn, _SCHEMA_VERSIONS_DDL, operation="create schema_versions")
            recorded = {
                int(row["version"] or 0): str(row["checksum"])
                for row in self.query_all(
                    "SELECT version, checksum FROM schema_versions", conn=conn
                )
            }
            newest = max(recorded, default=0)
            if newest > STATE_DB_SCHEMA_VERSION:
                raise StateDBMigrationError(
                    f"{self._path} schema {newest} is newer than supported "
                    f"schema {STATE_DB_SCHEMA_VERSION}"
                )

            for migration in MIGRATIONS:
                if migration.version > STATE_DB_SCHEMA_VERSION:
                    break
                if migration.version in recorded:
                    if recorded[migration.version] != migration.checksum:
                        raise StateDBMigrationError(
                            f"checksum mismatch for migration {migration.version} "
                            f"({migration.name}); the database was changed outside this tool"
                        )
                    continue
                self._apply(conn, migration)

            return self.schema_version(conn=conn)

    def schema_version(self, *, conn: sqlite3.Connection | None = None) -> int:
        row = self.query_one(
            "SELECT COALESCE(MAX(version), 0) AS version FROM schema_versions", conn=conn
        )
        return 0 if row is None else int(row["version"] or 0)

    def _apply(self, conn: sqlite3.Connection, migration: Migration) -> None:
        operation = f"apply migration {migration.version}"
        with self.transaction(conn=conn) as tx:
            for statement in migration.statements:
                self._run(tx, statement, operation=operation)
            self._run(
                tx,
                "INSERT INTO schema_versions (version, name, checksum, applied_at) "
                "VALUES (?, ?, ?, ?)",
                (migration.version, migration.name, migration.checksum, _utc_now_iso()),
                operation=operation,
            )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @contextmanager
    def _reader(self, conn: sqlite3.Connection | None) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
            return
        with self.connection() as owned:
            yield owned

    def _run(
        self,
        conn: sqlite3.Connection,
        sql: str,
        params: SQLParams = (),
        *,
        operation: str,
    ) -> sqlite3.Cursor:
        return self._retry_locked(lambda: conn.execute(sql, tuple(params)), operation=operation)

    def _retry_locked(self, call: Callable[[], _T], *, operation: str) -> _T:
        attempts = self._busy_retry_limit + 1
        for attempt in range(attempts):
            try:
                return call()
            except sqlite3.IntegrityError:
                raise
            except sqlite3.Error as exc:
                if not _is_lock_error(exc):
                    raise StateDBError(f"{operation} failed for {self._path}: {exc}") from exc
                if attempt + 1 == attempts:
                    raise StateDBBusyError(
                        f"{operation} found {self._path} locked after {attempts} attempt(s): {exc}"
                    ) from exc
                time.sleep(self._busy_retry_backoff_ms / 1000.0 * 2**attempt)
        raise AssertionError("unreachable")


def _is_lock_error(exc: sqlite3.Error) -> bool:
    name = getattr(exc, "sqlite_errorname", "") or ""
    if name.startswith(_LOCK_ERROR_NAMES):
        return True
    return "is locked" in str(exc).lower()


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


__all__ = [
    "DEFAULT_BUSY_RETRY_BACKOFF_MS",
    "DEFAULT_BUSY_RETRY_LIMIT",
    "DEFAULT_BUSY_TIMEOUT_MS",
    "MIGRATIONS",
    "Migration",
    "Row",
    "RowValue",
    "SQLParams",
    "SQLValue",
    "StateDB",
    "StateDBBusyError",
    "StateDBError",
    "StateDBMigrationError",
]
