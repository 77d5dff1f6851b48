"""
artifact-resolver — persistence layer

Purpose
- State DB access, migrations, the catalog store, and the local binary store.

Non-functional requirements
- SQLite-first; avoid heavy DB dependencies.
"""

from artifact_resolver.persistence.binary_store import (
    BinaryStore,
    BinaryStoreError,
    LocalBinaryStore,
)
from artifact_resolver.persistence.catalog_store import CatalogRepo, CatalogStore
from artifact_resolver.persistence.state_db import (
    StateDB,
    StateDBBusyError,
    StateDBError,
    StateDBMigrationError,
)

__all__ = [
    "BinaryStore",
    "BinaryStoreError",
    "CatalogRepo",
    "CatalogStore",
    "LocalBinaryStore",
    "StateDB",
    "StateDBBusyError",
    "StateDBError",
    "StateDBMigrationError",
]
