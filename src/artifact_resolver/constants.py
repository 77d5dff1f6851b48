"""Stable constants shared across resolution, reconciliation, and bootstrap."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Final

# Defaults applied to catalog records that arrive without them.
DEFAULT_STREAM: Final[str] = "released"
DEFAULT_SOURCE: Final[str] = "custom"

# Identifiers of the environment's implicit public data sources.
DEFAULT_IMAGE_SOURCE_ID: Final[str] = "default cloud images"
DEFAULT_TOOLS_SOURCE_ID: Final[str] = "default simplestreams"
DEFAULT_SOURCE_PRIORITY: Final[int] = 1_000

# Schema versions for persisted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1
STATE_DB_SCHEMA_VERSION: Final[int] = 1

# Default runtime paths (relative to the config file directory unless overridden).
STATE_DB_PATH: Final[PurePosixPath] = PurePosixPath("state/catalog.sqlite3")
BINARY_STORE_DIR: Final[PurePosixPath] = PurePosixPath("state/binaries")
LOG_DIR: Final[PurePosixPath] = PurePosixPath("logs")
TOOLS_STORAGE_PREFIX: Final[PurePosixPath] = PurePosixPath("tools/releases")

# Published document names served by a data source, per content type.
IMAGE_DOCUMENT_NAME: Final[str] = "images.json"
TOOLS_DOCUMENT_NAME: Final[str] = "tools.json"

__all__ = [
    "BINARY_STORE_DIR",
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_IMAGE_SOURCE_ID",
    "DEFAULT_SOURCE",
    "DEFAULT_SOURCE_PRIORITY",
    "DEFAULT_STREAM",
    "DEFAULT_TOOLS_SOURCE_ID",
    "IMAGE_DOCUMENT_NAME",
    "LOG_DIR",
    "STATE_DB_PATH",
    "STATE_DB_SCHEMA_VERSION",
    "TOOLS_DOCUMENT_NAME",
    "TOOLS_STORAGE_PREFIX",
]
