"""Domain types shared across resolution, reconciliation, and bootstrap flows."""

from __future__ import annotations

from artifact_resolver.domain.errors import (
    ArchitectureUnsupportedError,
    BuildToolError,
    CatalogError,
    HostArchitectureIncompatibleError,
    NoMatchingToolsError,
    RecordPersistError,
    ScopeUndeterminableError,
    SourceUnavailableError,
)
from artifact_resolver.domain.models import (
    BuiltArtifact,
    CatalogRecord,
    CloudSpec,
    ContentType,
    DataSource,
    FetchOutcome,
    LookupConstraint,
    MetadataFilter,
    ReconcileResult,
    ToolBinary,
    Version,
    VersionConstraint,
    parse_binary,
)

__all__ = [
    "ArchitectureUnsupportedError",
    "BuildToolError",
    "BuiltArtifact",
    "CatalogError",
    "CatalogRecord",
    "CloudSpec",
    "ContentType",
    "DataSource",
    "FetchOutcome",
    "HostArchitectureIncompatibleError",
    "LookupConstraint",
    "MetadataFilter",
    "NoMatchingToolsError",
    "ReconcileResult",
    "RecordPersistError",
    "ScopeUndeterminableError",
    "SourceUnavailableError",
    "ToolBinary",
    "Version",
    "VersionConstraint",
    "parse_binary",
]
