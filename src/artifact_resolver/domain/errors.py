"""Error hierarchy for resolution, reconciliation, and tools selection."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class CatalogError(RuntimeError):
    """Base error for published-artifact resolution failures."""


class ScopeUndeterminableError(CatalogError):
    """Raised when a flow requires a cloud spec and none can be resolved."""

    def __init__(
        self, message: str = "environment cloud specification cannot be determined"
    ) -> None:
        super().__init__(message)


class SourceUnavailableError(CatalogError):
    """Raised when a data source cannot be reached or its documents cannot be decoded."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"data source {source!r} unavailable: {reason}")


class RecordPersistError(CatalogError):
    """Combined failure for a reconciliation batch; one message per failed record."""

    def __init__(self, messages: Sequence[str]) -> None:
        self.messages = tuple(messages)
        super().__init__("\n".join(self.messages))


class NoMatchingToolsError(CatalogError):
    """Raised when no tools satisfy the request and none may be built."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(
            f"cannot bootstrap because no tools are available for your environment: {detail}"
        )


class ArchitectureUnsupportedError(CatalogError):
    """Raised when the environment cannot run instances of the requested architecture."""

    def __init__(self, arch: str, supported: Sequence[str], *, environment: str) -> None:
        self.arch = arch
        self.supported = tuple(supported)
        self.environment = environment
        super().__init__(f'{environment} does not support instances running on "{arch}"')


class HostArchitectureIncompatibleError(CatalogError):
    """Raised when building on demand would require a cross-build."""

    def __init__(self, target_arch: str, host_arch: str) -> None:
        self.target_arch = target_arch
        self.host_arch = host_arch
        super().__init__(
            f'cannot build tools for "{target_arch}" using a machine running on "{host_arch}"'
        )


class BuildToolError(CatalogError):
    """Raised by the subprocess build tool when a tarball cannot be produced."""


__all__ = [
    "ArchitectureUnsupportedError",
    "BuildToolError",
    "CatalogError",
    "HostArchitectureIncompatibleError",
    "NoMatchingToolsError",
    "RecordPersistError",
    "ScopeUndeterminableError",
    "SourceUnavailableError",
]
