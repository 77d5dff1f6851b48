"""
artifact-resolver — provider collaborator contracts.

Purpose
- Describe the cloud-provider surface the resolution core consumes.

Key interfaces
- ``Provider``: config, supported architectures, ordered data sources.
- ``HasRegion``: optional capability reporting the provider's cloud spec.

Region support is a separate runtime-checkable protocol so callers can check
for it with ``isinstance`` instead of catching attribute errors.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from artifact_resolver.domain.models import CloudSpec, DataSource, Version


@dataclass(frozen=True, slots=True)
class ProviderConfig:
    """Environment configuration relevant to artifact resolution."""

    name: str
    type: str
    default_series: str = ""
    image_stream: str = ""
    development: bool = False
    agent_version: Version | None = None

    @property
    def label(self) -> str:
        return f'environment "{self.name}" of type {self.type}'


class Provider(Protocol):
    """Cloud provider collaborator."""

    def config(self) -> ProviderConfig: ...

    def supported_architectures(self) -> Sequence[str]: ...

    def image_data_sources(self) -> Sequence[DataSource]: ...

    def registered_image_sources(self) -> Sequence[DataSource]:
        """Custom image sources in registration order, without the default."""
        ...

    def tools_data_sources(self) -> Sequence[DataSource]: ...


@runtime_checkable
class HasRegion(Protocol):
    """Optional provider capability: report the cloud spec lookups are scoped to."""

    def region(self) -> CloudSpec: ...


__all__ = ["HasRegion", "Provider", "ProviderConfig"]
