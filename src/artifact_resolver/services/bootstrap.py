"""
artifact-resolver — bootstrap tools service.

Purpose
- Decide which agent binaries a bootstrap uses and make sure they exist.

Functional requirements
- An architecture the environment does not support fails before any source is
  fetched.
- A pinned ``agent_version`` restricts selection to that exact number and
  disables building on demand.
- A tarball built on demand is uploaded into the binary store by this service;
  the stored location becomes the selected binary's ``storage_location``.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from artifact_resolver.domain.models import LookupConstraint, ToolBinary, VersionConstraint
from artifact_resolver.resolution.aggregator import SourceAggregator
from artifact_resolver.resolution.cloud_spec import CloudSpecFilter
from artifact_resolver.resolution.fetcher import ToolsFetcher
from artifact_resolver.tools.resolver import VersionArchResolver, find_tools
from artifact_resolver.utils.arch import host_arch as detect_host_arch

if TYPE_CHECKING:
    from collections.abc import Callable

    from artifact_resolver.domain.models import Version
    from artifact_resolver.persistence.binary_store import BinaryStore
    from artifact_resolver.providers.base import Provider
    from artifact_resolver.resolution.transports import Transport
    from artifact_resolver.tools.builder import ToolsBuilder


class BootstrapService:
    """Resolve agent tools for bootstrap and machine provisioning."""

    def __init__(
        self,
        provider: Provider,
        *,
        transport: Transport,
        cli_version: Version,
        binary_store: BinaryStore,
        builder: ToolsBuilder | None = None,
        host_arch: Callable[[], str] | None = None,
        cloud_spec_filter: CloudSpecFilter | None = None,
        logger: Any | None = None,
    ) -> None:
        self._provider = provider
        self._cli_version = cli_version
        self._binary_store = binary_store
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._cloud_spec_filter = cloud_spec_filter or CloudSpecFilter(logger=self._logger)
        self._aggregator: SourceAggregator[ToolBinary] = SourceAggregator(
            ToolsFetcher(transport, logger=self._logger), logger=self._logger
        )
        self._resolver = VersionArchResolver(
            supported_architectures=provider.supported_architectures(),
            environment=provider.config().label,
            builder=builder,
            host_arch=host_arch or detect_host_arch,
            logger=self._logger,
        )

    def ensure_tools_availability(self, series: str, arch: str | None = None) -> list[ToolBinary]:
        """Return the binaries to bootstrap ``series`` with, building one if needed."""

        if arch is not None:
            self._resolver.check_architecture(arch)

        config = self._provider.config()
        available = self._available_tools(series, arch)

        build_permitted: bool | None = None
        if config.agent_version is not None:
            available = [tool for tool in available if tool.version == config.agent_version]
            build_permitted = False

        selection = self._resolver.resolve(
            available,
            self._cli_version,
            development_mode=config.development,
            series=series,
            arch=arch,
            build_permitted=build_permitted,
        )
        if selection.built is None:
            return list(selection.tools)

        built = selection.built
        location = self._binary_store.put(
            Path(built.path), built.storage_name, sha256=built.sha256
        )
        self._logger.info(
            "built_tools_uploaded",
            version=str(built.version),
            storage_name=built.storage_name,
            location=location,
        )
        return [tool.with_location(location) for tool in selection.tools]

    def tools_for_machine(self, series: str, arch: str) -> list[ToolBinary]:
        """Published binaries matching the environment's pinned agent version exactly."""

        agent_version = self._provider.config().agent_version
        if agent_version is None:
            raise ValueError("no agent version set in model configuration")
        if not arch:
            raise ValueError("arch is not set")

        return find_tools(
            self._available_tools(series, arch),
            VersionConstraint(major_version=-1, minor_version=-1, series=series, arch=arch),
            number=agent_version,
        )

    def _available_tools(self, series: str, arch: str | None) -> list[ToolBinary]:
        cloud_spec = self._cloud_spec_filter.resolve(self._provider, require_scope=False)
        constraint = LookupConstraint(
            cloud_spec=cloud_spec,
            series=frozenset({series}),
            arches=frozenset({arch}) if arch else frozenset(),
        )
        aggregation = self._aggregator.aggregate(self._provider.tools_data_sources(), constraint)
        self._logger.debug(
            "tools_aggregated",
            series=series,
            arch=arch or "",
            count=len(aggregation.records),
            failed_sources=len(aggregation.errors),
        )
        return list(aggregation.records)


__all__ = ["BootstrapService"]
