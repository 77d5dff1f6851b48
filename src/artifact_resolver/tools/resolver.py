"""
artifact-resolver — tools version/architecture selection.

Purpose
- Pick the agent binaries a bootstrap should use, building one when allowed.

Functional requirements
- An architecture constraint the environment does not support fails before any search.
- Release CLIs only match binaries with the same major.minor; development CLIs
  (or development mode) take the newest binary per architecture.
- When nothing matches, a build is attempted only if permitted and the host can
  produce binaries for the required architecture.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from artifact_resolver.domain.errors import (
    ArchitectureUnsupportedError,
    HostArchitectureIncompatibleError,
    NoMatchingToolsError,
)
from artifact_resolver.domain.models import BuiltArtifact, ToolBinary, Version, VersionConstraint
from artifact_resolver.utils.arch import host_arch as detect_host_arch

if TYPE_CHECKING:
    from artifact_resolver.tools.builder import ToolsBuilder


@dataclass(frozen=True, slots=True)
class ToolsSelection:
    """Selected binaries; ``built`` is set when one of them was built on demand."""

    tools: tuple[ToolBinary, ...]
    built: BuiltArtifact | None = None


def find_tools(
    available: Iterable[ToolBinary],
    constraint: VersionConstraint,
    *,
    number: Version | None = None,
) -> list[ToolBinary]:
    """Filter ``available`` by ``constraint`` (and an exact version when given)."""

    matched = [
        tool
        for tool in available
        if constraint.matches(tool) and (number is None or tool.version == number)
    ]
    return sorted(matched, key=lambda tool: (tool.version.key, tool.arch, tool.series))


def newest_per_arch(
    candidates: Iterable[ToolBinary],
    cli_version: Version,
    *,
    development: bool,
) -> dict[str, ToolBinary]:
    """Apply the release/development matching policy to each architecture partition."""

    partitions: dict[str, list[ToolBinary]] = {}
    for tool in candidates:
        partitions.setdefault(tool.arch, []).append(tool)

    selected: dict[str, ToolBinary] = {}
    for arch in sorted(partitions):
        eligible = partitions[arch]
        if not development:
            eligible = [
                tool
                for tool in eligible
                if (tool.version.major, tool.version.minor)
                == (cli_version.major, cli_version.minor)
            ]
        if eligible:
            selected[arch] = max(eligible, key=lambda tool: tool.version.key)
    return selected


class VersionArchResolver:
    """Select tool binaries for one series, optionally constrained to one architecture."""

    def __init__(
        self,
        *,
        supported_architectures: Sequence[str],
        environment: str,
        builder: ToolsBuilder | None = None,
        host_arch: Callable[[], str] = detect_host_arch,
        logger: Any | None = None,
    ) -> None:
        self._supported = tuple(supported_architectures)
        self._environment = environment
        self._builder = builder
        self._host_arch = host_arch
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def check_architecture(self, arch: str) -> None:
        """Fail fast when the environment cannot run instances of ``arch``."""

        if arch not in self._supported:
            raise ArchitectureUnsupportedError(
                arch, self._supported, environment=self._environment
            )

    def resolve(
        self,
        available: Iterable[ToolBinary],
        cli_version: Version,
        *,
        development_mode: bool,
        series: str,
        arch: str | None = None,
        build_permitted: bool | None = None,
    ) -> ToolsSelection:
        if arch is not None:
            self.check_architecture(arch)

        development = development_mode or cli_version.is_dev
        candidates = [
            tool
            for tool in available
            if tool.series == series and (arch is None or tool.arch == arch)
        ]
        selected = newest_per_arch(candidates, cli_version, development=development)
        if selected:
            return ToolsSelection(tools=tuple(selected[name] for name in sorted(selected)))

        if build_permitted is None:
            build_permitted = development
        return self._build_missing(
            cli_version,
            series=series,
            arch=arch,
            development=development,
            build_permitted=build_permitted,
        )

    def _build_missing(
        self,
        cli_version: Version,
        *,
        series: str,
        arch: str | None,
        development: bool,
        build_permitted: bool,
    ) -> ToolsSelection:
        host = self._host_arch()
        if arch is not None and arch != host:
            raise HostArchitectureIncompatibleError(arch, host)

        if not build_permitted or self._builder is None:
            mode = "development" if development else "release"
            wanted = f"{series}/{arch}" if arch is not None else series
            raise NoMatchingToolsError(
                f"no {mode} tools matching {cli_version} for {wanted} and building is not allowed"
            )

        target_arch = arch if arch is not None else host
        self.check_architecture(target_arch)

        self._logger.info(
            "tools_not_found_building",
            version=str(cli_version),
            series=series,
            arch=target_arch,
        )
        built = self._builder.build(cli_version, series=series, arch=target_arch)
        tool = ToolBinary(
            version=built.version,
            series=series,
            arch=target_arch,
            size=built.size,
            sha256=built.sha256,
        )
        return ToolsSelection(tools=(tool,), built=built)


__all__ = ["ToolsSelection", "VersionArchResolver", "find_tools", "newest_per_arch"]
