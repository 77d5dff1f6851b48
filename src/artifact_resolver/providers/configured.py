"""Provider backed by the validated ``[provider]`` and ``[sources]`` config sections."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from artifact_resolver.constants import DEFAULT_IMAGE_SOURCE_ID, DEFAULT_TOOLS_SOURCE_ID
from artifact_resolver.domain.models import CloudSpec, ContentType, DataSource, Version
from artifact_resolver.providers.base import ProviderConfig
from artifact_resolver.resolution.registry import DataSourceRegistry, default_data_source


class ConfiguredProvider:
    """
    Provider whose data sources and environment settings come from config.

    This provider has no region capability; lookups made through it are either
    unconstrained or fail scope resolution, depending on the caller.
    """

    def __init__(
        self,
        config: ProviderConfig,
        *,
        supported_architectures: Sequence[str],
        image_sources: DataSourceRegistry,
        tools_sources: DataSourceRegistry,
    ) -> None:
        self._config = config
        self._supported = tuple(supported_architectures)
        self._image_sources = image_sources
        self._tools_sources = tools_sources

    def config(self) -> ProviderConfig:
        return self._config

    def supported_architectures(self) -> tuple[str, ...]:
        return self._supported

    def image_data_sources(self) -> tuple[DataSource, ...]:
        return self._image_sources.sources()

    def tools_data_sources(self) -> tuple[DataSource, ...]:
        return self._tools_sources.sources()

    def registered_image_sources(self) -> tuple[DataSource, ...]:
        return self._image_sources.registered()


class RegionalProvider(ConfiguredProvider):
    """Configured provider that also reports a fixed cloud spec."""

    def __init__(
        self,
        config: ProviderConfig,
        *,
        cloud_spec: CloudSpec,
        supported_architectures: Sequence[str],
        image_sources: DataSourceRegistry,
        tools_sources: DataSourceRegistry,
    ) -> None:
        super().__init__(
            config,
            supported_architectures=supported_architectures,
            image_sources=image_sources,
            tools_sources=tools_sources,
        )
        self._cloud_spec = cloud_spec

    def region(self) -> CloudSpec:
        return self._cloud_spec


def provider_from_config(config: Mapping[str, object]) -> ConfiguredProvider:
    """Build a provider from a validated config mapping."""

    provider = _section(config, "provider")
    sources = _section(config, "sources")

    agent_version_text = str(provider.get("agent_version", ""))
    provider_config = ProviderConfig(
        name=str(provider["name"]),
        type=str(provider["type"]),
        default_series=str(provider.get("default_series", "")),
        image_stream=str(provider.get("image_stream", "")),
        development=bool(provider.get("development", False)),
        agent_version=Version.parse(agent_version_text) if agent_version_text else None,
    )
    image_registry = _registry(
        ContentType.IMAGE_IDS,
        entries=sources.get("images", []),
        default_id=DEFAULT_IMAGE_SOURCE_ID,
        default_url=str(sources.get("default_image_url", "")),
    )
    tools_registry = _registry(
        ContentType.AGENT_TOOLS,
        entries=sources.get("tools", []),
        default_id=DEFAULT_TOOLS_SOURCE_ID,
        default_url=str(sources.get("default_tools_url", "")),
    )
    supported = [str(arch) for arch in _as_list(provider.get("supported_architectures", []))]

    region = str(provider.get("region", ""))
    if region:
        return RegionalProvider(
            provider_config,
            cloud_spec=CloudSpec(region=region, endpoint=str(provider.get("endpoint", ""))),
            supported_architectures=supported,
            image_sources=image_registry,
            tools_sources=tools_registry,
        )
    return ConfiguredProvider(
        provider_config,
        supported_architectures=supported,
        image_sources=image_registry,
        tools_sources=tools_registry,
    )


def _registry(
    content: ContentType,
    *,
    entries: object,
    default_id: str,
    default_url: str,
) -> DataSourceRegistry:
    registry = DataSourceRegistry(content)
    for entry in _as_list(entries):
        if not isinstance(entry, Mapping):
            raise ValueError(f"data source entry must be a mapping, got {type(entry).__name__}")
        registry.register(
            DataSource(
                id=str(entry["id"]),
                url=str(entry["url"]),
                priority=int(entry.get("priority", 0)),
                description=str(entry.get("description", "")),
                content=content,
            )
        )
    if default_url:
        registry.set_default(default_data_source(content, source_id=default_id, url=default_url))
    return registry


def _section(config: Mapping[str, object], name: str) -> Mapping[str, object]:
    section = config.get(name)
    if not isinstance(section, Mapping):
        raise ValueError(f"config section [{name}] is missing")
    return section


def _as_list(value: object) -> list[object]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


__all__ = ["ConfiguredProvider", "RegionalProvider", "provider_from_config"]
