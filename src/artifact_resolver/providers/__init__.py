"""Provider collaborator contracts and the config-driven implementation."""

from artifact_resolver.providers.base import HasRegion, Provider, ProviderConfig
from artifact_resolver.providers.configured import (
    ConfiguredProvider,
    RegionalProvider,
    provider_from_config,
)

__all__ = [
    "ConfiguredProvider",
    "HasRegion",
    "Provider",
    "ProviderConfig",
    "RegionalProvider",
    "provider_from_config",
]
