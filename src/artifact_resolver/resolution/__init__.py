"""Published-catalog resolution: scope, sources, transports, fetch, and aggregation."""

from artifact_resolver.resolution.aggregator import Aggregation, SourceAggregator
from artifact_resolver.resolution.cloud_spec import CloudSpecFilter
from artifact_resolver.resolution.fetcher import CatalogFetcher, ToolsFetcher
from artifact_resolver.resolution.registry import (
    DataSourceRegistry,
    DataSourceRegistryError,
    default_data_source,
    presentation_order,
)
from artifact_resolver.resolution.transports import (
    DirectoryTransport,
    HttpTransport,
    RoutingTransport,
    Transport,
)

__all__ = [
    "Aggregation",
    "CatalogFetcher",
    "CloudSpecFilter",
    "DataSourceRegistry",
    "DataSourceRegistryError",
    "DirectoryTransport",
    "HttpTransport",
    "RoutingTransport",
    "SourceAggregator",
    "ToolsFetcher",
    "Transport",
    "default_data_source",
    "presentation_order",
]
