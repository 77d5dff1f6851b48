"""Data-source registry ordering and presentation order."""

from __future__ import annotations

import pytest

from artifact_resolver.constants import DEFAULT_SOURCE_PRIORITY
from artifact_resolver.domain.models import ContentType, DataSource
from artifact_resolver.resolution.registry import (
    DataSourceRegistry,
    DataSourceRegistryError,
    default_data_source,
    presentation_order,
)
from tests.unit import make_source, make_tools_source, sources_ids


def _default() -> DataSource:
    return default_data_source(
        ContentType.IMAGE_IDS, source_id="default cloud images", url="https://images.test"
    )


def test_registry_orders_by_priority_then_registration_with_default_last() -> None:
    registry = DataSourceRegistry(ContentType.IMAGE_IDS)
    registry.set_default(_default())
    registry.register(make_source("late", priority=5))
    registry.register(make_source("first", priority=0))
    registry.register(make_source("second", priority=0))

    assert sources_ids(registry.sources()) == ["first", "second", "late", "default cloud images"]
    assert registry.default is not None
    assert registry.default.priority == DEFAULT_SOURCE_PRIORITY


def test_registry_rejects_duplicates_and_wrong_content() -> None:
    registry = DataSourceRegistry(ContentType.IMAGE_IDS)
    registry.register(make_source("mirror"))

    with pytest.raises(DataSourceRegistryError, match="already registered"):
        registry.register(make_source("mirror"))
    with pytest.raises(DataSourceRegistryError, match="serves"):
        registry.register(make_tools_source("streams"))


def test_registered_keeps_registration_order_without_default() -> None:
    registry = DataSourceRegistry(ContentType.IMAGE_IDS, default=_default())
    registry.register(make_source("late", priority=5))
    registry.register(make_source("early", priority=1))

    assert sources_ids(registry.registered()) == ["late", "early"]
    assert sources_ids(registry.sources()) == ["early", "late", "default cloud images"]


def test_presentation_order_lists_custom_before_default() -> None:
    found = {"default cloud images", "zeta", "mirror", "alpha", "orphan"}

    ordered = presentation_order(
        found,
        registered=["zeta", "mirror", "alpha", "default cloud images"],
        default_source="default cloud images",
    )

    assert ordered == ("zeta", "mirror", "alpha", "orphan", "default cloud images")


def test_presentation_order_ignores_registered_sources_without_records() -> None:
    ordered = presentation_order({"custom"}, registered=["mirror"], default_source="default")

    assert ordered == ("custom",)
