"""CloudSpecFilter scope resolution."""

from __future__ import annotations

import pytest

from artifact_resolver.domain.errors import ScopeUndeterminableError
from artifact_resolver.domain.models import CloudSpec
from artifact_resolver.resolution.cloud_spec import CloudSpecFilter
from tests.unit import FakeProvider, FakeRegionalProvider, RecordingLogger


def test_regional_provider_scopes_lookup() -> None:
    spec = CloudSpec(region="eu-west-1", endpoint="https://ec2.eu-west-1")
    provider = FakeRegionalProvider(cloud_spec=spec)

    assert CloudSpecFilter().resolve(provider, require_scope=True) == spec
    assert CloudSpecFilter().resolve(provider, require_scope=False) == spec


def test_missing_region_capability_is_fatal_when_scope_required() -> None:
    with pytest.raises(ScopeUndeterminableError):
        CloudSpecFilter().resolve(FakeProvider(), require_scope=True)


def test_missing_region_capability_is_unconstrained_when_tolerated() -> None:
    logger = RecordingLogger()

    resolved = CloudSpecFilter(logger=logger).resolve(FakeProvider(), require_scope=False)

    assert resolved is None
    assert logger.named("cloud_spec_unconstrained")


def test_region_failure_is_reported_as_scope_error() -> None:
    provider = FakeRegionalProvider(region_error=RuntimeError("credentials expired"))

    with pytest.raises(ScopeUndeterminableError, match="credentials expired") as excinfo:
        CloudSpecFilter().resolve(provider, require_scope=False)

    assert isinstance(excinfo.value.__cause__, RuntimeError)
