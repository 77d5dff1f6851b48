"""Domain model validation, defaults, and version semantics."""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from artifact_resolver.domain.models import (
    CatalogRecord,
    CloudSpec,
    ContentType,
    DataSource,
    LookupConstraint,
    MetadataFilter,
    ToolBinary,
    Version,
    VersionConstraint,
    parse_binary,
)
from artifact_resolver.domain.series import (
    UnknownSeriesError,
    known_series,
    series_version,
    version_series,
)
from tests.unit import make_record, make_tool


def test_cloud_spec_normalizes_endpoint_and_matches() -> None:
    spec = CloudSpec(region=" us-east-1 ", endpoint="https://ec2.example.test/")

    assert spec.region == "us-east-1"
    assert spec.endpoint == "https://ec2.example.test"
    assert spec.matches("us-east-1", "https://ec2.example.test/")
    assert not spec.matches("us-west-2", "https://ec2.example.test")
    assert str(spec) == "us-east-1@https://ec2.example.test"


def test_unconstrained_lookup_accepts_any_placement() -> None:
    constraint = LookupConstraint()

    assert constraint.unconstrained
    assert constraint.accepts_placement("", "")
    assert constraint.accepts_placement("eu-west-1", "https://anything")


def test_scoped_lookup_rejects_regionless_records() -> None:
    constraint = LookupConstraint(cloud_spec=CloudSpec("us-east-1", "https://ec2"))

    assert constraint.accepts_placement("us-east-1", "https://ec2")
    assert not constraint.accepts_placement("", "https://ec2")
    assert not constraint.accepts_placement("us-east-1", "https://other")


def test_lookup_constraint_filters_series_arch_and_stream() -> None:
    constraint = LookupConstraint(
        series=frozenset({"jammy"}), arches=frozenset({"arm64"}), stream="released"
    )

    assert constraint.accepts_series("jammy")
    assert not constraint.accepts_series("focal")
    assert constraint.accepts_arch("arm64")
    assert not constraint.accepts_arch("amd64")
    assert constraint.accepts_stream("")
    assert constraint.accepts_stream("released")
    assert not constraint.accepts_stream("daily")


def test_lookup_constraint_rejects_bare_string_sets() -> None:
    with pytest.raises(ValueError, match="LookupConstraint: series"):
        LookupConstraint(series="jammy")  # type: ignore[arg-type]


def test_catalog_record_defaults_and_identity() -> None:
    record = make_record("ami-1")

    canonical = record.with_defaults()

    assert canonical.stream == "released"
    assert canonical.source == "custom"
    assert canonical.identity == (
        "us-east-1",
        "jammy",
        "amd64",
        "hvm",
        "ebs",
        "custom",
        "released",
    )
    assert "ami-1" not in canonical.identity


def test_catalog_record_defaults_keep_explicit_values() -> None:
    record = make_record("ami-1", source="mirror", stream="daily")

    assert record.with_defaults() == record


def test_catalog_record_requires_artifact_id() -> None:
    with pytest.raises(ValueError, match="artifact_id must not be empty"):
        CatalogRecord(artifact_id="  ")


def test_catalog_record_rejects_negative_size() -> None:
    with pytest.raises(ValueError, match="root_storage_size must be >= 0"):
        make_record("ami-1", root_storage_size=-1)


def test_catalog_record_dict_roundtrip() -> None:
    record = make_record("ami-1", source="mirror", stream="released", root_storage_size=8)

    assert CatalogRecord.from_dict(record.to_dict()) == record


def test_metadata_filter_empty_fields_match_everything() -> None:
    record = make_record("ami-1", source="custom", stream="released")

    assert MetadataFilter().matches(record)
    assert MetadataFilter(region="us-east-1", series=("jammy",)).matches(record)
    assert not MetadataFilter(arches=("arm64",)).matches(record)
    assert not MetadataFilter(root_storage_type="instance").matches(record)


def test_data_source_defaults_description_to_id() -> None:
    source = DataSource(id="mirror", url="file:///srv/mirror")

    assert source.description == "mirror"
    assert source.content is ContentType.IMAGE_IDS


def test_data_source_rejects_non_integer_priority() -> None:
    with pytest.raises(ValueError, match="priority must be an integer"):
        DataSource(id="mirror", url="file:///srv", priority=True)


@pytest.mark.parametrize(
    ("text", "expected", "is_dev"),
    [
        ("1.18.0", Version(1, 18, 0, 0), False),
        ("1.18.3", Version(1, 18, 3, 0), False),
        ("1.19.0", Version(1, 19, 0, 0), True),
        ("1.18.0.1", Version(1, 18, 0, 1), True),
        ("2.0.1", Version(2, 0, 1, 0), False),
    ],
)
def test_version_parse_and_development_flag(text: str, expected: Version, is_dev: bool) -> None:
    parsed = Version.parse(text)

    assert parsed == expected
    assert parsed.is_dev is is_dev


@pytest.mark.parametrize("text", ["1.18", "v1.18.0", "1.18.0-beta", ""])
def test_version_parse_rejects_malformed(text: str) -> None:
    with pytest.raises(ValueError, match="Version"):
        Version.parse(text)


def test_version_next_build_and_str() -> None:
    version = Version.parse("1.18.2")

    assert version.next_build() == Version(1, 18, 2, 1)
    assert str(version) == "1.18.2"
    assert str(version.next_build()) == "1.18.2.1"


@given(
    left=st.tuples(*(st.integers(min_value=0, max_value=30) for _ in range(4))),
    right=st.tuples(*(st.integers(min_value=0, max_value=30) for _ in range(4))),
)
@settings(max_examples=50, derandomize=True, deadline=None)
def test_property_version_ordering_follows_numeric_tuple(
    left: tuple[int, int, int, int],
    right: tuple[int, int, int, int],
) -> None:
    assert (Version(*left) < Version(*right)) == (left < right)
    assert Version.parse(str(Version(*left))) == Version(*left)


def test_parse_binary_splits_version_series_arch() -> None:
    assert parse_binary("1.19.0-trusty-arm64") == (Version(1, 19, 0), "trusty", "arm64")


def test_parse_binary_rejects_missing_parts() -> None:
    with pytest.raises(ValueError, match="invalid binary version"):
        parse_binary("1.19.0-trusty")


def test_tool_binary_validates_digest() -> None:
    with pytest.raises(ValueError, match="sha256"):
        ToolBinary(version=Version(1, 18, 0), series="jammy", arch="amd64", sha256="abc")


def test_tool_binary_binary_name_and_location() -> None:
    tool = make_tool("1.18.1-jammy-amd64")

    assert tool.binary == "1.18.1-jammy-amd64"
    assert tool.with_location("tools/x.tgz").storage_location == "tools/x.tgz"


def test_version_constraint_wildcards() -> None:
    tool = make_tool("1.18.1-jammy-amd64")

    assert VersionConstraint(series="jammy").matches(tool)
    assert VersionConstraint(major_version=1, minor_version=18, arch="amd64").matches(tool)
    assert not VersionConstraint(minor_version=19).matches(tool)
    assert not VersionConstraint(series="focal").matches(tool)
    assert not VersionConstraint(arch="arm64").matches(tool)


def test_version_constraint_rejects_values_below_wildcard() -> None:
    with pytest.raises(ValueError, match="major_version"):
        VersionConstraint(major_version=-2)


def test_series_table_translates_both_ways() -> None:
    assert version_series("14.04") == "trusty"
    assert series_version("jammy") == "22.04"
    assert "noble" in known_series()
    with pytest.raises(UnknownSeriesError):
        version_series("99.04")
