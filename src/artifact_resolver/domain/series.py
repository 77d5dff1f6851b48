"""Ubuntu series name <-> version translation used when decoding published images."""

from __future__ import annotations

from types import MappingProxyType
from typing import Final

_SERIES_VERSIONS: Final[MappingProxyType[str, str]] = MappingProxyType(
    {
        "precise": "12.04",
        "quantal": "12.10",
        "raring": "13.04",
        "saucy": "13.10",
        "trusty": "14.04",
        "utopic": "14.10",
        "vivid": "15.04",
        "wily": "15.10",
        "xenial": "16.04",
        "yakkety": "16.10",
        "zesty": "17.04",
        "artful": "17.10",
        "bionic": "18.04",
        "cosmic": "18.10",
        "disco": "19.04",
        "eoan": "19.10",
        "focal": "20.04",
        "groovy": "20.10",
        "hirsute": "21.04",
        "impish": "21.10",
        "jammy": "22.04",
        "kinetic": "22.10",
        "lunar": "23.04",
        "mantic": "23.10",
        "noble": "24.04",
    }
)
_VERSION_SERIES: Final[MappingProxyType[str, str]] = MappingProxyType(
    {version: series for series, version in _SERIES_VERSIONS.items()}
)


class UnknownSeriesError(ValueError):
    """Raised when a series name or version is not in the table."""


def version_series(version: str) -> str:
    """Return the series name for a release version such as ``14.04``."""

    series = _VERSION_SERIES.get(version.strip())
    if series is None:
        raise UnknownSeriesError(f"unknown series for version: {version!r}")
    return series


def series_version(series: str) -> str:
    """Return the release version for a series name such as ``trusty``."""

    version = _SERIES_VERSIONS.get(series.strip())
    if version is None:
        raise UnknownSeriesError(f"unknown version for series: {series!r}")
    return version


def known_series() -> tuple[str, ...]:
    return tuple(_SERIES_VERSIONS)


__all__ = ["UnknownSeriesError", "known_series", "series_version", "version_series"]
