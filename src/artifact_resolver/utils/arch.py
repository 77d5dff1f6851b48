"""Host architecture detection, normalized to the names published catalogs use."""

from __future__ import annotations

import platform
import re
from typing import Final

_ARCH_ALIASES: Final[tuple[tuple[re.Pattern[str], str], ...]] = (
    (re.compile(r"^(x86_64|amd64)$"), "amd64"),
    (re.compile(r"^i?[3-6]86$"), "i386"),
    (re.compile(r"^(aarch64|arm64)$"), "arm64"),
    (re.compile(r"^(armv7l|armv7hl|armhf|arm)$"), "armhf"),
    (re.compile(r"^(ppc64le|ppc64el)$"), "ppc64el"),
    (re.compile(r"^ppc64$"), "ppc64"),
    (re.compile(r"^s390x$"), "s390x"),
    (re.compile(r"^riscv64$"), "riscv64"),
)


def normalize_arch(raw: str) -> str:
    """Map a kernel/machine architecture name to its catalog name.

    Unknown names are returned lower-cased and otherwise unchanged.
    """

    candidate = raw.strip().lower()
    for pattern, name in _ARCH_ALIASES:
        if pattern.fullmatch(candidate):
            return name
    return candidate


def host_arch() -> str:
    """Return the normalized architecture of the running machine."""

    return normalize_arch(platform.machine())


__all__ = ["host_arch", "normalize_arch"]
