"""Utility exports for filesystem, hashing, and host architecture helpers."""

from artifact_resolver.utils.arch import host_arch, normalize_arch
from artifact_resolver.utils.fs import is_within, temp_directory
from artifact_resolver.utils.hashing import sha256_bytes, sha256_file

__all__ = [
    "host_arch",
    "is_within",
    "normalize_arch",
    "sha256_bytes",
    "sha256_file",
    "temp_directory",
]
