"""Local binary store placement, checksum verification, and path guards."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from artifact_resolver.persistence.binary_store import BinaryStoreError, LocalBinaryStore
from artifact_resolver.utils.hashing import sha256_bytes

if TYPE_CHECKING:
    from pathlib import Path


def _tarball(tmp_path: Path, payload: bytes = b"agent tools") -> Path:
    path = tmp_path / "agent.tgz"
    path.write_bytes(payload)
    return path


def test_put_copies_binary_under_storage_name(tmp_path: Path) -> None:
    store = LocalBinaryStore(tmp_path / "store")
    source = _tarball(tmp_path)

    location = store.put(
        source, "tools/releases/agent-1.19.0.1-jammy-amd64.tgz", sha256=sha256_bytes(b"agent tools")
    )

    assert location == "tools/releases/agent-1.19.0.1-jammy-amd64.tgz"
    stored = tmp_path / "store" / "tools" / "releases" / "agent-1.19.0.1-jammy-amd64.tgz"
    assert stored.read_bytes() == b"agent tools"
    assert store.exists(location)


def test_put_rejects_checksum_mismatch(tmp_path: Path) -> None:
    store = LocalBinaryStore(tmp_path / "store")

    with pytest.raises(BinaryStoreError, match="checksum mismatch"):
        store.put(_tarball(tmp_path), "tools/agent.tgz", sha256="0" * 64)

    assert not store.exists("tools/agent.tgz")


def test_put_requires_existing_file(tmp_path: Path) -> None:
    with pytest.raises(BinaryStoreError, match="not a file"):
        LocalBinaryStore(tmp_path).put(tmp_path / "missing.tgz", "tools/agent.tgz")


@pytest.mark.parametrize("storage_name", ["../escape.tgz", "/etc/agent.tgz", "tools/../../x.tgz"])
def test_storage_names_cannot_escape_root(tmp_path: Path, storage_name: str) -> None:
    store = LocalBinaryStore(tmp_path / "store")

    with pytest.raises(BinaryStoreError):
        store.put(_tarball(tmp_path), storage_name)
