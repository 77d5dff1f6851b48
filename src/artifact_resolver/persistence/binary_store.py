"""Local binary store that built tool tarballs are uploaded into."""

from __future__ import annotations

import shutil
from pathlib import Path, PurePosixPath
from typing import Protocol

from artifact_resolver.utils.fs import is_within
from artifact_resolver.utils.hashing import sha256_file


class BinaryStoreError(RuntimeError):
    """Raised when a binary cannot be placed into the store."""


class BinaryStore(Protocol):
    """Storage for agent tarballs; ``put`` returns the stored location."""

    def put(self, source: Path, storage_name: str, *, sha256: str | None = None) -> str: ...


class LocalBinaryStore:
    """Directory-backed ``BinaryStore``; locations are POSIX paths relative to ``root``."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).expanduser()

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, storage_name: str) -> Path:
        relative = PurePosixPath(storage_name)
        if relative.is_absolute() or ".." in relative.parts or not relative.parts:
            raise BinaryStoreError(f"invalid storage name {storage_name!r}")
        target = self._root.joinpath(*relative.parts)
        if not is_within(target, self._root):
            raise BinaryStoreError(f"storage name escapes store root: {storage_name!r}")
        return target

    def put(self, source: Path, storage_name: str, *, sha256: str | None = None) -> str:
        if not source.is_file():
            raise BinaryStoreError(f"binary to store is not a file: {source!s}")
        if sha256 is not None and sha256_file(source) != sha256:
            raise BinaryStoreError(f"checksum mismatch for {source.name}: expected {sha256}")

        target = self.path_for(storage_name)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)
        return PurePosixPath(storage_name).as_posix()

    def exists(self, storage_name: str) -> bool:
        return self.path_for(storage_name).is_file()


__all__ = ["BinaryStore", "BinaryStoreError", "LocalBinaryStore"]
