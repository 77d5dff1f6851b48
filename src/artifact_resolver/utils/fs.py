"""Filesystem helpers shared by the binary store and the agent builder."""

from __future__ import annotations

import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

__all__ = ["is_within", "temp_directory"]


def is_within(candidate: str | os.PathLike[str], root: str | os.PathLike[str]) -> bool:
    # Symlinks are followed so a link inside the store cannot point outside it.
    return Path(candidate).resolve().is_relative_to(Path(root).resolve())


@contextmanager
def temp_directory(prefix: str = "artifact-resolver-") -> Iterator[Path]:
    """Scratch directory removed on exit, even when the build fails."""

    scratch = tempfile.mkdtemp(prefix=prefix)
    try:
        yield Path(scratch)
    finally:
        shutil.rmtree(scratch, ignore_errors=True)
