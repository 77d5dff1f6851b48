"""Plain-text output rendering for the artifact-resolver CLI.

Purpose
- Keep command handlers free of formatting details.
- Produce deterministic output that is easy to assert on in tests.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TextIO

if TYPE_CHECKING:
    from collections.abc import Sequence

    from artifact_resolver.domain.models import CatalogRecord, ToolBinary


class CLIRenderer:
    """Thin CLI output renderer writing to one text stream."""

    def __init__(self, stream: TextIO, *, verbose: bool = False) -> None:
        self.verbose = verbose
        self._stream = stream

    def text(self, line: str) -> None:
        print(line, file=self._stream)

    def kv(self, key: str, value: object) -> None:
        print(f"{key}: {value}", file=self._stream)

    def section(self, title: str) -> None:
        print(f"\n{title}", file=self._stream)

    def warning(self, text: str) -> None:
        print(f"  Warning: {text}", file=self._stream)

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        for entry in entries:
            print(f"  {prefix}{entry}", file=self._stream)

    def table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        *,
        title: str | None = None,
    ) -> None:
        """Print a formatted ASCII table; nothing is printed for zero rows."""

        if not rows:
            return

        widths = [len(header) for header in headers]
        for row in rows:
            for index, cell in enumerate(row[: len(headers)]):
                widths[index] = max(widths[index], len(cell))

        def _pad(cells: Sequence[str]) -> str:
            padded = [
                (cells[index] if index < len(cells) else "").ljust(width)
                for index, width in enumerate(widths)
            ]
            return "  ".join(padded).rstrip()

        if title:
            self.section(title)
        print(f"  {_pad(headers)}", file=self._stream)
        print(f"  {'  '.join('-' * width for width in widths)}", file=self._stream)
        for row in rows:
            print(f"  {_pad(row)}", file=self._stream)


def catalog_rows(records: Sequence[CatalogRecord]) -> list[list[str]]:
    return [
        [
            record.source,
            record.series,
            record.arch,
            record.region,
            record.virt_type,
            record.root_storage_type,
            record.artifact_id,
        ]
        for record in records
    ]


CATALOG_HEADERS: tuple[str, ...] = (
    "SOURCE",
    "SERIES",
    "ARCH",
    "REGION",
    "VIRT",
    "STORAGE",
    "IMAGE ID",
)


def tools_rows(tools: Sequence[ToolBinary]) -> list[list[str]]:
    return [
        [tool.binary, str(tool.size), tool.sha256[:12], tool.storage_location]
        for tool in tools
    ]


TOOLS_HEADERS: tuple[str, ...] = ("BINARY", "SIZE", "SHA256", "LOCATION")


__all__ = [
    "CATALOG_HEADERS",
    "TOOLS_HEADERS",
    "CLIRenderer",
    "catalog_rows",
    "tools_rows",
]
