"""Executable CLI entrypoint for ``artifact_resolver``."""

from __future__ import annotations

import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING, Final

from artifact_resolver.config import ConfigLoadError, ConfigValidationError
from artifact_resolver.domain.errors import CatalogError, RecordPersistError

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


class ExitCode(IntEnum):
    """Process exit codes; scripts may rely on these values."""

    SUCCESS = 0
    PARTIAL_FAILURE = 1
    CONFIG_ERROR = 2
    RESOLUTION_ERROR = 3
    INTERNAL_ERROR = 4


# First match along the cause chain wins, so order matters.
_EXIT_ROUTES: Final[tuple[tuple[tuple[type[BaseException], ...], ExitCode], ...]] = (
    ((RecordPersistError,), ExitCode.PARTIAL_FAILURE),
    ((ConfigLoadError, ConfigValidationError), ExitCode.CONFIG_ERROR),
    ((CatalogError,), ExitCode.RESOLUTION_ERROR),
    ((FileNotFoundError, NotADirectoryError, PermissionError, ValueError), ExitCode.CONFIG_ERROR),
)


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Run the CLI and turn every outcome, including uncaught errors, into an exit code."""

    try:
        from artifact_resolver.ui.cli import run_cli

        return _coerce_exit_code(run_cli(argv))
    except SystemExit as exc:
        return _coerce_exit_code(exc.code)
    except Exception as exc:  # noqa: BLE001 - CLI boundary normalization.
        code = exit_code_for(exc)
        if code is ExitCode.INTERNAL_ERROR:
            traceback.print_exception(exc, file=sys.stderr)
        else:
            print(str(exc).strip() or type(exc).__name__, file=sys.stderr)
        return int(code)


def exit_code_for(exc: BaseException) -> ExitCode:
    for item in _cause_chain(exc):
        for types, code in _EXIT_ROUTES:
            if isinstance(item, types):
                return code
    return ExitCode.INTERNAL_ERROR


def _cause_chain(exc: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        if current.__cause__ is not None:
            current = current.__cause__
        elif not current.__suppress_context__:
            current = current.__context__
        else:
            current = None


def _coerce_exit_code(raw: object) -> int:
    if raw is None:
        return int(ExitCode.SUCCESS)
    if isinstance(raw, int) and raw in set(ExitCode):
        return raw
    if isinstance(raw, str) and raw.strip():
        print(raw.strip(), file=sys.stderr)
    return int(ExitCode.INTERNAL_ERROR)


__all__ = ["ExitCode", "cli_entrypoint", "exit_code_for"]
