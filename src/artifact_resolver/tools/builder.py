"""Build-on-demand: produce one agent tarball for a target version, series, and arch."""

from __future__ import annotations

import os
import shutil
import subprocess
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

import structlog

from artifact_resolver.constants import TOOLS_STORAGE_PREFIX
from artifact_resolver.domain.errors import BuildToolError
from artifact_resolver.domain.models import BuiltArtifact, Version
from artifact_resolver.utils.fs import temp_directory
from artifact_resolver.utils.hashing import sha256_file

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

FORCE_VERSION_ENV = "ARTIFACT_RESOLVER_FORCE_VERSION"
TARBALL_SUFFIX = ".tgz"


def tools_storage_name(version: Version, series: str, arch: str) -> str:
    """Return ``tools/releases/agent-<version>-<series>-<arch>.tgz``."""

    return (TOOLS_STORAGE_PREFIX / f"agent-{version}-{series}-{arch}{TARBALL_SUFFIX}").as_posix()


class BuildTool(Protocol):
    """External collaborator that produces an agent tarball."""

    def build_tarball(self, force_version: Version | None) -> BuiltArtifact: ...


class BuildCommandError(BuildToolError):
    """Raised when the configured build command exits non-zero."""

    def __init__(
        self,
        *,
        command: Sequence[str],
        returncode: int,
        stdout: str,
        stderr: str,
    ) -> None:
        self.command = tuple(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        detail = stderr.strip() or stdout.strip()
        message = f"build command failed ({returncode}): {' '.join(command)}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


@dataclass(frozen=True, slots=True)
class CommandExecutionResult:
    command: tuple[str, ...]
    cwd: Path
    returncode: int
    stdout: str
    stderr: str


class SubprocessBuildTool:
    """
    ``BuildTool`` that runs a configured command in a scratch directory.

    The command receives the forced version through ``ARTIFACT_RESOLVER_FORCE_VERSION``
    and must leave exactly one ``.tgz`` in its working directory. The tarball is
    copied under ``output_root`` before the scratch directory is removed.
    """

    def __init__(
        self,
        command: Sequence[str],
        *,
        output_root: Path | str,
        current_version: Version,
        timeout_seconds: float = 900.0,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        self._command = tuple(command)
        self._output_root = Path(output_root).expanduser()
        self._current_version = current_version
        self._timeout_seconds = timeout_seconds
        self._environ = dict(os.environ if environ is None else environ)

    def build_tarball(self, force_version: Version | None) -> BuiltArtifact:
        if not self._command:
            raise BuildToolError("no build command configured; set [build] command")
        version = force_version if force_version is not None else self._current_version

        with temp_directory(prefix=f"agent-build-{version}-") as stage_dir:
            result = self._run(stage_dir, version)
            if result.returncode != 0:
                raise BuildCommandError(
                    command=result.command,
                    returncode=result.returncode,
                    stdout=result.stdout,
                    stderr=result.stderr,
                )
            tarball = _select_tarball(stage_dir)
            checksum = sha256_file(tarball)
            persisted = self._persist(version, tarball)

        return BuiltArtifact(
            version=version,
            path=str(persisted),
            storage_name=persisted.name,
            size=persisted.stat().st_size,
            sha256=checksum,
        )

    def _run(self, cwd: Path, version: Version) -> CommandExecutionResult:
        env = {**self._environ, FORCE_VERSION_ENV: str(version)}
        try:
            completed = subprocess.run(
                list(self._command),
                cwd=cwd,
                env=env,
                check=False,
                capture_output=True,
                text=True,
                timeout=self._timeout_seconds,
            )
        except subprocess.TimeoutExpired as exc:
            raise BuildToolError(
                f"build command timed out after {self._timeout_seconds} seconds: "
                f"{' '.join(self._command)}"
            ) from exc
        except OSError as exc:
            raise BuildToolError(f"cannot run build command {self._command[0]!r}: {exc}") from exc

        return CommandExecutionResult(
            command=self._command,
            cwd=cwd,
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )

    def _persist(self, version: Version, source_path: Path) -> Path:
        target_dir = self._output_root / str(version)
        target_dir.mkdir(parents=True, exist_ok=True)
        target_path = target_dir / source_path.name
        shutil.copy2(source_path, target_path)
        return target_path


class ToolsBuilder:
    """Drive a ``BuildTool`` for one target and stamp the result."""

    def __init__(self, build_tool: BuildTool, *, logger: Any | None = None) -> None:
        self._build_tool = build_tool
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def build(self, cli_version: Version, *, series: str, arch: str) -> BuiltArtifact:
        """
        Build tools tagged with ``cli_version`` plus one build.

        Any error raised by the build tool propagates as the same exception
        object, annotated with the build target.
        """

        target = cli_version.next_build()
        self._logger.info(
            "tools_build_started", version=str(target), series=series, arch=arch
        )
        try:
            built = self._build_tool.build_tarball(target)
        except Exception as exc:
            exc.add_note(f"while building agent tools {target}-{series}-{arch}")
            raise

        stamped = replace(
            built,
            version=target,
            series=series,
            arch=arch,
            storage_name=tools_storage_name(target, series, arch),
        )
        self._logger.info(
            "tools_build_finished",
            version=str(target),
            series=series,
            arch=arch,
            size=stamped.size,
            sha256=stamped.sha256,
        )
        return stamped


def _select_tarball(directory: Path) -> Path:
    candidates = sorted(
        path for path in directory.iterdir() if path.is_file() and path.suffix == TARBALL_SUFFIX
    )
    if len(candidates) != 1:
        names = ", ".join(path.name for path in candidates) or "none"
        raise BuildToolError(
            f"build command must produce exactly one {TARBALL_SUFFIX} tarball, found: {names}"
        )
    return candidates[0]


__all__ = [
    "FORCE_VERSION_ENV",
    "BuildCommandError",
    "BuildTool",
    "CommandExecutionResult",
    "SubprocessBuildTool",
    "ToolsBuilder",
    "tools_storage_name",
]
