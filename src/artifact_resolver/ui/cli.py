"""Command-line interface router for artifact-resolver."""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Iterator, Mapping, Sequence
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TextIO

from artifact_resolver import __version__
from artifact_resolver.config import (
    ConfigLoadError,
    ConfigValidationError,
    load_config,
    redact_config,
)
from artifact_resolver.domain.models import MetadataFilter, Version
from artifact_resolver.observability import (
    logging_config_from_settings,
    setup_structured_logging,
    shutdown_logging,
)
from artifact_resolver.persistence import CatalogRepo, LocalBinaryStore, StateDB
from artifact_resolver.providers import ConfiguredProvider, provider_from_config
from artifact_resolver.resolution.transports import RoutingTransport
from artifact_resolver.services import BootstrapService, ImageMetadataService
from artifact_resolver.tools.builder import SubprocessBuildTool, ToolsBuilder
from artifact_resolver.ui.render import (
    CATALOG_HEADERS,
    TOOLS_HEADERS,
    CLIRenderer,
    catalog_rows,
    tools_rows,
)


@dataclass(slots=True, eq=False)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True, slots=True)
class _Runtime:
    config: Mapping[str, Any]
    provider: ConfiguredProvider
    transport: RoutingTransport


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="artifact-resolver",
        description=(
            "artifact-resolver: resolve and reconcile published cloud images and agent tools.\n\n"
            "Common workflows:\n"
            "  artifact-resolver refresh-images        Refresh the image catalog\n"
            "  artifact-resolver list-images           Show stored image metadata\n"
            "  artifact-resolver ensure-tools jammy    Select (or build) bootstrap tools\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to TOML config (default: ./artifact-resolver.toml if present).",
    )
    common.add_argument(
        "--set",
        dest="overrides",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Override one config value, e.g. --set provider.region=us-east-1.",
    )
    common.add_argument("--json", action="store_true", help="Emit JSON output")
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show detailed output.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    refresh_parser = subparsers.add_parser(
        "refresh-images",
        parents=[common],
        help="Refresh image metadata from the configured data sources",
    )
    refresh_parser.set_defaults(handler=_cmd_refresh_images)

    list_parser = subparsers.add_parser(
        "list-images",
        parents=[common],
        help="List stored image metadata, grouped by source",
    )
    list_parser.add_argument("--region", default="")
    list_parser.add_argument("--series", action="append", default=[])
    list_parser.add_argument("--arch", action="append", default=[])
    list_parser.add_argument("--stream", default="")
    list_parser.add_argument("--virt-type", default="")
    list_parser.add_argument("--storage-type", default="")
    list_parser.set_defaults(handler=_cmd_list_images)

    ensure_parser = subparsers.add_parser(
        "ensure-tools",
        parents=[common],
        help="Select the agent tools a bootstrap would use, building them if allowed",
    )
    ensure_parser.add_argument(
        "series", nargs="?", default=None, help="Series (default: provider.default_series)"
    )
    ensure_parser.add_argument("--arch", default=None)
    ensure_parser.add_argument(
        "--cli-version",
        default=__version__,
        help="Client version tools are matched against (default: this package's version).",
    )
    ensure_parser.set_defaults(handler=_cmd_ensure_tools)

    machine_parser = subparsers.add_parser(
        "tools-for-machine",
        parents=[common],
        help="List published tools matching the pinned agent version",
    )
    machine_parser.add_argument("series")
    machine_parser.add_argument("arch")
    machine_parser.set_defaults(handler=_cmd_tools_for_machine)

    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show effective configuration (redacted)",
    )
    config_parser.set_defaults(handler=_cmd_config)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None, *, stdout: TextIO | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    renderer = CLIRenderer(stdout or sys.stdout, verbose=bool(namespace.verbose))
    try:
        result = handler(namespace, renderer)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_refresh_images(args: argparse.Namespace, renderer: CLIRenderer) -> int:
    with _runtime(args) as runtime:
        store = CatalogRepo(StateDB(runtime.config["catalog"]["state_db"]))
        service = ImageMetadataService(runtime.provider, store, transport=runtime.transport)
        report = service.refresh()

    failures = list(report.error.messages) if report.error is not None else []
    if args.json:
        _emit_json(
            renderer,
            {
                "command": "refresh-images",
                "saved": report.saved,
                "failed_records": failures,
                "failed_sources": [
                    {"source": outcome.source.id, "error": outcome.error}
                    for outcome in report.failed_sources
                ],
            },
        )
    else:
        renderer.kv("Saved records", report.saved)
        for outcome in report.failed_sources:
            renderer.warning(f"{outcome.source.description}: {outcome.error}")
        if failures:
            renderer.section("Failed records:")
            renderer.items(failures)
    return 1 if failures else 0


def _cmd_list_images(args: argparse.Namespace, renderer: CLIRenderer) -> int:
    metadata_filter = MetadataFilter(
        region=args.region,
        series=tuple(args.series),
        arches=tuple(args.arch),
        stream=args.stream,
        virt_type=args.virt_type,
        root_storage_type=args.storage_type,
    )
    with _runtime(args) as runtime:
        store = CatalogRepo(StateDB(runtime.config["catalog"]["state_db"]))
        service = ImageMetadataService(runtime.provider, store, transport=runtime.transport)
        records = service.list_metadata(metadata_filter)

    if args.json:
        _emit_json(
            renderer,
            {"command": "list-images", "records": [record.to_dict() for record in records]},
        )
        return 0
    if not records:
        renderer.text("No image metadata found.")
        return 0
    renderer.table(CATALOG_HEADERS, catalog_rows(records))
    return 0


def _cmd_ensure_tools(args: argparse.Namespace, renderer: CLIRenderer) -> int:
    cli_version = _parse_version(args.cli_version)
    with _runtime(args) as runtime:
        series = args.series or runtime.provider.config().default_series
        if not series:
            raise CLIError("no series given and provider.default_series is empty", exit_code=2)
        tools = _bootstrap_service(runtime, cli_version).ensure_tools_availability(
            series, args.arch
        )
    _render_tools(args, renderer, "ensure-tools", tools)
    return 0


def _cmd_tools_for_machine(args: argparse.Namespace, renderer: CLIRenderer) -> int:
    with _runtime(args) as runtime:
        service = _bootstrap_service(runtime, _parse_version(__version__))
        tools = service.tools_for_machine(args.series, args.arch)
    _render_tools(args, renderer, "tools-for-machine", tools)
    return 0


def _cmd_config(args: argparse.Namespace, renderer: CLIRenderer) -> int:
    redacted = redact_config(_load_effective_config(args))
    if args.json:
        _emit_json(renderer, {"command": "config", "config": redacted})
        return 0
    renderer.text(json.dumps(redacted, indent=2, sort_keys=True, ensure_ascii=False))
    return 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@contextmanager
def _runtime(args: argparse.Namespace) -> Iterator[_Runtime]:
    """Load config, start logging, and close transports when the command ends."""

    config = _load_effective_config(args)
    with ExitStack() as stack:
        handle = setup_structured_logging(logging_config_from_settings(config["observability"]))
        stack.callback(shutdown_logging, handle)
        transport = stack.enter_context(RoutingTransport())
        try:
            provider = provider_from_config(config)
        except ValueError as exc:
            raise CLIError(str(exc), exit_code=2) from exc
        yield _Runtime(
            config=config,
            provider=provider,
            transport=transport,
        )


def _bootstrap_service(runtime: _Runtime, cli_version: Version) -> BootstrapService:
    catalog = runtime.config["catalog"]
    build = runtime.config["build"]
    builder: ToolsBuilder | None = None
    if build["command"]:
        builder = ToolsBuilder(
            SubprocessBuildTool(
                build["command"],
                output_root=Path(catalog["binary_store"]).parent / "builds",
                current_version=cli_version,
                timeout_seconds=float(build["timeout_seconds"]),
            )
        )
    return BootstrapService(
        runtime.provider,
        transport=runtime.transport,
        cli_version=cli_version,
        binary_store=LocalBinaryStore(catalog["binary_store"]),
        builder=builder,
    )


def _render_tools(
    args: argparse.Namespace,
    renderer: CLIRenderer,
    command: str,
    tools: Sequence[Any],
) -> None:
    if args.json:
        _emit_json(
            renderer,
            {
                "command": command,
                "tools": [
                    {
                        "binary": tool.binary,
                        "size": tool.size,
                        "sha256": tool.sha256,
                        "location": tool.storage_location,
                    }
                    for tool in tools
                ],
            },
        )
        return
    if not tools:
        renderer.text("No matching tools found.")
        return
    renderer.table(TOOLS_HEADERS, tools_rows(tools))


def _load_effective_config(args: argparse.Namespace) -> dict[str, Any]:
    try:
        return load_config(args.config_path, cli_overrides=_parse_overrides(args.overrides))
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=2) from exc


def _parse_overrides(raw: Sequence[str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for item in raw:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise CLIError(f"invalid --set value {item!r}; expected KEY=VALUE", exit_code=2)
        overrides[key.strip()] = value
    return overrides


def _parse_version(text: str) -> Version:
    try:
        return Version.parse(text)
    except ValueError as exc:
        raise CLIError(str(exc), exit_code=2) from exc


def _emit_json(renderer: CLIRenderer, payload: Mapping[str, object]) -> None:
    """Emit a JSON payload with deterministic formatting."""

    renderer.text(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


__all__ = ["CLIError", "build_parser", "run_cli"]
