"""Agent tools selection and build-on-demand."""

from artifact_resolver.tools.builder import (
    BuildCommandError,
    BuildTool,
    SubprocessBuildTool,
    ToolsBuilder,
    tools_storage_name,
)
from artifact_resolver.tools.resolver import (
    ToolsSelection,
    VersionArchResolver,
    find_tools,
    newest_per_arch,
)

__all__ = [
    "BuildCommandError",
    "BuildTool",
    "SubprocessBuildTool",
    "ToolsBuilder",
    "ToolsSelection",
    "VersionArchResolver",
    "find_tools",
    "newest_per_arch",
    "tools_storage_name",
]
