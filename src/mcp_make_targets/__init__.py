"""MCP Make Targets - Expose Makefile targets, with their variables, as MCP tools."""

from mcp_make_targets.core.executor import DryRunMakeExecutor, MakeExecutor, SubprocessMakeExecutor
from mcp_make_targets.core.models import ExecutionResult, MakefileMetadata, MakeTarget, MakeVariable
from mcp_make_targets.core.parser import MakefileParser, RegexMakefileParser
from mcp_make_targets.exceptions import (
    MakefileNotFoundError,
    MakefileParseError,
    MCPMakeError,
    TargetNotFoundError,
)
from mcp_make_targets.server import MakefileMCPServer, setup_logging

__version__ = "0.1.0"

__all__ = [
    "MakeTarget",
    "MakeVariable",
    "MakefileMetadata",
    "ExecutionResult",
    "MakefileParser",
    "RegexMakefileParser",
    "MakeExecutor",
    "SubprocessMakeExecutor",
    "DryRunMakeExecutor",
    "MakefileMCPServer",
    "setup_logging",
    "MCPMakeError",
    "MakefileNotFoundError",
    "MakefileParseError",
    "TargetNotFoundError",
]
