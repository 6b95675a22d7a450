"""MCP server that exposes Makefile targets as tools."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

from mcp.server import Server
from mcp.types import TextContent, Tool

from mcp_make_targets.core.executor import DEFAULT_TIMEOUT, MakeExecutor, SubprocessMakeExecutor
from mcp_make_targets.core.models import ExecutionResult, MakefileMetadata, MakeTarget
from mcp_make_targets.core.parser import MakefileParser, RegexMakefileParser
from mcp_make_targets.exceptions import MakefileNotFoundError, MCPMakeError, TargetNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_TOOL_PREFIX = "make_"

# Tool argument reserved for extra raw make arguments
RAW_ARGS_FIELD = "args"


def setup_logging(level: str = "INFO") -> None:
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def build_input_schema(target: MakeTarget) -> dict[str, Any]:
    """JSON schema for a target's tool arguments."""
    properties: dict[str, Any] = {}
    for variable in target.variables:
        prop: dict[str, Any] = {
            "type": "string",
            "description": variable.description or f"Value for {variable.name}",
        }
        if variable.default is not None:
            prop["default"] = variable.default
        properties[variable.name] = prop

    properties[RAW_ARGS_FIELD] = {
        "type": "string",
        "description": "Additional raw arguments to pass to make",
    }

    return {
        "type": "object",
        "properties": properties,
        "required": target.required_variables,
    }


def build_tool_description(target: MakeTarget) -> str:
    description = target.description
    if target.usage_hint:
        description += f"\n{target.usage_hint}"
    if target.dependencies:
        description += f" (depends on: {', '.join(target.dependencies)})"
    return description


class MakefileMCPServer:
    """MCP server that exposes Makefile targets as tools."""

    def __init__(
        self,
        makefile_path: Path,
        parser: MakefileParser | None = None,
        executor: MakeExecutor | None = None,
        allowed_targets: list[str] | None = None,
        tool_prefix: str = DEFAULT_TOOL_PREFIX,
        timeout: int = DEFAULT_TIMEOUT,
        max_output_chars: int = 0,
    ):
        self.makefile_path = makefile_path
        self.parser = parser or RegexMakefileParser()
        self.executor = executor or SubprocessMakeExecutor()
        self.allowed_targets = set(allowed_targets) if allowed_targets else None
        self.tool_prefix = tool_prefix
        self.timeout = timeout
        self.max_output_chars = max_output_chars
        self.metadata: MakefileMetadata | None = None
        self.server = Server("mcp-make-targets")

        # Register handlers
        @self.server.list_tools()
        async def handle_list_tools() -> list[Tool]:
            return await self._handle_list_tools()

        @self.server.call_tool()
        async def handle_call_tool(name: str, arguments: dict) -> list[TextContent]:
            return await self._handle_call_tool(name, arguments)

    async def initialize(self) -> None:
        """Initialize server by parsing Makefile."""
        logger.info(f"Parsing Makefile: {self.makefile_path}")
        self.metadata = self.parser.parse(self.makefile_path)
        logger.info(f"Found {len(self.metadata.targets)} targets")

        # Validate allowed_targets if specified
        if self.allowed_targets:
            logger.info(f"Allowed targets filter: {len(self.allowed_targets)} targets")

            available = set(self.metadata.target_names())
            missing_targets = self.allowed_targets - available
            if missing_targets:
                missing_list = ", ".join(sorted(missing_targets))
                raise ValueError(
                    f"Allowed targets not found in Makefile: {missing_list}. "
                    f"Available targets: {', '.join(sorted(available))}"
                )

    def _reload(self) -> MakefileMetadata:
        """Parse the Makefile again so tools always reflect the file on disk."""
        try:
            self.metadata = self.parser.parse(self.makefile_path)
        except MakefileNotFoundError:
            logger.warning(f"Makefile disappeared: {self.makefile_path}")
            self.metadata = MakefileMetadata(path=self.makefile_path)
        except MCPMakeError as e:
            logger.warning(f"Could not read Makefile, exposing no targets: {e}")
            self.metadata = MakefileMetadata(path=self.makefile_path)
        return self.metadata

    def _is_allowed(self, target_name: str) -> bool:
        return self.allowed_targets is None or target_name in self.allowed_targets

    async def _handle_list_tools(self) -> list[Tool]:
        """Return all Makefile targets as MCP tools."""
        metadata = self._reload()

        tools = []
        seen: set[str] = set()
        for target in metadata.targets:
            # Only the first declaration of a name becomes a tool
            if target.name in seen:
                continue
            seen.add(target.name)

            if not self._is_allowed(target.name):
                logger.debug(f"Skipping non-allowed target: {target.name}")
                continue

            tools.append(
                Tool(
                    name=target.tool_name(self.tool_prefix),
                    description=build_tool_description(target),
                    inputSchema=build_input_schema(target),
                )
            )

        logger.info(f"Exposing {len(tools)} targets as MCP tools")
        return tools

    def _collect_variables(self, arguments: dict[str, Any]) -> tuple[dict[str, str], str]:
        """Split tool arguments into make variable assignments and raw args."""
        variables: dict[str, str] = {}
        for key, value in arguments.items():
            if key == RAW_ARGS_FIELD or value is None or value == "":
                continue
            variables[key] = str(value)

        raw_args = arguments.get(RAW_ARGS_FIELD) or ""
        return variables, str(raw_args)

    async def _handle_call_tool(self, name: str, arguments: dict | None) -> list[TextContent]:
        """Execute a make target."""
        arguments = arguments or {}
        try:
            if not name.startswith(self.tool_prefix):
                raise ValueError(f"Unknown tool: {name}")
            target_name = name[len(self.tool_prefix) :]

            metadata = self._reload()
            if metadata.get_target(target_name) is None:
                raise TargetNotFoundError(target_name, metadata.target_names())

            if not self._is_allowed(target_name):
                allowed = ", ".join(sorted(self.allowed_targets or []))
                raise ValueError(f"Target '{target_name}' is not in the allowlist. Allowed targets: {allowed}")

            variables, raw_args = self._collect_variables(arguments)
            # Reject bad input before anything is spawned
            self.executor.build_command(target_name, self.makefile_path, variables, raw_args)
        except (TargetNotFoundError, ValueError) as e:
            # User-facing errors - return clean message
            logger.warning(f"Tool call rejected: {e}")
            return [TextContent(type="text", text=f"Error: {str(e)}")]
        except Exception as e:
            # Unexpected errors - log details but return generic message
            logger.exception(f"Unexpected error in tool call: {e}")
            return [
                TextContent(type="text", text="An unexpected error occurred. Please check the server logs for details.")
            ]

        logger.info(f"Executing target: {target_name} (timeout: {self.timeout}s)")

        try:
            result = await self.executor.execute(
                target=target_name,
                makefile=self.makefile_path,
                variables=variables,
                raw_args=raw_args,
                timeout=self.timeout,
            )
        except asyncio.CancelledError:
            logger.info(f"Target '{target_name}' was cancelled")
            return [TextContent(type="text", text=f"Target '{target_name}' was cancelled before completion.")]
        except FileNotFoundError as e:
            logger.error(f"File not found during execution: {e}")
            return [
                TextContent(type="text", text=f"Error: {str(e)}. Check that the Makefile exists and is accessible.")
            ]
        except PermissionError as e:
            logger.error(f"Permission denied during execution: {e}")
            return [
                TextContent(
                    type="text",
                    text="Error: Permission denied. Check file permissions for the Makefile and working directory.",
                )
            ]
        except Exception as e:
            logger.exception(f"Execution failed for target '{target_name}': {e}")
            return [TextContent(type="text", text=f"Failed to execute make {target_name}: {str(e)}")]

        return [TextContent(type="text", text=self._format_result(result))]

    def _format_result(self, result: ExecutionResult) -> str:
        if result.success:
            output = f"Successfully executed: {result.command_line}\n"
        else:
            output = f"Failed to execute {result.command_line}\n"
        output += f"Exit Code: {result.exit_code}\n"
        output += f"Duration: {result.duration:.2f}s\n\n"

        # Truncate output if needed to avoid token overload
        text = result.output or ""
        if self.max_output_chars > 0 and len(text) > self.max_output_chars:
            omitted = len(text) - self.max_output_chars
            text = text[: self.max_output_chars] + f"\n\n... (truncated, {omitted} chars omitted)"
            output += "Output:\n" + text + "\n"
            output += f"\nNote: Output exceeded {self.max_output_chars} characters and was truncated.\n"
        elif text:
            output += "Output:\n" + text + "\n"

        return output

    async def run(self) -> None:
        """Run the MCP server with stdio transport."""
        from mcp.server.stdio import stdio_server

        await self.initialize()

        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                self.server.create_initialization_options(),
            )
