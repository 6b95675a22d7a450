#!/usr/bin/env python3
"""Entry point for the make targets MCP server."""

import argparse
import asyncio
import os
import shutil
import sys
from pathlib import Path

from mcp_make_targets.core.executor import DEFAULT_TIMEOUT
from mcp_make_targets.core.parser import RegexMakefileParser
from mcp_make_targets.server import DEFAULT_TOOL_PREFIX, MakefileMCPServer, setup_logging

SUBCOMMANDS = ["preview", "list", "serve"]


def resolve_makefile(path: Path) -> Path:
    """Accept either a Makefile or the directory holding it."""
    if path.is_dir():
        return path / "Makefile"
    return path


def _load_targets(args):
    makefile = resolve_makefile(args.makefile)
    if not makefile.exists():
        print(f"Error: Makefile not found: {makefile}", file=sys.stderr)
        sys.exit(1)
    return makefile, RegexMakefileParser().parse(makefile)


def cmd_preview(args):
    """Preview what tools would be exposed from a Makefile."""
    makefile, metadata = _load_targets(args)

    print(f"Makefile: {makefile}")
    print(f"Total targets: {len(metadata.targets)}")
    print(f"Global variables: {len(metadata.variables)}")
    print()

    if not metadata.targets:
        print("No targets would be exposed as MCP tools.")
        return

    for target in metadata.targets:
        print(f"\n  {target.tool_name(args.prefix)}")
        print(f"    {target.description}")
        if target.usage_hint:
            print(f"    Usage: {target.usage_hint}")
        if target.dependencies:
            print(f"    Depends on: {', '.join(target.dependencies)}")
        for variable in target.variables:
            marker = "*" if variable.required else " "
            default = f" (default: {variable.default})" if variable.default is not None else ""
            print(f"    {marker} {variable.name}{default}")

    print(f"\n{'=' * 70}")
    print("Variables marked * are required. Every tool also accepts raw 'args'.")
    print()


def cmd_list(args):
    """List tool names that would be exposed."""
    _, metadata = _load_targets(args)

    for name in metadata.target_names():
        print(f"{args.prefix}{name}")


def cmd_serve(args):
    """Run the MCP server."""
    # Read configuration from environment variables (with CLI args as overrides)
    log_level = os.getenv("MCP_MAKE_LOG_LEVEL", args.log_level)
    makefile_path = resolve_makefile(Path(os.getenv("MCP_MAKE_PATH", str(args.makefile))))

    # Allowed targets from env (comma-separated) or args
    allowed_targets = args.allowed_targets
    if not allowed_targets and os.getenv("MCP_MAKE_ALLOWED_TARGETS"):
        allowed_targets = [t.strip() for t in os.getenv("MCP_MAKE_ALLOWED_TARGETS", "").split(",") if t.strip()]

    timeout = args.timeout
    if timeout is None:
        raw_timeout = os.getenv("MCP_MAKE_TIMEOUT", str(DEFAULT_TIMEOUT))
        try:
            timeout = int(raw_timeout)
        except ValueError:
            print(f"Error: MCP_MAKE_TIMEOUT must be an integer, got: {raw_timeout}", file=sys.stderr)
            sys.exit(1)

    setup_logging(log_level)

    # Validate Makefile exists
    if not makefile_path.exists():
        print(f"Error: Makefile not found: {makefile_path}", file=sys.stderr)
        sys.exit(1)

    if shutil.which("make") is None:
        print("Error: 'make' command not found. Please install make before using this server", file=sys.stderr)
        sys.exit(1)

    server = MakefileMCPServer(
        makefile_path=makefile_path,
        allowed_targets=allowed_targets,
        tool_prefix=args.prefix,
        timeout=timeout,
        max_output_chars=args.max_output_chars,
    )

    asyncio.run(server.run())


def _add_makefile_argument(subparser: argparse.ArgumentParser) -> None:
    subparser.add_argument(
        "makefile",
        type=Path,
        nargs="?",
        default=Path("Makefile"),
        help="Path to Makefile or its directory (default: ./Makefile)",
    )
    subparser.add_argument(
        "--prefix",
        default=DEFAULT_TOOL_PREFIX,
        help=f"Tool name prefix (default: {DEFAULT_TOOL_PREFIX})",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="MCP server that exposes Makefile targets as tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Preview what tools would be exposed
  mcp-make-targets preview ./Makefile

  # List tool names only
  mcp-make-targets list ./Makefile

  # Run MCP server over stdio
  mcp-make-targets serve ./Makefile

  # Run with allowed targets filter
  mcp-make-targets serve ./Makefile --allowed-targets test build deploy
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    preview_parser = subparsers.add_parser("preview", help="Preview what MCP tools would be exposed")
    _add_makefile_argument(preview_parser)
    preview_parser.set_defaults(func=cmd_preview)

    list_parser = subparsers.add_parser("list", help="List MCP tool names")
    _add_makefile_argument(list_parser)
    list_parser.set_defaults(func=cmd_list)

    serve_parser = subparsers.add_parser("serve", help="Run MCP server")
    _add_makefile_argument(serve_parser)
    serve_parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    serve_parser.add_argument(
        "--allowed-targets",
        nargs="+",
        help="Allowlist of allowed targets (default: all targets)",
    )
    serve_parser.add_argument(
        "--timeout",
        type=int,
        default=None,
        help=f"Timeout in seconds for each make run (default: {DEFAULT_TIMEOUT})",
    )
    serve_parser.add_argument(
        "--max-output-chars",
        type=int,
        default=0,
        help="Truncate command output beyond this many characters (default: 0, unlimited)",
    )
    serve_parser.set_defaults(func=cmd_serve)

    return parser


def main(argv: list[str] | None = None):
    """Main entry point with subcommands."""
    argv = list(sys.argv[1:] if argv is None else argv)

    # A bare path as first argument means 'serve'
    if argv and not argv[0].startswith("-") and argv[0] not in SUBCOMMANDS:
        argv.insert(0, "serve")

    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
