#!/usr/bin/env python3
"""Entry point for the make targets MCP server."""

from mcp_make_targets.__main__ import main

if __name__ == "__main__":
    main()
