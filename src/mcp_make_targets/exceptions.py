"""Custom exceptions for the make targets MCP server."""


class MCPMakeError(Exception):
    """Base exception for all make targets server errors."""

    pass


class MakefileNotFoundError(MCPMakeError):
    """Makefile not found at specified path."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Makefile not found: {path}")


class MakefileParseError(MCPMakeError):
    """Makefile exists but could not be read."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(f"Failed to parse {path}: {message}")


class TargetNotFoundError(MCPMakeError):
    """Target not declared in the Makefile."""

    def __init__(self, target: str, available: list[str] | None = None) -> None:
        self.target = target
        self.available = available or []
        message = f"Target '{target}' not found in Makefile"
        if available is not None:
            message += f". Available targets: {', '.join(available) or 'none'}"
        super().__init__(message)
