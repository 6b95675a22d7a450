"""Tests for custom exceptions."""

from mcp_make_targets.exceptions import (
    MakefileNotFoundError,
    MakefileParseError,
    MCPMakeError,
    TargetNotFoundError,
)


class TestExceptions:
    """Tests for exception classes."""

    def test_base_exception(self) -> None:
        """Base exception can be raised."""
        exc = MCPMakeError("Test error")

        assert str(exc) == "Test error"
        assert isinstance(exc, Exception)

    def test_makefile_not_found_error(self) -> None:
        """MakefileNotFoundError formats message correctly."""
        exc = MakefileNotFoundError("/path/to/Makefile")

        assert exc.path == "/path/to/Makefile"
        assert str(exc) == "Makefile not found: /path/to/Makefile"
        assert isinstance(exc, MCPMakeError)

    def test_makefile_parse_error(self) -> None:
        """MakefileParseError formats message correctly."""
        exc = MakefileParseError("/path/to/Makefile", "File is not valid UTF-8")

        assert exc.path == "/path/to/Makefile"
        assert str(exc) == "Failed to parse /path/to/Makefile: File is not valid UTF-8"
        assert isinstance(exc, MCPMakeError)

    def test_target_not_found_error(self) -> None:
        """TargetNotFoundError formats message correctly."""
        exc = TargetNotFoundError("deploy")

        assert exc.target == "deploy"
        assert exc.available == []
        assert str(exc) == "Target 'deploy' not found in Makefile"
        assert isinstance(exc, MCPMakeError)

    def test_target_not_found_lists_available(self) -> None:
        """Available targets are appended when known."""
        assert str(TargetNotFoundError("deploy", ["build", "test"])) == (
            "Target 'deploy' not found in Makefile. Available targets: build, test"
        )
        assert str(TargetNotFoundError("deploy", [])).endswith("Available targets: none")
