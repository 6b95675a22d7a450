"""Tests for MCP server."""

import shutil
from pathlib import Path

import pytest

from mcp_make_targets.core.executor import DryRunMakeExecutor
from mcp_make_targets.core.models import MakeTarget, MakeVariable
from mcp_make_targets.exceptions import MakefileNotFoundError
from mcp_make_targets.server import MakefileMCPServer, build_input_schema, build_tool_description

FIXTURES_DIR = Path(__file__).parent.parent / "fixtures"


class TestToolSchema:
    """Tests for tool schema construction."""

    def test_input_schema(self) -> None:
        """Each variable becomes a string property; raw args always present."""
        target = MakeTarget(
            name="deploy",
            description="Deploy",
            variables=(
                MakeVariable(name="ENV", default="staging", required=False, description="Target environment"),
                MakeVariable(name="VERSION"),
            ),
        )

        schema = build_input_schema(target)

        assert schema["type"] == "object"
        assert schema["properties"]["ENV"] == {
            "type": "string",
            "description": "Target environment",
            "default": "staging",
        }
        assert schema["properties"]["VERSION"] == {"type": "string", "description": "Value for VERSION"}
        assert schema["properties"]["args"]["type"] == "string"
        assert schema["required"] == ["VERSION"]

    def test_input_schema_without_variables(self) -> None:
        """Targets without variables still accept raw args."""
        schema = build_input_schema(MakeTarget(name="clean", description="Clean"))

        assert list(schema["properties"]) == ["args"]
        assert schema["required"] == []

    def test_tool_description(self) -> None:
        """Usage hint and dependencies are appended to the description."""
        target = MakeTarget(
            name="deploy",
            description="Deploy to an environment",
            dependencies=("build",),
            usage_hint="make deploy ENV=prod",
        )

        assert build_tool_description(target) == "Deploy to an environment\nmake deploy ENV=prod (depends on: build)"


class TestMakefileMCPServer:
    """Tests for MakefileMCPServer."""

    @pytest.mark.anyio
    async def test_initialize_with_valid_makefile(self) -> None:
        """Server initializes with valid Makefile."""
        server = MakefileMCPServer(FIXTURES_DIR / "simple.mk")

        await server.initialize()

        assert server.metadata is not None
        assert len(server.metadata.targets) == 2

    @pytest.mark.anyio
    async def test_initialize_with_invalid_makefile(self) -> None:
        """Server fails with missing Makefile."""
        server = MakefileMCPServer(Path("/nonexistent/Makefile"))

        with pytest.raises(MakefileNotFoundError):
            await server.initialize()

    @pytest.mark.anyio
    async def test_initialize_with_unknown_allowed_target(self) -> None:
        """Allowlist entries must exist in the Makefile."""
        server = MakefileMCPServer(FIXTURES_DIR / "simple.mk", allowed_targets=["test", "deploy"])

        with pytest.raises(ValueError, match="Allowed targets not found in Makefile: deploy"):
            await server.initialize()

    @pytest.mark.anyio
    async def test_list_tools_returns_all_targets(self) -> None:
        """list_tools() returns one prefixed tool per target."""
        server = MakefileMCPServer(FIXTURES_DIR / "variables.mk")

        tools = await server._handle_list_tools()

        assert [t.name for t in tools] == ["make_build", "make_deploy", "make_test", "make_clean"]

    @pytest.mark.anyio
    async def test_list_tools_schema_from_variables(self) -> None:
        """Tool schema reflects the target's variables."""
        server = MakefileMCPServer(FIXTURES_DIR / "variables.mk")

        tools = {t.name: t for t in await server._handle_list_tools()}

        deploy = tools["make_deploy"]
        assert deploy.description.startswith("Deploy to an environment\nmake deploy ENV=prod VERSION=1.0.0")
        assert set(deploy.inputSchema["properties"]) == {"ENV", "VERSION", "REGISTRY", "args"}
        assert deploy.inputSchema["required"] == ["VERSION"]

        test = tools["make_test"]
        assert test.inputSchema["required"] == []
        assert "VERBOSE" in test.inputSchema["properties"]

    @pytest.mark.anyio
    async def test_list_tools_custom_prefix(self) -> None:
        """Tool prefix is configurable."""
        server = MakefileMCPServer(FIXTURES_DIR / "simple.mk", tool_prefix="mk_")

        tools = await server._handle_list_tools()

        assert [t.name for t in tools] == ["mk_test", "mk_build"]

    @pytest.mark.anyio
    async def test_list_tools_filters_by_allowed_targets(self) -> None:
        """list_tools() only returns allowed targets."""
        server = MakefileMCPServer(FIXTURES_DIR / "simple.mk", allowed_targets=["test"])

        tools = await server._handle_list_tools()

        assert [t.name for t in tools] == ["make_test"]

    @pytest.mark.anyio
    async def test_list_tools_missing_makefile(self) -> None:
        """A missing Makefile yields no tools."""
        server = MakefileMCPServer(Path("/nonexistent/Makefile"))

        assert await server._handle_list_tools() == []

    @pytest.mark.anyio
    async def test_list_tools_unreadable_makefile(self, tmp_path: Path) -> None:
        """A Makefile that cannot be decoded yields no tools."""
        makefile = tmp_path / "Makefile"
        makefile.write_bytes(b"build:\n\techo \xff\xfe\n")
        server = MakefileMCPServer(makefile)

        assert await server._handle_list_tools() == []

    @pytest.mark.anyio
    async def test_list_tools_makefile_replaced_by_directory(self, tmp_path: Path) -> None:
        """A directory in place of the Makefile yields no tools."""
        makefile = tmp_path / "Makefile"
        makefile.mkdir()
        server = MakefileMCPServer(makefile)

        assert await server._handle_list_tools() == []

    @pytest.mark.anyio
    async def test_list_tools_rereads_makefile(self, tmp_path: Path) -> None:
        """Edits to the Makefile show up without a restart."""
        makefile = tmp_path / "Makefile"
        makefile.write_text("build:\n\ttrue\n")
        server = MakefileMCPServer(makefile)

        assert [t.name for t in await server._handle_list_tools()] == ["make_build"]

        makefile.write_text("build:\n\ttrue\n\ntest:\n\ttrue\n")

        assert [t.name for t in await server._handle_list_tools()] == ["make_build", "make_test"]

    @pytest.mark.anyio
    async def test_call_tool_executes_target(self) -> None:
        """call_tool() runs the target with variables and raw args."""
        executor = DryRunMakeExecutor(mock_output="built")
        makefile = FIXTURES_DIR / "variables.mk"
        server = MakefileMCPServer(makefile, executor=executor)

        result = await server._handle_call_tool("make_deploy", {"ENV": "prod", "VERSION": "1.0.0", "args": "-j4"})

        assert executor.executed_commands == [
            ["make", "-f", str(makefile), "deploy", "ENV=prod", "VERSION=1.0.0", "-j4"]
        ]
        assert result[0].text.startswith(f"Successfully executed: make -f {makefile} deploy ENV=prod VERSION=1.0.0 -j4")
        assert "built" in result[0].text

    @pytest.mark.anyio
    async def test_call_tool_skips_empty_values(self) -> None:
        """Empty and null values are not passed to make."""
        executor = DryRunMakeExecutor()
        server = MakefileMCPServer(FIXTURES_DIR / "variables.mk", executor=executor)

        await server._handle_call_tool("make_build", {"DEBUG": "", "VERSION": None, "args": ""})

        assert executor.executed_commands[0][3:] == ["build"]

    @pytest.mark.anyio
    async def test_call_tool_reports_failure(self) -> None:
        """Failed runs are reported, not raised."""
        executor = DryRunMakeExecutor(mock_success=False)
        server = MakefileMCPServer(FIXTURES_DIR / "simple.mk", executor=executor)

        result = await server._handle_call_tool("make_test", {})

        assert result[0].text.startswith("Failed to execute make")
        assert "Exit Code: 2" in result[0].text
        assert "Mock error" in result[0].text

    @pytest.mark.anyio
    async def test_call_tool_unknown_prefix(self) -> None:
        """Tools without the prefix are rejected."""
        executor = DryRunMakeExecutor()
        server = MakefileMCPServer(FIXTURES_DIR / "simple.mk", executor=executor)

        result = await server._handle_call_tool("test", {})

        assert result[0].text == "Error: Unknown tool: test"
        assert executor.executed_commands == []

    @pytest.mark.anyio
    async def test_call_tool_nonexistent_target(self) -> None:
        """call_tool() rejects targets missing from a fresh parse."""
        executor = DryRunMakeExecutor()
        server = MakefileMCPServer(FIXTURES_DIR / "simple.mk", executor=executor)

        result = await server._handle_call_tool("make_nonexistent", {})

        assert "Error:" in result[0].text
        assert "Target 'nonexistent' not found in Makefile" in result[0].text
        assert "Available targets: test, build" in result[0].text
        assert executor.executed_commands == []

    @pytest.mark.anyio
    async def test_call_tool_rejects_dangerous_values(self) -> None:
        """Shell metacharacters never reach the executor."""
        executor = DryRunMakeExecutor()
        server = MakefileMCPServer(FIXTURES_DIR / "variables.mk", executor=executor)

        result = await server._handle_call_tool("make_deploy", {"VERSION": "1.0; rm -rf /"})

        assert result[0].text == "Error: Variable VERSION contains potentially dangerous characters"
        assert executor.executed_commands == []

    @pytest.mark.anyio
    async def test_call_tool_rejects_dangerous_raw_args(self) -> None:
        """Raw args are sanitized too."""
        executor = DryRunMakeExecutor()
        server = MakefileMCPServer(FIXTURES_DIR / "simple.mk", executor=executor)

        result = await server._handle_call_tool("make_test", {"args": "| cat /etc/passwd"})

        assert result[0].text.startswith("Error: Arguments contain potentially dangerous characters")
        assert executor.executed_commands == []

    @pytest.mark.anyio
    async def test_call_tool_rejects_invalid_variable_name(self) -> None:
        """Variable names must be identifiers."""
        executor = DryRunMakeExecutor()
        server = MakefileMCPServer(FIXTURES_DIR / "simple.mk", executor=executor)

        result = await server._handle_call_tool("make_test", {"BAD NAME": "1"})

        assert result[0].text == "Error: Invalid variable name: BAD NAME"

    @pytest.mark.anyio
    async def test_call_tool_respects_allowed_targets(self) -> None:
        """call_tool() rejects targets outside the allowlist."""
        executor = DryRunMakeExecutor()
        server = MakefileMCPServer(FIXTURES_DIR / "simple.mk", executor=executor, allowed_targets=["test"])

        result = await server._handle_call_tool("make_build", {})

        assert "not in the allowlist" in result[0].text
        assert executor.executed_commands == []

    @pytest.mark.anyio
    async def test_call_tool_truncates_output(self) -> None:
        """Long output is cut at max_output_chars."""
        executor = DryRunMakeExecutor(mock_output="x" * 100)
        server = MakefileMCPServer(FIXTURES_DIR / "simple.mk", executor=executor, max_output_chars=10)

        result = await server._handle_call_tool("make_test", {})

        assert "x" * 10 + "\n\n... (truncated, 90 chars omitted)" in result[0].text
        assert "Output exceeded 10 characters" in result[0].text

    @pytest.mark.anyio
    @pytest.mark.skipif(shutil.which("make") is None, reason="make is not installed")
    async def test_call_tool_runs_make(self) -> None:
        """End-to-end run through the subprocess executor."""
        server = MakefileMCPServer(FIXTURES_DIR / "exec-test.mk")

        result = await server._handle_call_tool("make_echo-var", {"VAR": "hello"})

        assert "Successfully executed" in result[0].text
        assert "VAR=hello" in result[0].text
