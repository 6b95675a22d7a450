"""Command execution for make targets."""

import asyncio
import logging
import os
import re
import shlex
import signal
import time
from abc import ABC, abstractmethod
from pathlib import Path

from mcp_make_targets.core.models import ExecutionResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30

# Characters that could break out of a make argument into the shell
DANGEROUS_CHARS = re.compile(r"[;&|`<>(){}\[\]\\]")
BLOCKED_CHARS_DISPLAY = "; & | ` < > ( ) { } [ ] \\"


class MakeExecutor(ABC):
    """Abstract base class for make command execution."""

    @abstractmethod
    async def execute(
        self,
        target: str,
        makefile: Path,
        variables: dict[str, str] | None = None,
        raw_args: str = "",
        cwd: Path | None = None,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> ExecutionResult:
        """Execute make target and return result."""
        pass

    def validate_target_name(self, target: str) -> None:
        """Validate target name to prevent shell injection."""
        if not target or not re.match(r"^[a-zA-Z_][a-zA-Z0-9_-]*$", target):
            raise ValueError(f"Invalid target name: {target}")

    def validate_variables(self, variables: dict[str, str]) -> None:
        """Validate NAME=value assignments passed on the make command line."""
        for name, value in variables.items():
            if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", name):
                raise ValueError(f"Invalid variable name: {name}")
            if DANGEROUS_CHARS.search(value):
                raise ValueError(f"Variable {name} contains potentially dangerous characters")

    def validate_raw_args(self, raw_args: str) -> None:
        if DANGEROUS_CHARS.search(raw_args):
            raise ValueError(
                f"Arguments contain potentially dangerous characters. Blocked characters: {BLOCKED_CHARS_DISPLAY}"
            )

    def build_command(
        self,
        target: str,
        makefile: Path,
        variables: dict[str, str] | None = None,
        raw_args: str = "",
    ) -> list[str]:
        """Validate inputs and build the make argv."""
        self.validate_target_name(target)
        variables = variables or {}
        self.validate_variables(variables)
        self.validate_raw_args(raw_args)

        cmd = ["make", "-f", str(makefile), target]
        cmd.extend(f"{name}={value}" for name, value in variables.items())
        if raw_args:
            cmd.extend(shlex.split(raw_args))
        return cmd


class SubprocessMakeExecutor(MakeExecutor):
    """Execute make targets using subprocess."""

    async def execute(
        self,
        target: str,
        makefile: Path,
        variables: dict[str, str] | None = None,
        raw_args: str = "",
        cwd: Path | None = None,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> ExecutionResult:
        """Execute make target, capturing stdout and stderr together."""
        cmd = self.build_command(target, makefile, variables, raw_args)

        # Validate Makefile exists
        if not makefile.exists():
            raise FileNotFoundError(f"Makefile not found: {makefile}")

        if not makefile.is_file():
            raise ValueError(f"Makefile path is not a file: {makefile}")

        # Validate timeout
        if timeout <= 0:
            raise ValueError(f"Timeout must be positive, got: {timeout}")

        if timeout > 3600:  # 1 hour max
            logger.warning(f"Very long timeout specified: {timeout}s (max recommended: 3600s)")

        # Determine and validate working directory
        work_dir = cwd or makefile.parent

        if not work_dir.exists():
            raise FileNotFoundError(f"Working directory does not exist: {work_dir}")

        if not work_dir.is_dir():
            raise ValueError(f"Working directory is not a directory: {work_dir}")

        logger.info(f"Executing: {' '.join(cmd)} in {work_dir}")

        start_time = time.time()
        process: asyncio.subprocess.Process | None = None
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                cwd=work_dir,
                start_new_session=True,  # Own process group so the whole tree can be killed
            )

            output_bytes, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)

            duration = time.time() - start_time
            output = output_bytes.decode("utf-8", errors="replace")

            logger.info(f"Target '{target}' completed in {duration:.2f}s with exit code {process.returncode}")

            return ExecutionResult(
                success=process.returncode == 0,
                exit_code=process.returncode or 0,
                output=output,
                duration=duration,
                target=target,
                command=cmd,
            )

        except asyncio.TimeoutError:
            duration = time.time() - start_time
            logger.error(f"Target '{target}' timed out after {timeout}s")
            await self._kill(process)
            return ExecutionResult(
                success=False,
                exit_code=-1,
                output=f"Execution timed out after {timeout} seconds",
                duration=duration,
                target=target,
                command=cmd,
            )
        except asyncio.CancelledError:
            logger.info(f"Target '{target}' was cancelled, killing process")
            await self._kill(process)
            raise
        except Exception as e:
            duration = time.time() - start_time
            logger.exception(f"Failed to execute target '{target}'")
            return ExecutionResult(
                success=False,
                exit_code=-1,
                output=f"Unexpected error during execution: {e}",
                duration=duration,
                target=target,
                command=cmd,
            )

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process | None) -> None:
        """Kill the process group and wait briefly for it to exit."""
        if process is None:
            return
        try:
            if process.pid:
                os.killpg(process.pid, signal.SIGKILL)
            await asyncio.wait_for(process.wait(), timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning("Process did not terminate within 5s after SIGKILL (may have orphaned children)")
        except ProcessLookupError:
            # Process already terminated
            pass
        except OSError:
            logger.exception("Failed to kill make process")


class DryRunMakeExecutor(MakeExecutor):
    """Mock executor for testing - doesn't actually run commands."""

    def __init__(self, mock_success: bool = True, mock_output: str = "") -> None:
        self.mock_success = mock_success
        self.mock_output = mock_output
        self.executed_commands: list[list[str]] = []

    @property
    def executed_targets(self) -> list[str]:
        return [cmd[3] for cmd in self.executed_commands]

    async def execute(
        self,
        target: str,
        makefile: Path,
        variables: dict[str, str] | None = None,
        raw_args: str = "",
        cwd: Path | None = None,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> ExecutionResult:
        """Return mock result without executing."""
        cmd = self.build_command(target, makefile, variables, raw_args)
        self.executed_commands.append(cmd)

        logger.debug(f"DryRun: Would execute {' '.join(cmd)}")

        return ExecutionResult(
            success=self.mock_success,
            exit_code=0 if self.mock_success else 2,
            output=self.mock_output if self.mock_success else "Mock error",
            duration=0.1,
            target=target,
            command=cmd,
        )
