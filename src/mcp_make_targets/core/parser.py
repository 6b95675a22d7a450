"""Makefile parsing functionality."""

import logging
import os
import re
from abc import ABC, abstractmethod
from pathlib import Path

from mcp_make_targets.core.models import MakefileMetadata, MakeTarget, MakeVariable
from mcp_make_targets.exceptions import MakefileNotFoundError, MakefileParseError

logger = logging.getLogger(__name__)

DEFAULT_USAGE_HINT_WINDOW = 4


class MakefileParser(ABC):
    """Abstract base class for Makefile parsing."""

    @abstractmethod
    def parse(self, makefile_path: Path) -> MakefileMetadata:
        """Parse Makefile and return metadata."""
        pass

    @abstractmethod
    def parse_string(self, content: str, path: Path | None = None) -> MakefileMetadata:
        """Parse Makefile from string content."""
        pass


class RegexMakefileParser(MakefileParser):
    """Parse Makefile using regex patterns.

    Nothing is evaluated: variables are collected lexically from assignment
    lines and from ``$(NAME)``/``${NAME}`` references and ``ifdef``/``ifndef``
    checks inside each target's recipe block.
    """

    # NAME = value, NAME := value, NAME ?= value
    VARIABLE_PATTERN = re.compile(r"^([A-Za-z0-9_]+)\s*(?:\?=|:=|=)\s*(.*)$")

    # target: deps
    TARGET_PATTERN = re.compile(r"^([a-zA-Z_][a-zA-Z0-9_-]*)\s*:\s*(.*)$")

    # Pattern for .PHONY declarations
    PHONY_PATTERN = re.compile(r"^\.PHONY:\s*(.+)$")

    # Usage: make deploy ENV=prod
    USAGE_PATTERN = re.compile(r"#\s*(?:Usage|Args|Arguments|Example):\s*(.+)", re.IGNORECASE)

    CONDITIONAL_PATTERN = re.compile(r"^(ifdef|ifndef|ifeq|ifneq|else|endif)")

    # $(NAME) or ${NAME}
    REFERENCE_PATTERN = re.compile(r"\$[({]([A-Za-z0-9_]+)[)}]")

    EXISTENCE_CHECK_PATTERN = re.compile(r"^\s*ifn?def\s+([A-Za-z0-9_]+)", re.MULTILINE)

    def __init__(self, usage_hint_window: int = DEFAULT_USAGE_HINT_WINDOW) -> None:
        self.usage_hint_window = usage_hint_window

    def parse(self, makefile_path: Path) -> MakefileMetadata:
        """Parse Makefile from file."""
        # Validate file exists
        if not makefile_path.exists():
            raise MakefileNotFoundError(str(makefile_path))

        # Validate it's a file, not a directory
        if not makefile_path.is_file():
            raise MakefileParseError(str(makefile_path), f"Path is not a file: {makefile_path}")

        # Validate file is readable
        if not os.access(makefile_path, os.R_OK):
            raise MakefileParseError(str(makefile_path), f"File is not readable: {makefile_path}")

        try:
            content = makefile_path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise MakefileParseError(str(makefile_path), f"File is not valid UTF-8: {e}")
        except PermissionError as e:
            raise MakefileParseError(str(makefile_path), f"Permission denied reading file: {e}")
        except OSError as e:
            logger.exception("Failed to read Makefile")
            raise MakefileParseError(str(makefile_path), f"Failed to read file: {e}")

        return self.parse_string(content, makefile_path)

    def parse_string(self, content: str, path: Path | None = None) -> MakefileMetadata:
        """Parse Makefile from string content.

        Never raises on malformed content; lines that match nothing are skipped.
        """
        lines = content.split("\n")
        variables = self._scan_variables(lines)
        phony_targets = self._scan_phony(lines)

        metadata = MakefileMetadata(path=path or Path("Makefile"), variables=variables)

        for index, raw_line in enumerate(lines):
            line = raw_line.strip()

            # Skip comments and empty lines
            if not line or line.startswith("#"):
                continue

            target_match = self.TARGET_PATTERN.match(line)
            if not target_match:
                continue

            name, deps_str = target_match.group(1), target_match.group(2)

            # Pattern rules and assignments that happen to contain a colon
            if "%" in name or ":=" in line or "=" in line:
                continue

            metadata.targets.append(
                MakeTarget(
                    name=name,
                    description=self._extract_description(lines, index, name),
                    dependencies=tuple(deps_str.split()),
                    variables=tuple(self._extract_target_variables(lines, variables, name)),
                    usage_hint=self._extract_usage_hint(lines, index),
                    is_phony=name in phony_targets,
                )
            )

        logger.info(
            f"Parsed Makefile: {len(metadata.targets)} targets, {len(variables)} global variables"
        )

        if not metadata.targets:
            logger.warning(f"No targets found in {metadata.path}")

        return metadata

    def _scan_variables(self, lines: list[str]) -> dict[str, str]:
        """Collect every top-level assignment; the last one for a name wins."""
        variables: dict[str, str] = {}
        for line in lines:
            match = self.VARIABLE_PATTERN.match(line)
            if match:
                variables[match.group(1)] = match.group(2).strip()
        return variables

    def _scan_phony(self, lines: list[str]) -> set[str]:
        phony_targets: set[str] = set()
        for line in lines:
            phony_match = self.PHONY_PATTERN.match(line.strip())
            if phony_match:
                phony_targets.update(phony_match.group(1).split())
        return phony_targets

    @staticmethod
    def _comment_above(lines: list[str], index: int) -> str | None:
        """Text of the comment on the line directly above ``index``, if any."""
        if index <= 0:
            return None
        previous = lines[index - 1].strip()
        if previous.startswith("#"):
            return previous[1:].strip()
        return None

    def _extract_description(self, lines: list[str], index: int, name: str) -> str:
        description = self._comment_above(lines, index)
        if description is None:
            return f"Execute make target: {name}"
        return description

    def _extract_usage_hint(self, lines: list[str], index: int) -> str | None:
        """Look for a Usage:/Args:/Arguments:/Example: line in the comment block above."""
        stop = max(index - self.usage_hint_window, 0)
        for i in range(index - 1, stop - 1, -1):
            line = lines[i].strip()
            if not line.startswith("#"):
                break
            usage_match = self.USAGE_PATTERN.search(line)
            if usage_match:
                return usage_match.group(1).strip()
        return None

    def _recipe_block(self, lines: list[str], name: str) -> list[str]:
        """Recipe and conditional lines following the first declaration of ``name``."""
        declaration = re.compile(rf"^{re.escape(name)}\s*:")
        start = next((i for i, line in enumerate(lines) if declaration.match(line)), None)
        if start is None:
            return []

        block: list[str] = []
        for line in lines[start + 1 :]:
            trimmed = line.strip()
            if line.startswith("\t") or self.CONDITIONAL_PATTERN.match(trimmed):
                block.append(line)
            elif trimmed and not line.startswith("#"):
                break
        return block

    def _extract_target_variables(
        self, lines: list[str], variables: dict[str, str], name: str
    ) -> list[MakeVariable]:
        block = "\n".join(self._recipe_block(lines, name))
        found: dict[str, MakeVariable] = {}

        for match in self.REFERENCE_PATTERN.finditer(block):
            var_name = match.group(1)
            if var_name not in found:
                found[var_name] = MakeVariable(
                    name=var_name,
                    default=variables.get(var_name),
                    required=var_name not in variables,
                    description=self._find_variable_description(lines, var_name),
                )

        # ifdef/ifndef only test for existence, so never mandatory
        for match in self.EXISTENCE_CHECK_PATTERN.finditer(block):
            var_name = match.group(1)
            if var_name not in found:
                found[var_name] = MakeVariable(
                    name=var_name,
                    default=variables.get(var_name),
                    required=False,
                    description=self._find_variable_description(lines, var_name),
                )

        return list(found.values())

    def _find_variable_description(self, lines: list[str], var_name: str) -> str | None:
        definition = re.compile(rf"^{re.escape(var_name)}\s*(?:\?=|:=|=)")
        for index, line in enumerate(lines):
            if definition.match(line):
                return self._comment_above(lines, index)
        return None
