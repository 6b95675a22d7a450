"""Data models for Makefile parsing and execution."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class MakeVariable:
    """A make variable referenced by a target's recipe."""

    name: str
    default: str | None = None
    required: bool = True
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "name": self.name,
            "default": self.default,
            "required": self.required,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MakeVariable":
        """Deserialize from dictionary."""
        return cls(
            name=data["name"],
            default=data.get("default"),
            required=data.get("required", True),
            description=data.get("description"),
        )


@dataclass(frozen=True)
class MakeTarget:
    """Represents a single Makefile target."""

    name: str
    description: str
    dependencies: tuple[str, ...] = ()
    variables: tuple[MakeVariable, ...] = ()
    usage_hint: str | None = None
    is_phony: bool = False

    def tool_name(self, prefix: str = "make_") -> str:
        """Name of the MCP tool that runs this target."""
        return f"{prefix}{self.name}"

    def get_variable(self, name: str) -> MakeVariable | None:
        """Get referenced variable by name."""
        for variable in self.variables:
            if variable.name == name:
                return variable
        return None

    @property
    def required_variables(self) -> list[str]:
        return [v.name for v in self.variables if v.required]

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "name": self.name,
            "description": self.description,
            "dependencies": list(self.dependencies),
            "variables": [v.to_dict() for v in self.variables],
            "usage_hint": self.usage_hint,
            "is_phony": self.is_phony,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MakeTarget":
        """Deserialize from dictionary."""
        return cls(
            name=data["name"],
            description=data["description"],
            dependencies=tuple(data.get("dependencies", [])),
            variables=tuple(MakeVariable.from_dict(v) for v in data.get("variables", [])),
            usage_hint=data.get("usage_hint"),
            is_phony=data.get("is_phony", False),
        )


@dataclass
class MakefileMetadata:
    """Everything extracted from one parse of a Makefile."""

    path: Path
    targets: list[MakeTarget] = field(default_factory=list)
    variables: dict[str, str] = field(default_factory=dict)

    def get_target(self, name: str) -> MakeTarget | None:
        """Get target by name (first declaration wins)."""
        for target in self.targets:
            if target.name == name:
                return target
        return None

    def target_names(self) -> list[str]:
        """Distinct target names in declaration order."""
        return list(dict.fromkeys(t.name for t in self.targets))


@dataclass
class ExecutionResult:
    """Result of executing a make target."""

    success: bool
    exit_code: int
    output: str
    duration: float
    target: str
    command: list[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def command_line(self) -> str:
        return " ".join(self.command)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "success": self.success,
            "exit_code": self.exit_code,
            "output": self.output,
            "duration": self.duration,
            "target": self.target,
            "command": self.command,
            "timestamp": self.timestamp.isoformat(),
        }
