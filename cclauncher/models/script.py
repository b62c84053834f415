"""Setup script models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class ScriptKind(Enum):
    """How a configured setup step is executed."""
    FILE = "file"
    COMMAND = "command"


class ScriptMode(Enum):
    """Where a setup step runs."""
    INLINE = "inline"
    EXTERNAL = "external"


@dataclass(frozen=True)
class ScriptExecution:
    """Resolved form of a configured setup step."""

    kind: ScriptKind
    raw: str
    resolved_path: Optional[str] = None  # Set for ScriptKind.FILE
    command: Optional[str] = None  # Set for ScriptKind.COMMAND

    @classmethod
    def file(cls, resolved_path: str, raw: str) -> "ScriptExecution":
        return cls(kind=ScriptKind.FILE, raw=raw, resolved_path=resolved_path)

    @classmethod
    def shell_command(cls, command: str, raw: str) -> "ScriptExecution":
        return cls(kind=ScriptKind.COMMAND, raw=raw, command=command)

    @property
    def is_file(self) -> bool:
        return self.kind is ScriptKind.FILE


@dataclass
class ScriptRunResult:
    """Outcome of running a setup step."""

    success: bool
    exit_code: Optional[int] = None
    output: List[str] = field(default_factory=list)
    message: Optional[str] = None
    canceled: bool = False
