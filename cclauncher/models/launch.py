"""Launch outcome models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


class LaunchFailureReason(Enum):
    """Why an interactive child process could not run to a normal exit."""
    NOT_FOUND = "not_found"
    SPAWN_FAILED = "spawn_failed"
    KILLED_BY_SIGNAL = "killed_by_signal"


@dataclass(frozen=True)
class LaunchOutcome:
    """Result of attempting to run the interactive child process."""

    ok: bool
    exit_code: Optional[int] = None
    reason: Optional[LaunchFailureReason] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, exit_code: int) -> "LaunchOutcome":
        return cls(ok=True, exit_code=exit_code)

    @classmethod
    def failure(cls, reason: LaunchFailureReason, message: str) -> "LaunchOutcome":
        return cls(ok=False, reason=reason, message=message)


@dataclass
class BackgroundLaunchReport:
    """Per-instance results of a parallel background launch."""

    results: List[Tuple[str, LaunchOutcome]] = field(default_factory=list)

    def add(self, label: str, outcome: LaunchOutcome) -> None:
        self.results.append((label, outcome))

    @property
    def succeeded(self) -> List[str]:
        return [label for label, outcome in self.results if outcome.ok]

    @property
    def failed(self) -> List[Tuple[str, LaunchOutcome]]:
        return [(label, outcome) for label, outcome in self.results if not outcome.ok]

    @property
    def all_ok(self) -> bool:
        return bool(self.results) and not self.failed
