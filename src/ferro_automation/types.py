from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from .values import to_value


@dataclass
class Context:
    """Run-scoped state shared by every task of a playbook.

    ``vars`` is fixed when the context is built and exposed read-only.
    ``state`` maps task descriptions to the structured output of that task.
    """

    vars: Mapping[str, str] = field(default_factory=dict)
    state: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.vars = MappingProxyType({str(k): str(v) for k, v in self.vars.items()})

    def record(self, description: str, value: Any) -> None:
        self.state[description] = value


@dataclass
class Response:
    changed: bool
    output: Optional[Any] = None


@dataclass(frozen=True)
class TaskResult:
    module: str
    succeeded: bool
    changed: bool
    error: Optional[str] = None
    output: Optional[Any] = None
    description: str = ""
    skipped: bool = False

    def to_record(self) -> dict[str, Any]:
        """Structured record emitted to the result sink."""

        record: dict[str, Any] = {
            "module": self.module,
            "succeeded": self.succeeded,
            "changed": self.changed,
        }
        if self.error is not None:
            record["error"] = self.error
        if self.output is not None:
            record["output"] = to_value(self.output)
        return record


class PlaybookStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    HALTED = "halted"
