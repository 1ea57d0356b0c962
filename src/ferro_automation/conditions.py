from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
import logging

from .errors import ConditionError
from .executors import Executor

logger = logging.getLogger(__name__)


class Condition(ABC):
    """Decides whether a task's module runs."""

    @abstractmethod
    def evaluate(self) -> bool:
        """Return the verdict, or raise ``ConditionError`` if none can be reached."""


@dataclass(frozen=True)
class Always(Condition):
    def evaluate(self) -> bool:
        return True


@dataclass(frozen=True)
class Never(Condition):
    def evaluate(self) -> bool:
        return False


@dataclass(frozen=True)
class ExternalCheck(Condition):
    """True iff ``command args...`` exits with status 0."""

    command: str
    args: tuple[str, ...] = ()
    executor: Executor = field(default_factory=Executor, compare=False, repr=False)

    def evaluate(self) -> bool:
        try:
            result = self.executor.run([self.command, *self.args])
        except (OSError, ValueError) as exc:
            raise ConditionError(str(exc)) from exc
        logger.debug("condition command=%s rc=%s", self.command, result.returncode)
        return result.succeeded


def when_execute(command_line: str) -> ExternalCheck:
    parts = command_line.split()
    command = parts[0] if parts else ""
    return ExternalCheck(command, tuple(parts[1:]))
