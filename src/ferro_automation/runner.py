from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence
import json
import logging

from .conditions import Always, Condition
from .errors import ConditionError, ModuleError, OutputConversionError, PlaybookError
from .modules import Module
from .types import Context, PlaybookStatus, TaskResult
from .values import to_value

logger = logging.getLogger(__name__)

ResultSink = Callable[[TaskResult], None]


def print_json(result: TaskResult) -> None:
    print(json.dumps(result.to_record(), indent=2))


@dataclass(frozen=True)
class Task:
    description: str
    module: Module
    condition: Condition = field(default_factory=Always)

    def run(self, context: Context) -> TaskResult:
        """Run the task; every failure ends up in the returned result."""

        module_name = self.module.name()

        def failed(error: str, changed: bool = False) -> TaskResult:
            return TaskResult(
                module=module_name,
                succeeded=False,
                changed=changed,
                error=error,
                description=self.description,
            )

        try:
            proceed = self.condition.evaluate()
        except ConditionError as exc:
            logger.warning("task=%s condition failed: %s", self.description, exc)
            return failed(str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.error("task=%s condition raised: %s", self.description, exc, exc_info=True)
            return failed(str(exc))

        if not proceed:
            logger.debug("task=%s skipped", self.description)
            return TaskResult(
                module=module_name,
                succeeded=True,
                changed=False,
                description=self.description,
                skipped=True,
            )

        try:
            response = self.module.apply(context)
        except ModuleError as exc:
            return failed(exc.description, exc.changed)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "task=%s module=%s raised: %s", self.description, module_name, exc, exc_info=True
            )
            return failed(str(exc))

        return TaskResult(
            module=module_name,
            succeeded=True,
            changed=response.changed,
            output=response.output,
            description=self.description,
        )


class Playbook:
    """Runs tasks in order against one context, stopping at the first failure."""

    def __init__(
        self,
        tasks: Sequence[Task],
        context: Optional[Context] = None,
        *,
        sink: Optional[ResultSink] = print_json,
    ):
        self.tasks = list(tasks)
        self.context = context or Context()
        self.sink = sink
        self.status = PlaybookStatus.PENDING

    def run(self) -> list[TaskResult]:
        if self.status is not PlaybookStatus.PENDING:
            raise PlaybookError(f"playbook already {self.status.value}")
        self.status = PlaybookStatus.RUNNING

        results: list[TaskResult] = []
        for task in self.tasks:
            logger.debug("task=%s module=%s", task.description, task.module.name())
            result = task.run(self.context)
            self._store(task, result)
            self._emit(result)
            results.append(result)
            if not result.succeeded:
                logger.error("task=%s failed: %s", task.description, result.error)
                self.status = PlaybookStatus.HALTED
                return results

        self.status = PlaybookStatus.COMPLETED
        return results

    def _store(self, task: Task, result: TaskResult) -> None:
        if result.output is None:
            return
        try:
            value = to_value(result.output)
        except OutputConversionError as exc:
            logger.warning("task=%s output not stored: %s", task.description, exc)
            return
        except Exception as exc:  # noqa: BLE001
            logger.error("task=%s output conversion raised: %s", task.description, exc, exc_info=True)
            return
        self.context.record(task.description, value)

    def _emit(self, result: TaskResult) -> None:
        if self.sink is None:
            return
        try:
            self.sink(result)
        except (TypeError, ValueError) as exc:
            logger.debug("task=%s result not emitted: %s", result.description, exc)
        except Exception as exc:  # noqa: BLE001
            logger.error("task=%s result emission raised: %s", result.description, exc, exc_info=True)
