from __future__ import annotations

from typing import Optional

from .conditions import Always, Condition
from .modules import Module
from .runner import Playbook, ResultSink, Task, print_json
from .types import Context


class PlaybookBuilder:
    """Fluent construction of a :class:`Playbook`::

        playbook = (
            PlaybookBuilder()
            .var("name", "x")
            .task("greet", CommandModule("/bin/echo", args(interpolate("hello-{}", var("name")))))
            .build()
        )
    """

    def __init__(self) -> None:
        self._vars: dict[str, str] = {}
        self._tasks: list[Task] = []

    def var(self, name: str, value: str) -> "PlaybookBuilder":
        self._vars[name] = value
        return self

    def vars(self, **values: str) -> "PlaybookBuilder":
        self._vars.update(values)
        return self

    def task(self, description: str, module: Module, when: Optional[Condition] = None) -> "PlaybookBuilder":
        self._tasks.append(Task(description, module, when or Always()))
        return self

    def build(self, *, sink: Optional[ResultSink] = print_json) -> Playbook:
        return Playbook(list(self._tasks), Context(vars=dict(self._vars)), sink=sink)
