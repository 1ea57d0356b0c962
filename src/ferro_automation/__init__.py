"""Ferro task orchestration engine."""

from .builder import PlaybookBuilder
from .loader import PlaybookLoader
from .runner import Playbook, Task
from .types import Context, Response, TaskResult

__all__ = ["Playbook", "PlaybookBuilder", "PlaybookLoader", "Task", "Context", "Response", "TaskResult"]
