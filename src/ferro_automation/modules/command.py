from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional
import logging

from .base import Module
from .. import lazy
from ..errors import ModuleError
from ..executors import Executor
from ..lazy import ListResolver, Resolver, StringLike
from ..types import Context, Response

logger = logging.getLogger(__name__)


@dataclass
class CommandOutput:
    exit_status: int
    stdout: str
    stderr: str
    stdout_lines: list[str] = field(default_factory=list)
    stderr_lines: list[str] = field(default_factory=list)


class CommandModule(Module):
    """Run a local program with arguments resolved at execution time.

    ``creates`` and ``removes`` work as guards: the command is skipped when
    ``creates`` already exists or when ``removes`` is already gone.
    """

    def __init__(
        self,
        command: StringLike,
        args: Optional[ListResolver] = None,
        *,
        creates: StringLike = "",
        removes: StringLike = "",
        env: Optional[dict[str, str]] = None,
        cwd: Optional[str] = None,
        executor: Optional[Executor] = None,
    ):
        self.command: Resolver = lazy.coerce(command)
        self.args = args or ListResolver()
        self.creates: Resolver = lazy.coerce(creates)
        self.removes: Resolver = lazy.coerce(removes)
        self.env = env
        self.cwd = cwd
        self.executor = executor or Executor()

    def name(self) -> str:
        return "command"

    def apply(self, context: Context) -> Response:
        creates = self.creates.resolve(context)
        if creates and self._resolve_path(creates).exists():
            logger.debug("command skipped, creates=%s exists", creates)
            return Response(changed=False)

        removes = self.removes.resolve(context)
        if removes and not self._resolve_path(removes).exists():
            logger.debug("command skipped, removes=%s absent", removes)
            return Response(changed=False)

        command = [self.command.resolve(context), *self.args.resolve(context)]
        logger.debug("command run cmd=%s", " ".join(command))
        try:
            result = self.executor.run(command, env=self.env, cwd=self.cwd)
        except (OSError, ValueError) as exc:
            raise ModuleError(str(exc), changed=True) from exc

        try:
            stdout = result.stdout_text()
            stderr = result.stderr_text()
        except UnicodeDecodeError as exc:
            raise ModuleError(str(exc), changed=True) from exc

        if not result.succeeded:
            logger.debug("command failed rc=%s", result.returncode)
            raise ModuleError(stderr, changed=True)

        output = CommandOutput(
            exit_status=result.returncode,
            stdout=stdout,
            stderr=stderr,
            stdout_lines=stdout.splitlines(),
            stderr_lines=stderr.splitlines(),
        )
        return Response(changed=True, output=output)

    def _resolve_path(self, value: str) -> Path:
        path = Path(value)
        if path.is_absolute() or self.cwd is None:
            return path
        return Path(self.cwd) / path

    @classmethod
    def from_spec(cls, spec: dict[str, Any]) -> "CommandModule":
        if "command" not in spec:
            raise ValueError("command module requires a command")
        cwd = spec.get("cwd")
        return cls(
            lazy.parse(spec["command"]),
            lazy.parse_list(spec.get("args")),
            creates=lazy.parse(spec.get("creates", "")),
            removes=lazy.parse(spec.get("removes", "")),
            env=cls._normalize_env(spec.get("env")),
            cwd=str(cwd) if cwd is not None else None,
        )

    @staticmethod
    def _normalize_env(value: Any) -> Optional[dict[str, str]]:
        if value is None:
            return None
        if isinstance(value, dict):
            return {str(k): str(v) for k, v in value.items()}
        if isinstance(value, Iterable) and not isinstance(value, (str, bytes)):
            env: dict[str, str] = {}
            for item in value:
                key, sep, val = str(item).partition("=")
                if not sep:
                    raise ValueError("env list entries must be KEY=VALUE")
                env[key] = val
            return env
        raise ValueError("command env must be a mapping or list of KEY=VALUE strings")
