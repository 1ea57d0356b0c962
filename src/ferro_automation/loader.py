from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Optional

try:
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore[no-redef]

from botocore.exceptions import BotoCoreError, ClientError

from .conditions import Always, Condition, ExternalCheck, Never, when_execute
from .modules import MODULE_REGISTRY
from .runner import Playbook, ResultSink, Task, print_json
from .secrets import SecretResolver
from .types import Context

TASK_KEYS = {"description", "module", "when"}


class PlaybookLoadError(ValueError):
    """Raised when a playbook file cannot be turned into a playbook."""

    def __init__(self, message: str, path: Optional[Path] = None, task: Optional[int] = None):
        super().__init__(message)
        self.path = path
        self.task = task


class PlaybookLoader:
    """Loads playbooks from TOML files.

    Construction only: the returned :class:`Playbook` has not run.
    """

    def __init__(
        self,
        registry: Optional[Mapping[str, type]] = None,
        module_defaults: Optional[Mapping[str, Mapping[str, Any]]] = None,
        secret_resolver: Optional[SecretResolver] = None,
    ):
        self.registry = registry
        self.module_defaults = dict(module_defaults or {})
        self.secret_resolver = secret_resolver or SecretResolver()

    def load(
        self,
        path: Path,
        overrides: Optional[Mapping[str, str]] = None,
        *,
        sink: Optional[ResultSink] = print_json,
    ) -> Playbook:
        path = Path(path)
        try:
            text = path.read_text()
        except OSError as exc:
            raise PlaybookLoadError(f"{path}: {exc.strerror or exc}", path) from None
        try:
            return self.load_text(text, base_dir=path.parent, overrides=overrides, sink=sink)
        except PlaybookLoadError as exc:
            where = f"{path}" if exc.task is None else f"{path} task {exc.task}"
            raise PlaybookLoadError(f"{where}: {exc}", path, exc.task) from None

    def load_text(
        self,
        text: str,
        base_dir: Optional[Path] = None,
        overrides: Optional[Mapping[str, str]] = None,
        *,
        sink: Optional[ResultSink] = print_json,
    ) -> Playbook:
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise PlaybookLoadError(str(exc)) from None

        variables = self._parse_vars(data.get("vars", {}))
        variables.update({str(k): str(v) for k, v in (overrides or {}).items()})

        raw_tasks = data.get("tasks", [])
        if not isinstance(raw_tasks, list):
            raise PlaybookLoadError("tasks must be an array of tables")
        tasks = [
            self._parse_task(raw, index, base_dir)
            for index, raw in enumerate(raw_tasks, start=1)
        ]
        return Playbook(tasks, Context(vars=variables), sink=sink)

    def _parse_vars(self, raw: Any) -> dict[str, str]:
        if not isinstance(raw, dict):
            raise PlaybookLoadError("vars must be a table")
        try:
            resolved = self.secret_resolver.resolve(raw)
        except (KeyError, RuntimeError, ClientError, BotoCoreError) as exc:
            raise PlaybookLoadError(f"secret lookup failed: {exc}") from None
        variables: dict[str, str] = {}
        for name, value in resolved.items():
            if isinstance(value, (dict, list)):
                raise PlaybookLoadError(f"var '{name}' must be a scalar")
            if isinstance(value, bool):
                value = "true" if value else "false"
            variables[str(name)] = str(value)
        return variables

    def _parse_task(self, raw: Any, index: int, base_dir: Optional[Path]) -> Task:
        if not isinstance(raw, dict):
            raise PlaybookLoadError("task must be a table", task=index)
        description = str(raw.get("description", f"task-{index}"))
        module_type = raw.get("module")
        if not module_type:
            raise PlaybookLoadError("task is missing a module", task=index)
        registry = self.registry if self.registry is not None else MODULE_REGISTRY
        module_cls = registry.get(str(module_type))
        if module_cls is None:
            raise PlaybookLoadError(f"unknown module '{module_type}'", task=index)

        spec = dict(self.module_defaults.get(str(module_type), {}))
        spec.update({k: v for k, v in raw.items() if k not in TASK_KEYS})
        if base_dir is not None:
            spec.setdefault("_playbook_dir", str(base_dir))
        try:
            module = module_cls.from_spec(spec)
            condition = self._parse_condition(raw.get("when"))
        except (ValueError, TypeError, OSError) as exc:
            raise PlaybookLoadError(str(exc), task=index) from None
        return Task(description, module, condition)

    @staticmethod
    def _parse_condition(raw: Any) -> Condition:
        if raw is None:
            return Always()
        if isinstance(raw, bool):
            return Always() if raw else Never()
        if isinstance(raw, str):
            lowered = raw.strip().lower()
            if lowered == "always":
                return Always()
            if lowered == "never":
                return Never()
            raise ValueError(f"unknown condition '{raw}'")
        if isinstance(raw, dict):
            if "execute" in raw:
                return when_execute(str(raw["execute"]))
            if "command" in raw:
                args = raw.get("args", [])
                if not isinstance(args, list):
                    raise ValueError("condition args must be a list")
                return ExternalCheck(str(raw["command"]), tuple(str(a) for a in args))
        raise ValueError(f"unrecognised condition {raw!r}")
