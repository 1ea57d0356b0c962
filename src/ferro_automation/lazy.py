"""Deferred task parameters.

A resolver is a small expression tree that is only evaluated against the
:class:`~ferro_automation.types.Context` when its task runs, so it can read
variables and the output of tasks that ran earlier in the same playbook.

Resolution never raises: a missing variable, a missing task entry, a bad path
or a non-string value all resolve to ``""``. Callers treat the empty string as
"unresolved".
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from string import Formatter
from typing import Any, Iterable, Union

from .errors import PathLookupError
from .types import Context
from .values import find


class Resolver(ABC):
    @abstractmethod
    def resolve(self, context: Context) -> str:
        """Evaluate against ``context``."""


@dataclass(frozen=True)
class Literal(Resolver):
    value: str

    def resolve(self, context: Context) -> str:
        return self.value


@dataclass(frozen=True)
class Var(Resolver):
    name: str

    def resolve(self, context: Context) -> str:
        return context.vars.get(self.name, "")


@dataclass(frozen=True)
class StateRef(Resolver):
    """String found at ``path`` in the output stored for ``description``."""

    description: str
    path: str = ""

    def resolve(self, context: Context) -> str:
        if self.description not in context.state:
            return ""
        try:
            value = find(self.path, context.state[self.description])
        except PathLookupError:
            return ""
        return value if isinstance(value, str) else ""


@dataclass(frozen=True)
class WithDefault(Resolver):
    primary: Resolver
    fallback: Resolver

    def resolve(self, context: Context) -> str:
        value = self.primary.resolve(context)
        if value != "":
            return value
        return self.fallback.resolve(context)


@dataclass(frozen=True)
class Interpolate(Resolver):
    """Fill the ``{}`` placeholders of ``template`` with ``parts`` in order."""

    template: str
    parts: tuple[Resolver, ...] = ()

    def __post_init__(self) -> None:
        fields = [name for _, name, _, _ in Formatter().parse(self.template) if name is not None]
        if any(name != "" for name in fields):
            raise ValueError(f"template {self.template!r} may only use positional '{{}}' placeholders")
        if len(fields) != len(self.parts):
            raise ValueError(
                f"template {self.template!r} has {len(fields)} placeholders but {len(self.parts)} parts"
            )

    def resolve(self, context: Context) -> str:
        return self.template.format(*(part.resolve(context) for part in self.parts))


@dataclass(frozen=True)
class ListResolver:
    items: tuple[Resolver, ...] = ()

    def resolve(self, context: Context) -> list[str]:
        return [item.resolve(context) for item in self.items]


StringLike = Union[str, Resolver]


def coerce(value: StringLike) -> Resolver:
    if isinstance(value, Resolver):
        return value
    if isinstance(value, str):
        return Literal(value)
    raise TypeError(f"expected a string or resolver, got {type(value).__name__}")


def literal(value: str) -> Literal:
    return Literal(value)


def var(name: str) -> Var:
    return Var(name)


def state(description: str, path: str = "") -> StateRef:
    return StateRef(description, path)


def with_default(primary: StringLike, fallback: StringLike) -> WithDefault:
    return WithDefault(coerce(primary), coerce(fallback))


def interpolate(template: str, *parts: StringLike) -> Interpolate:
    return Interpolate(template, tuple(coerce(part) for part in parts))


def args(*items: StringLike) -> ListResolver:
    return ListResolver(tuple(coerce(item) for item in items))


def parse(spec: Any) -> Resolver:
    """Build a resolver from playbook data.

    ``"text"`` is a literal; tables select the other forms::

        {var = "name"}
        {state = "task description", path = "outputs.Key"}
        {format = "{}-{}", parts = [...]}
        {value = ..., default = ...}
        {literal = "text"}
    """

    if isinstance(spec, str):
        return Literal(spec)
    if isinstance(spec, (int, float)) and not isinstance(spec, bool):
        return Literal(str(spec))
    if not isinstance(spec, dict):
        raise ValueError(f"cannot build a value from {spec!r}")
    if "literal" in spec:
        return Literal(str(spec["literal"]))
    if "var" in spec:
        return Var(str(spec["var"]))
    if "state" in spec:
        return StateRef(str(spec["state"]), str(spec.get("path", "")))
    if "format" in spec:
        parts = spec.get("parts", [])
        if not isinstance(parts, list):
            raise ValueError("format parts must be a list")
        return Interpolate(str(spec["format"]), tuple(parse(part) for part in parts))
    if "value" in spec and "default" in spec:
        return WithDefault(parse(spec["value"]), parse(spec["default"]))
    raise ValueError(f"unrecognised value spec with keys {sorted(spec)}")


def parse_list(spec: Any) -> ListResolver:
    if spec is None:
        return ListResolver()
    if isinstance(spec, (str, dict)):
        spec = [spec]
    if not isinstance(spec, Iterable):
        raise ValueError(f"expected a list of values, got {spec!r}")
    return ListResolver(tuple(parse(item) for item in spec))
