from __future__ import annotations

from typing import Any

from .base import Module
from ..types import Context, Response


class NullOutput:
    def to_value(self) -> None:
        return None

    def __repr__(self) -> str:
        return "NullOutput()"


class NullModule(Module):
    """Does nothing; useful for wiring and tests."""

    def name(self) -> str:
        return "null"

    def apply(self, context: Context) -> Response:
        return Response(changed=False, output=NullOutput())

    def destroy(self) -> Response:
        return Response(changed=False, output=NullOutput())

    @classmethod
    def from_spec(cls, spec: dict[str, Any]) -> "NullModule":
        return cls()
