from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ..types import Context, Response


class Module(ABC):
    """Shared surface for pluggable task actions.

    ``apply`` returns a :class:`Response` or raises ``ModuleError``. ``destroy``
    follows the same contract and is reserved for a teardown phase; the
    playbook driver does not call it.
    """

    @abstractmethod
    def name(self) -> str:
        """Stable label used in logs and task results."""

    @abstractmethod
    def apply(self, context: Context) -> Response:
        """Perform the action, reading parameters from ``context``."""

    def destroy(self) -> Response:
        return Response(changed=False)

    @classmethod
    def from_spec(cls, spec: dict[str, Any]) -> "Module":
        """Build the module from playbook data."""
        raise NotImplementedError(f"{cls.__name__} cannot be loaded from a playbook file")
