"""
Example plugin module for Ferro.

Drop this file into a plugin directory (see plugin_dirs in main.conf) or make it
importable (plugin_modules) and it will register a new module called
`say_hello` that returns a greeting without making system changes.
"""

from ferro_automation import lazy
from ferro_automation.modules.base import Module
from ferro_automation.types import Context, Response


class SayHelloModule(Module):
    def __init__(self, message):
        self.message = lazy.coerce(message)

    def name(self) -> str:
        return "say_hello"

    def apply(self, context: Context) -> Response:
        # no system changes, so changed=False
        return Response(changed=False, output={"greeting": self.message.resolve(context)})

    @classmethod
    def from_spec(cls, spec: dict) -> "SayHelloModule":
        return cls(lazy.parse(spec.get("message", "hello")))


def register_modules(registry) -> None:
    registry["say_hello"] = SayHelloModule
