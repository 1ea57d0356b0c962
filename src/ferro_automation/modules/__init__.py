from .base import Module
from .cloudformation import CloudFormationModule, Template
from .command import CommandModule, CommandOutput
from .null import NullModule, NullOutput

MODULE_REGISTRY = {
    "null": NullModule,
    "command": CommandModule,
    "cloudformation": CloudFormationModule,
}

__all__ = [
    "Module",
    "NullModule",
    "NullOutput",
    "CommandModule",
    "CommandOutput",
    "CloudFormationModule",
    "Template",
    "MODULE_REGISTRY",
]
