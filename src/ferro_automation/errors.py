from __future__ import annotations


class FerroError(Exception):
    """Base class for engine errors."""


class ConditionError(FerroError):
    """Raised when a condition cannot be evaluated (as opposed to being false)."""


class ModuleError(FerroError):
    """Raised by a module when its action fails.

    ``changed`` reports whether side effects may already have happened even
    though the action as a whole failed.
    """

    def __init__(self, description: str, *, changed: bool = False):
        super().__init__(description)
        self.description = description
        self.changed = changed


class PathLookupError(FerroError):
    def __init__(self, message: str, path: str):
        super().__init__(message)
        self.path = path


class PathNotFoundError(PathLookupError):
    def __init__(self, path: str):
        super().__init__(f"value not found at path {path}", path)


class ArrayIndexError(PathLookupError):
    def __init__(self, path: str):
        super().__init__(f"array index must be numeric at path {path}", path)


class OutputConversionError(FerroError, TypeError):
    """Raised when module output cannot be turned into a structured value."""


class PlaybookError(FerroError):
    pass
