"""Structured values and dot-path lookup.

Module output is stored in the context as plain JSON-shaped data: ``None``,
``bool``, ``int``, ``float``, ``str``, ``list`` and ``dict`` with string keys.
"""

from __future__ import annotations

import copy
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any, Mapping

from .errors import ArrayIndexError, OutputConversionError, PathNotFoundError

SCALAR_TYPES = (bool, int, float, str)


def is_scalar(value: Any) -> bool:
    return value is None or isinstance(value, SCALAR_TYPES)


def to_value(output: Any) -> Any:
    """Convert module output into a fresh structured value.

    Objects exposing ``to_value()`` are asked to convert themselves, dataclass
    instances are expanded field by field, anything else must already be
    JSON-shaped.
    """

    to_value_method = getattr(output, "to_value", None)
    if callable(to_value_method):
        output = to_value_method()
    elif is_dataclass(output) and not isinstance(output, type):
        output = asdict(output)
    return _normalize_value(output)


def _normalize_value(value: Any) -> Any:
    if is_scalar(value):
        return value
    if isinstance(value, Mapping):
        normalized: dict[str, Any] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise OutputConversionError(f"object keys must be strings, got {type(key).__name__}")
            normalized[key] = _normalize_value(item)
        return normalized
    if isinstance(value, (list, tuple)):
        return [_normalize_value(v) for v in value]
    if isinstance(value, Path):
        return str(value)
    raise OutputConversionError(f"cannot convert {type(value).__name__} to a value")


def find(path: str, root: Any) -> Any:
    """Return the value at the dot-separated ``path`` inside ``root``.

    Traversal stops at the first scalar and returns it, even when segments
    remain. Lists take numeric segments, dicts take keys. The empty path
    returns ``root`` itself.
    """

    segments = path.split(".") if path else []
    current = root
    for segment in segments:
        if is_scalar(current):
            break
        if isinstance(current, list):
            if not segment.isdecimal():
                raise ArrayIndexError(path)
            index = int(segment)
            if index >= len(current):
                raise PathNotFoundError(path)
            current = current[index]
        elif isinstance(current, Mapping):
            if segment not in current:
                raise PathNotFoundError(path)
            current = current[segment]
        else:
            raise OutputConversionError(f"cannot traverse {type(current).__name__} at path {path}")
    return copy.deepcopy(current)
