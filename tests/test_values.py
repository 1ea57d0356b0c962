from dataclasses import dataclass
from pathlib import Path

import pytest

from ferro_automation.errors import ArrayIndexError, OutputConversionError, PathNotFoundError
from ferro_automation.values import find, to_value

VALUE = {
    "k1": {"k1": ["1", "2", "3"], "k2": [1, 2, 3]},
    "k2": {"k1": [{"k1": "v1", "k2": "v2"}]},
}


def test_find_navigates_objects_and_arrays() -> None:
    assert find("k1.k1.1", VALUE) == "2"
    assert find("k1.k2.1", VALUE) == 2
    assert find("k2.k1.0.k1", VALUE) == "v1"
    assert find("k1.k1", VALUE) == ["1", "2", "3"]
    assert find("k1", VALUE) == {"k1": ["1", "2", "3"], "k2": [1, 2, 3]}
    assert find("k1.k2", VALUE) == [1, 2, 3]
    assert find("k2.k1.0", VALUE) == {"k1": "v1", "k2": "v2"}


def test_empty_path_returns_root() -> None:
    assert find("", VALUE) == VALUE


@pytest.mark.parametrize("scalar", [None, True, 0, 1.5, "text"])
def test_scalar_stops_lookup_early(scalar) -> None:
    assert find("a.b.3.c", scalar) == scalar


def test_scalar_inside_structure_truncates_remaining_path() -> None:
    assert find("k1.k1.0.anything.else", VALUE) == "1"


def test_non_numeric_array_index_is_distinct_from_not_found() -> None:
    with pytest.raises(ArrayIndexError, match="array index must be numeric"):
        find("k1.k1.first", VALUE)
    with pytest.raises(PathNotFoundError, match="value not found at path k1.k1.9"):
        find("k1.k1.9", VALUE)
    with pytest.raises(PathNotFoundError):
        find("k3", VALUE)


def test_negative_index_is_not_numeric() -> None:
    with pytest.raises(ArrayIndexError):
        find("k1.k1.-1", VALUE)


def test_find_returns_a_copy() -> None:
    found = find("k1.k1", VALUE)
    found.append("4")
    assert VALUE["k1"]["k1"] == ["1", "2", "3"]


def test_to_value_converts_dataclasses_and_objects() -> None:
    @dataclass
    class Out:
        name: str
        items: tuple
        where: Path

    class Custom:
        def to_value(self):
            return {"ok": True}

    assert to_value(Out("a", (1, 2), Path("/tmp"))) == {"name": "a", "items": [1, 2], "where": "/tmp"}
    assert to_value(Custom()) == {"ok": True}
    assert to_value(None) is None


def test_to_value_rejects_unconvertible_output() -> None:
    with pytest.raises(OutputConversionError):
        to_value({"bad": object()})
    with pytest.raises(OutputConversionError):
        to_value({1: "int key"})
