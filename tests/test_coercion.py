import pytest

from jsonmirror.coercion import copy_value, copy_value_or_raise, get_value, narrow
from jsonmirror.errors import TypeMismatchError, UnsupportedValueTypeError
from jsonmirror.schema import ScalarKind, as_kind


@pytest.mark.parametrize(
    "value, kind, expected",
    [
        (5, ScalarKind.INT32, 5),
        ("12", ScalarKind.INT64, 12),
        (True, ScalarKind.BOOLEAN, True),
        ("false", ScalarKind.BOOLEAN, False),
        ("text", ScalarKind.STRING, "text"),
        (3, ScalarKind.STRING, "3"),
        (2, ScalarKind.FLOAT64, 2.0),
        (0.25, ScalarKind.FLOAT32, 0.25),
    ],
)
def test_narrow_accepts_compatible_values(value, kind, expected):
    assert narrow(value, kind) == expected


@pytest.mark.parametrize(
    "value, kind",
    [
        ("abc", ScalarKind.INT64),
        (1.5, ScalarKind.INT32),
        (2**31, ScalarKind.INT32),
        (2**63, ScalarKind.INT64),
        (True, ScalarKind.INT64),
        (False, ScalarKind.FLOAT64),
        ({"a": 1}, ScalarKind.STRING),
        ([1], ScalarKind.INT64),
        (float("nan"), ScalarKind.FLOAT64),
        (1e39, ScalarKind.FLOAT32),
        ("maybe", ScalarKind.BOOLEAN),
    ],
)
def test_narrow_rejects_incompatible_values(value, kind):
    with pytest.raises(TypeMismatchError) as excinfo:
        narrow(value, kind, "field")

    assert excinfo.value.key == "field"
    assert excinfo.value.kind is kind


def test_get_value_reports_missing_keys():
    with pytest.raises(TypeMismatchError, match="key not found"):
        get_value({}, "id", ScalarKind.INT64)


def test_get_value_narrows_present_keys():
    assert get_value({"id": "7"}, "id", ScalarKind.INT32) == 7


def test_copy_value_accepts_scalars_and_null():
    row = {}

    assert copy_value(None, "a", row)
    assert copy_value(1.5, "b", row)
    assert copy_value("x", "c", row)
    assert row == {"a": None, "b": 1.5, "c": "x"}


def test_copy_value_refuses_containers():
    row = {}

    assert not copy_value({"nested": 1}, "a", row)
    assert row == {}
    with pytest.raises(UnsupportedValueTypeError):
        copy_value_or_raise([1, 2], "a", row)


def test_as_kind_accepts_shorthands():
    assert as_kind(int) is ScalarKind.INT64
    assert as_kind("Float32") is ScalarKind.FLOAT32
    assert as_kind(ScalarKind.BOOLEAN) is ScalarKind.BOOLEAN
    with pytest.raises(ValueError):
        as_kind(list)
