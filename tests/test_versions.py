import pytest

from gradientpm.versions import (
    Constraint,
    eval_constraint,
    parse_constraint,
    version_compare,
)


def test_parse_constraint_with_operator():
    assert parse_constraint("foo>=1.2.3-4") == Constraint("foo", ">=", "1.2.3-4")


def test_parse_constraint_plain_name():
    assert parse_constraint("foo") == Constraint("foo", "", "")


@pytest.mark.parametrize("op", ["<=", ">=", "<", ">", "="])
def test_parse_constraint_each_operator(op):
    c = parse_constraint(f"libx{op}2.0")
    assert (c.name, c.op, c.version) == ("libx", op, "2.0")


def test_numeric_segments_compare_numerically():
    assert version_compare("1.2", "1.10") < 0
    assert version_compare("1.10", "1.2") > 0


def test_equal_versions():
    assert version_compare("1.2.3", "1.2.3") == 0


def test_trailing_numeric_release_is_ignored():
    assert version_compare("1.0", "1.0-1") == 0
    assert version_compare("1.0-7", "1.0") == 0


def test_trailing_non_numeric_suffix_is_greater():
    assert version_compare("1.0.beta", "1.0") > 0
    assert version_compare("1.0", "1.0.beta") < 0


def test_mixed_segment_compares_lexically():
    assert version_compare("1.0", "1.0a") < 0


@pytest.mark.parametrize(
    "a,b",
    [("1.2", "1.10"), ("2.0", "1.9.9"), ("1.0a", "1.0b"), ("3", "3.x"), ("1+2", "1.2")],
)
def test_compare_is_antisymmetric(a, b):
    assert version_compare(a, b) == -version_compare(b, a)


def test_eval_constraint_without_operator_accepts_anything():
    assert eval_constraint("0.0.1", parse_constraint("foo")) is True


@pytest.mark.parametrize(
    "installed,spec,expected",
    [
        ("1.2", "foo>=1.2", True),
        ("1.1", "foo>=1.2", False),
        ("1.3", "foo>1.2", True),
        ("1.2", "foo>1.2", False),
        ("1.2", "foo<=1.2", True),
        ("1.3", "foo<=1.2", False),
        ("1.1", "foo<1.2", True),
        ("1.2", "foo<1.2", False),
        ("1.2-3", "foo=1.2", True),
        ("1.3", "foo=1.2", False),
    ],
)
def test_eval_constraint(installed, spec, expected):
    assert eval_constraint(installed, parse_constraint(spec)) is expected


def test_eval_constraint_unknown_operator():
    assert eval_constraint("1.0", Constraint("foo", "~", "1.0")) is False