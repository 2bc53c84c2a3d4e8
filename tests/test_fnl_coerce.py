import math

import pytest

from fnl.fnl_coerce import (
    parse_number_literal, to_number, parse_float, format_number, to_string, truthy,
    loose_equals, compare, add, divide, js_round, slice_list, splice_list, exit_code,
)


@pytest.mark.parametrize("text, expected", [
    ("42", 42.0),
    ("-3.5", -3.5),
    (".5", 0.5),
    ("1e3", 1000.0),
    ("0x1F", 31.0),
    ("0b101", 5.0),
    ("Infinity", math.inf),
    ("", 0.0),
])
def test_parse_number_literal_accepts_number_grammar(text, expected):
    assert parse_number_literal(text) == expected


@pytest.mark.parametrize("text", ["abc", "1a", "ref:x", "--1", "1.2.3"])
def test_parse_number_literal_rejects_non_numbers(text):
    assert parse_number_literal(text) is None


def test_to_number_coercions():
    assert to_number(None) == 0.0
    assert to_number(True) == 1.0
    assert to_number(" 12 ") == 12.0
    assert math.isnan(to_number("twelve"))
    assert to_number([]) == 0.0
    assert to_number([7.0]) == 7.0
    assert math.isnan(to_number({}))


def test_parse_float_takes_longest_prefix():
    assert parse_float("3.5abc") == 3.5
    assert parse_float("  -2e2x") == -200.0
    assert parse_float(4.0) == 4.0
    assert parse_float("-Infinity") == -math.inf
    assert math.isnan(parse_float("abc"))
    assert math.isnan(parse_float(None))


@pytest.mark.parametrize("value, expected", [
    (1.0, "1"),
    (-0.0, "0"),
    (2.5, "2.5"),
    (0.1 + 0.2, "0.30000000000000004"),
    (123456.789, "123456.789"),
    (1e21, "1e+21"),
    (1e20, "100000000000000000000"),
    (0.000001, "0.000001"),
    (1e-7, "1e-7"),
    (1.5e-10, "1.5e-10"),
    (float("nan"), "NaN"),
    (-math.inf, "-Infinity"),
])
def test_format_number_matches_number_to_string(value, expected):
    assert format_number(value) == expected


def test_to_string_for_each_kind():
    assert to_string(None) == "null"
    assert to_string(False) == "false"
    assert to_string(3.0) == "3"
    assert to_string([1.0, None, "a", [2.0, 3.0]]) == "1,,a,2,3"
    assert to_string({"a": 1}) == "[object Object]"


def test_truthiness():
    assert truthy([]) is True
    assert truthy({}) is True
    assert truthy("0") is True
    assert truthy("") is False
    assert truthy(0.0) is False
    assert truthy(float("nan")) is False
    assert truthy(None) is False


def test_loose_equality():
    assert loose_equals("1", 1.0)
    assert loose_equals(True, 1.0)
    assert loose_equals([], "")
    assert loose_equals(None, None)
    assert not loose_equals(None, 0.0)
    assert not loose_equals(float("nan"), float("nan"))
    a = [1.0]
    assert loose_equals(a, a)
    assert not loose_equals([1.0], [1.0])


def test_relational_comparison():
    # two strings compare by code unit, anything else numerically
    assert compare("<", "10", "9") is True
    assert compare("<", "10", 9.0) is False
    assert compare(">=", 3.0, 3.0) is True
    # NaN makes every relation false
    assert compare("<=", "a", 1.0) is False
    assert compare(">=", "a", 1.0) is False


def test_add_concatenates_unless_both_are_numbers():
    assert add(1.0, 2.0) == 3.0
    assert add("a", 1.0) == "a1"
    assert add(1.0, "2") == "12"
    assert add(True, 1.0) == "true1"
    assert add(None, "x") == "nullx"


def test_divide_by_zero():
    assert divide(1.0, 0.0) == math.inf
    assert divide(-1.0, 0.0) == -math.inf
    assert divide(1.0, -0.0) == -math.inf
    assert math.isnan(divide(0.0, 0.0))
    assert divide("9", 3.0) == 3.0


def test_js_round_half_goes_up():
    assert js_round(2.5) == 3.0
    assert js_round(-2.5) == -2.0
    assert js_round("1.4") == 1.0
    assert math.isnan(js_round("x"))


def test_slice_and_splice_index_rules():
    items = [1.0, 2.0, 3.0, 4.0]
    assert slice_list(items, 1.0, 3.0) == [2.0, 3.0]
    assert slice_list(items, -3.0, -1.0) == [2.0, 3.0]
    assert slice_list(items, 3.0, 1.0) == []
    assert slice_list(items, 2.0, None) == [3.0, 4.0]
    assert items == [1.0, 2.0, 3.0, 4.0]

    removed = splice_list(items, -3.0, 2.0)
    assert removed == [2.0, 3.0]
    assert items == [1.0, 4.0]
    assert splice_list(items, 0.0, -1.0) == []
    assert splice_list(items, 1.0, 99.0) == [4.0]
    assert items == [1.0]


@pytest.mark.parametrize("payload, code", [
    ("3", 3),
    ("2.5", 3),
    ("-1.5", -1),
    ('"abc"', 0),
    ("7days", 7),
    ("Infinity", 0),
    (0, 0),
    (None, 0),
])
def test_exit_code_from_payload(payload, code):
    assert exit_code(payload) == code
