"""Tests for easyfix.serialize module."""

import datetime
import json
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

import pytest

from easyfix.errors import ReplayedError
from easyfix.serialize import CIRCULAR_ROOT, EXCEPTION_TAG, parse, stringify_safe


class Color(Enum):
    RED = "red"


@dataclass
class Point:
    x: int
    y: int


class Account:
    def __init__(self, owner, balance):
        self.owner = owner
        self.balance = balance


class CustomError(Exception):
    pass


class NeedsTwoArgs(Exception):
    def __init__(self, code, detail):
        super().__init__(f"{code}: {detail}")


class TestAcyclicValues:
    """parse(stringify_safe(v)) returns an equal value for JSON data."""

    @pytest.mark.parametrize("value", [
        None,
        True,
        0,
        -17,
        3.5,
        "text",
        "ünïcode",
        [],
        {},
        [1, "two", None, [3, {"four": 4}]],
        {"b": 1, "a": {"nested": [True, False]}},
    ])
    def test_round_trip(self, value):
        assert parse(stringify_safe(value)) == value

    def test_key_order_does_not_matter(self):
        a = {"x": 1, "y": {"p": 1, "q": 2}}
        b = {"y": {"q": 2, "p": 1}, "x": 1}

        assert stringify_safe(a) == stringify_safe(b)

    def test_compact_output(self):
        assert stringify_safe([1, {"a": 2}]) == '[1,{"a":2}]'

    def test_indent(self):
        text = stringify_safe({"a": 1}, indent=2)

        assert text == '{\n  "a": 1\n}'

    def test_tuple_becomes_list(self):
        assert parse(stringify_safe((1, 2))) == [1, 2]

    def test_shared_reference_is_not_circular(self):
        shared = {"k": 1}
        value = {"a": shared, "b": shared}

        assert parse(stringify_safe(value)) == {"a": {"k": 1}, "b": {"k": 1}}


class TestCircularReferences:
    """Cycles are replaced by markers instead of raising."""

    def test_root_self_reference(self):
        value = {"name": "root"}
        value["self"] = value

        assert parse(stringify_safe(value)) == {"name": "root", "self": CIRCULAR_ROOT}

    def test_root_self_reference_in_list(self):
        value = [1]
        value.append(value)

        assert parse(stringify_safe(value)) == [1, CIRCULAR_ROOT]

    def test_nested_reference_uses_key_path(self):
        child = {}
        value = {"a": {"b": child}}
        child["back"] = value["a"]

        result = parse(stringify_safe(value))

        assert result["a"]["b"]["back"] == "[Circular ~.a]"

    def test_deep_path(self):
        inner = {"items": []}
        value = {"outer": {"inner": inner}}
        inner["items"].append(inner)

        result = parse(stringify_safe(value))

        assert result["outer"]["inner"]["items"][0] == "[Circular ~.outer.inner]"

    def test_object_cycle(self):
        account = Account("ada", 10)
        account.owner = account

        result = parse(stringify_safe(account))

        assert result == {"owner": CIRCULAR_ROOT, "balance": 10}

    def test_cycle_through_arguments_list(self):
        node = {"id": 1}
        node["next"] = node

        result = parse(stringify_safe([node]))

        assert result == [{"id": 1, "next": "[Circular ~.0]"}]


class TestNormalization:
    """Non-JSON values are normalized deterministically."""

    def test_non_finite_floats(self):
        assert parse(stringify_safe([float("nan"), float("inf")])) == [None, None]

    def test_decimal(self):
        assert parse(stringify_safe(Decimal("1.25"))) == 1.25

    def test_enum(self):
        assert parse(stringify_safe(Color.RED)) == "red"

    def test_bytes(self):
        assert parse(stringify_safe(b"\x01\xff")) == "01ff"

    def test_datetime(self):
        moment = datetime.datetime(2024, 1, 2, 3, 4, 5)

        assert parse(stringify_safe(moment)) == "2024-01-02T03:04:05"

    def test_set_is_sorted(self):
        assert stringify_safe({3, 1, 2}) == "[1,2,3]"

    def test_dataclass(self):
        assert parse(stringify_safe(Point(1, 2))) == {"x": 1, "y": 2}

    def test_plain_object(self):
        assert parse(stringify_safe(Account("ada", 10))) == {"owner": "ada", "balance": 10}

    def test_function(self):
        def handler():
            pass

        text = stringify_safe([handler])

        assert "[Function" in text
        assert "handler" in text

    def test_non_string_keys(self):
        assert parse(stringify_safe({1: "a"})) == {"[int 1]": "a"}

    def test_non_string_key_does_not_clash_with_string_key(self):
        assert parse(stringify_safe({1: "a", "1": "b"})) == {"[int 1]": "a", "1": "b"}

    def test_int_and_string_keys_serialize_differently(self):
        assert stringify_safe([{1: "a"}]) != stringify_safe([{"1": "a"}])


class TestExceptions:
    """Exceptions are tagged on the way out and revived by parse."""

    def test_builtin_exception_revives(self):
        revived = parse(stringify_safe(ValueError("boom")))

        assert isinstance(revived, ValueError)
        assert str(revived) == "boom"

    def test_custom_exception_revives_from_loaded_module(self):
        revived = parse(stringify_safe(CustomError("nope")))

        assert isinstance(revived, CustomError)
        assert revived.args == ("nope",)

    def test_unconstructible_exception_becomes_replayed_error(self):
        revived = parse(stringify_safe(NeedsTwoArgs(404, "missing")))

        assert isinstance(revived, ReplayedError)
        assert revived.type_name.endswith("NeedsTwoArgs")
        assert str(revived) == "404: missing"

    def test_unknown_module_becomes_replayed_error(self):
        text = json.dumps({EXCEPTION_TAG: {
            "type": "Gone",
            "module": "not_a_loaded_module",
            "message": "vanished",
            "args": ["vanished"],
        }})

        revived = parse(text)

        assert isinstance(revived, ReplayedError)
        assert revived.message == "vanished"

    def test_user_mapping_with_exception_like_key_stays_a_dict(self):
        value = {"__exception__": {"type": "ValueError", "module": "builtins", "message": "x", "args": ["x"]}}

        assert parse(stringify_safe(value)) == value

    @pytest.mark.parametrize("fields", [
        {"type": "ValueError", "module": "builtins", "message": "x"},
        {"type": "ValueError", "module": "builtins", "message": "x", "args": ["x"], "extra": 1},
    ])
    def test_tag_with_unexpected_fields_stays_a_dict(self, fields):
        text = json.dumps({EXCEPTION_TAG: fields})

        assert parse(text) == {EXCEPTION_TAG: fields}

    def test_exception_inside_list(self):
        revived = parse(stringify_safe([KeyError("k")]))

        assert isinstance(revived[0], KeyError)
