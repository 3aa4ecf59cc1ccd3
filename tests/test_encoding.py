"""
Unit tests for jay.core.encoding.

Tests the value preparation pass and string-literal escaping.
"""

import uuid
from enum import Enum, IntEnum

import pytest

from jay.core.encoding import Prepared, escape, inspect_prepare, needs_escaping, prepare
from jay.core.errors import ErrorCode, InvalidInput
from jay.core.options import EncodeFlag, EncodeOptions


def _options(flags=0, max_depth=512):
    return EncodeOptions(flags=flags, max_depth=max_depth)


class Color(Enum):
    RED = "red"


class Level(IntEnum):
    HIGH = 3


class TestPrepare:
    """Tests for prepare."""

    def test_plain_values_unchanged(self):
        value = {"a": [1, "x", None, True, 2.5]}
        assert prepare(value, _options()) == value

    def test_does_not_mutate_input(self):
        value = {"a": (1, 2)}
        prepare(value, _options())
        assert value == {"a": (1, 2)}

    def test_preserves_key_order(self):
        prepared = prepare({"z": 1, "a": 2}, _options())
        assert list(prepared) == ["z", "a"]

    def test_scalar_keys(self):
        prepared = prepare({1: "a", None: "b", False: "c", 2.0: "d"}, _options())
        assert prepared == {"1": "a", "null": "b", "false": "c", "2": "d"}

    def test_enums_and_uuid(self):
        ident = uuid.UUID(int=1)
        prepared = prepare([Color.RED, Level.HIGH, ident], _options())
        assert prepared == ["red", 3, str(ident)]
        assert type(prepared[1]) is int

    def test_force_object(self):
        prepared = prepare({"l": [[1]]}, _options(EncodeFlag.FORCE_OBJECT))
        assert prepared == {"l": {"0": {"0": 1}}}

    def test_numeric_check(self):
        prepared = prepare(["7", " -2 ", "1e3", "0x1A", "abc"], _options(EncodeFlag.NUMERIC_CHECK))
        assert prepared == [7, -2, 1000, "0x1A", "abc"]

    def test_numeric_check_leaves_keys(self):
        prepared = prepare({"1": "2"}, _options(EncodeFlag.NUMERIC_CHECK))
        assert prepared == {"1": 2}

    def test_zero_fraction(self):
        assert prepare(3.0, _options()) == 3
        assert isinstance(prepare(3.0, _options(EncodeFlag.PRESERVE_ZERO_FRACTION)), float)
        assert isinstance(prepare(1e20, _options()), float)

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite(self, value):
        with pytest.raises(InvalidInput) as excinfo:
            prepare([value], _options())
        assert excinfo.value.code == ErrorCode.INF_OR_NAN

    def test_depth(self):
        assert prepare([[[]]], _options(max_depth=3)) == [[[]]]
        with pytest.raises(InvalidInput) as excinfo:
            prepare([[[[]]]], _options(max_depth=3))
        assert excinfo.value.code == ErrorCode.DEPTH

    def test_deep_value_within_default_depth(self):
        value = []
        for _ in range(511):
            value = [value]
        assert prepare(value, _options()) == value

    def test_reports_depth(self):
        assert inspect_prepare(1, _options()).depth == 0
        assert inspect_prepare({"a": [[1], []]}, _options()).depth == 3

    def test_reports_wide_integers(self):
        assert not inspect_prepare([2 ** 64 - 1, -(2 ** 63)], _options()).wide_integers
        assert inspect_prepare({"n": 2 ** 64}, _options()).wide_integers
        assert inspect_prepare([-(2 ** 63) - 1], _options()).wide_integers
        assert inspect_prepare([str(2 ** 64)], _options(EncodeFlag.NUMERIC_CHECK)).wide_integers
        assert not inspect_prepare([str(2 ** 64)], _options()).wide_integers

    def test_inspect_matches_prepare(self):
        value = {"a": (1, "x")}
        assert inspect_prepare(value, _options()) == Prepared({"a": [1, "x"]}, 1, False)
        assert prepare(value, _options()) == {"a": [1, "x"]}

    def test_dict_cycle(self):
        cycle = {}
        cycle["self"] = cycle
        with pytest.raises(InvalidInput, match="Maximum stack depth exceeded"):
            prepare(cycle, _options(max_depth=10))

    def test_bytes(self):
        assert prepare(b"caf\xc3\xa9", _options()) == "café"

    def test_invalid_bytes(self):
        with pytest.raises(InvalidInput) as excinfo:
            prepare(b"\xc3", _options())
        assert excinfo.value.code == ErrorCode.UTF8
        assert isinstance(excinfo.value.__cause__, UnicodeDecodeError)

    def test_invalid_key(self):
        with pytest.raises(InvalidInput):
            prepare({"a\udc80": 1}, _options())

    def test_invalid_text_policies(self):
        assert prepare("x\udc80", _options(EncodeFlag.INVALID_UTF8_SUBSTITUTE)) == "x\ufffd"
        assert prepare("x\udc80", _options(EncodeFlag.INVALID_UTF8_IGNORE)) == "x"

    def test_substitute_wins_over_ignore(self):
        flags = EncodeFlag.INVALID_UTF8_SUBSTITUTE | EncodeFlag.INVALID_UTF8_IGNORE
        assert prepare(b"x\xff", _options(flags)) == "x\ufffd"

    def test_partial_output(self):
        marker = object()
        prepared = prepare(
            {"bad": "\udc80", (1,): "dropped", "obj": marker},
            _options(EncodeFlag.PARTIAL_OUTPUT_ON_ERROR),
        )
        assert prepared == {"bad": None, "obj": marker}

    def test_unknown_objects_left_for_engine(self):
        marker = object()
        assert prepare([marker], _options()) == [marker]


class TestEscape:
    """Tests for escape."""

    def test_default_escapes_slashes(self):
        assert escape('{"a/b":"c/d"}', EncodeFlag.NONE) == r'{"a\/b":"c\/d"}'

    def test_no_escaping_needed(self):
        flags = EncodeFlag.UNESCAPED_SLASHES
        assert not needs_escaping(flags)
        assert escape('"/"', flags) == '"/"'

    def test_hex_flags(self):
        flags = (
            EncodeFlag.UNESCAPED_SLASHES
            | EncodeFlag.HEX_TAG
            | EncodeFlag.HEX_AMP
            | EncodeFlag.HEX_APOS
            | EncodeFlag.HEX_QUOT
        )
        text = escape('"<a href=\\"x\\">&\'"', flags)
        assert text == '"\\u003Ca href=\\u0022x\\u0022\\u003E\\u0026\\u0027"'

    def test_hex_quot_keeps_escaped_backslash(self):
        flags = EncodeFlag.UNESCAPED_SLASHES | EncodeFlag.HEX_QUOT
        assert escape('["a\\\\","b\\""]', flags) == '["a\\\\","b\\u0022"]'

    def test_line_terminators(self):
        separator = chr(0x2028) + chr(0x2029)
        flags = EncodeFlag.UNESCAPED_SLASHES | EncodeFlag.UNESCAPED_UNICODE
        assert escape(f'"{separator}"', flags) == '"\\u2028\\u2029"'
        flags |= EncodeFlag.UNESCAPED_LINE_TERMINATORS
        assert escape(f'"{separator}"', flags) == f'"{separator}"'

    def test_structure_untouched(self):
        flags = EncodeFlag.HEX_QUOT | EncodeFlag.HEX_TAG
        assert escape('{"a":[1,2],"b":{}}', flags) == '{"a":[1,2],"b":{}}'
