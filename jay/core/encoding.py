"""
Engine-independent encoding helpers.

``prepare`` walks a value once before it reaches an engine and applies the
value-level encode flags, so both engines see plain JSON types. ``escape``
rewrites the string literals of already encoded text for the escaping flags
the baseline engine honours.
"""

from __future__ import annotations

import math
import re
import uuid
from enum import Enum
from typing import Any, NamedTuple, Optional, Union

from .errors import ErrorCode, InvalidInput
from .options import EncodeFlag, EncodeOptions
from .pydantic_compat import is_model, model_dump

_SURROGATES = re.compile("[\ud800-\udfff]")
_NUMERIC = re.compile(r"\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?\s*")
_INTEGER = re.compile(r"\s*[+-]?\d+\s*")
_STRING_LITERAL = re.compile(r'"(?:[^"\\]|\\.)*"', re.DOTALL)
_ESCAPE_SEQUENCE = re.compile(r"\\.", re.DOTALL)

# Integral floats above this keep their exponent form.
_MAX_INTEGRAL_FLOAT = 1e15

MALFORMED_UTF8 = "Malformed UTF-8 characters, possibly incorrectly encoded"
DEPTH_EXCEEDED = "Maximum stack depth exceeded"

# Signed and unsigned 64-bit integers together.
INT64_MIN = -(2 ** 63)
UINT64_MAX = 2 ** 64 - 1

_SKIP = object()


class Prepared(NamedTuple):
    """A prepared value and what the walk observed about it."""

    value: Any
    depth: int = 0
    wide_integers: bool = False


class _Preparer:
    def __init__(self, options: EncodeOptions):
        self.options = options
        self.partial = options.has(EncodeFlag.PARTIAL_OUTPUT_ON_ERROR)
        self.depth = 0
        self.wide_integers = False

    def fail(self, message: str, code: ErrorCode) -> None:
        if self.partial:
            return None
        raise InvalidInput(message, code)

    def enter(self, depth: int) -> int:
        depth += 1
        if depth > self.options.max_depth:
            raise InvalidInput(DEPTH_EXCEEDED, ErrorCode.DEPTH)
        self.depth = max(self.depth, depth)
        return depth

    def integer(self, value: int) -> int:
        value = int(value)
        if not INT64_MIN <= value <= UINT64_MAX:
            self.wide_integers = True
        return value

    @staticmethod
    def unwrap(value: Any) -> Any:
        while True:
            if isinstance(value, Enum):
                value = value.value
            elif is_model(value):
                value = model_dump(value)
            else:
                return value

    def scalar(self, value: Any) -> Any:
        if value is None or isinstance(value, bool):
            return value
        if isinstance(value, int):
            return self.integer(value)
        if isinstance(value, float):
            return self.number(value)
        if isinstance(value, str):
            text = self.text(value)
            if text is not None and self.options.has(EncodeFlag.NUMERIC_CHECK):
                return self.numeric(text)
            return text
        if isinstance(value, (bytes, bytearray, memoryview)):
            return self.raw(bytes(value))
        if isinstance(value, uuid.UUID):
            return str(value)
        # Left for the engine to reject, unless partial output replaces it.
        return value

    def number(self, value: float) -> Optional[float]:
        if not math.isfinite(value):
            return self.fail("Inf and NaN cannot be JSON encoded", ErrorCode.INF_OR_NAN)
        if (
            not self.options.has(EncodeFlag.PRESERVE_ZERO_FRACTION)
            and value.is_integer()
            and abs(value) < _MAX_INTEGRAL_FLOAT
        ):
            return int(value)
        return float(value)

    def numeric(self, text: str) -> Any:
        if not _NUMERIC.fullmatch(text):
            return text
        if _INTEGER.fullmatch(text):
            return self.integer(text)
        return self.number(float(text))

    def text(self, value: str) -> Optional[str]:
        value = str(value)
        if not _SURROGATES.search(value):
            return value
        if self.options.has(EncodeFlag.INVALID_UTF8_SUBSTITUTE):
            return _SURROGATES.sub("\ufffd", value)
        if self.options.has(EncodeFlag.INVALID_UTF8_IGNORE):
            return _SURROGATES.sub("", value)
        return self.fail(MALFORMED_UTF8, ErrorCode.UTF8)

    def raw(self, value: bytes) -> Optional[str]:
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError as exc:
            if self.options.has(EncodeFlag.INVALID_UTF8_SUBSTITUTE):
                return value.decode("utf-8", "replace")
            if self.options.has(EncodeFlag.INVALID_UTF8_IGNORE):
                return value.decode("utf-8", "ignore")
            if self.partial:
                return None
            raise InvalidInput(MALFORMED_UTF8, ErrorCode.UTF8) from exc

    def key(self, key: Any) -> Any:
        if isinstance(key, Enum):
            key = key.value
        if isinstance(key, str):
            text = self.text(key)
            return _SKIP if text is None else text
        if key is None:
            return "null"
        if isinstance(key, bool):
            return "true" if key else "false"
        if isinstance(key, int):
            return str(int(key))
        if isinstance(key, float):
            number = self.number(key)
            return _SKIP if number is None else str(number)
        if self.partial:
            return _SKIP
        return key

    def container(self, value: Any) -> Optional[Union[dict, list]]:
        """Shallow copy of a dict/list/tuple with keys converted, else ``None``.

        Children are copied as-is and replaced in place later.
        """
        if isinstance(value, dict):
            copy = {}
            for key, item in value.items():
                name = self.key(key)
                if name is not _SKIP:
                    copy[name] = item
            return copy
        if isinstance(value, (list, tuple)):
            if self.options.has(EncodeFlag.FORCE_OBJECT):
                return {str(index): item for index, item in enumerate(value)}
            return list(value)
        return None


def prepare(value: Any, options: EncodeOptions) -> Any:
    """Normalize ``value`` into plain JSON types according to ``options``."""
    return inspect_prepare(value, options).value


def inspect_prepare(value: Any, options: EncodeOptions) -> Prepared:
    """Like ``prepare``, also reporting the nesting depth and wide integers."""
    preparer = _Preparer(options)
    root = [value]
    stack = [(root, 0, 0)]
    while stack:
        parent, slot, depth = stack.pop()
        node = preparer.unwrap(parent[slot])
        copy = preparer.container(node)
        if copy is None:
            parent[slot] = preparer.scalar(node)
            continue
        depth = preparer.enter(depth)
        parent[slot] = copy
        slots = copy.keys() if isinstance(copy, dict) else range(len(copy))
        stack.extend((copy, child, depth) for child in slots)
    return Prepared(root[0], preparer.depth, preparer.wide_integers)


def partial_default(value: Any) -> None:
    """Engine ``default`` hook used with PARTIAL_OUTPUT_ON_ERROR."""
    return None


def _escape_literal(literal: str, flags: EncodeFlag) -> str:
    body = literal[1:-1]
    if not flags & EncodeFlag.UNESCAPED_SLASHES:
        body = body.replace("/", "\\/")
    if flags & EncodeFlag.HEX_TAG:
        body = body.replace("<", "\\u003C").replace(">", "\\u003E")
    if flags & EncodeFlag.HEX_AMP:
        body = body.replace("&", "\\u0026")
    if flags & EncodeFlag.HEX_APOS:
        body = body.replace("'", "\\u0027")
    if flags & EncodeFlag.HEX_QUOT:
        body = _ESCAPE_SEQUENCE.sub(
            lambda match: "\\u0022" if match.group() == '\\"' else match.group(), body
        )
    if flags & EncodeFlag.UNESCAPED_UNICODE and not flags & EncodeFlag.UNESCAPED_LINE_TERMINATORS:
        body = body.replace("\u2028", "\\u2028").replace("\u2029", "\\u2029")
    return f'"{body}"'


def needs_escaping(flags: EncodeFlag) -> bool:
    if not flags & EncodeFlag.UNESCAPED_SLASHES:
        return True
    if flags & (EncodeFlag.HEX_TAG | EncodeFlag.HEX_AMP | EncodeFlag.HEX_APOS | EncodeFlag.HEX_QUOT):
        return True
    return bool(
        flags & EncodeFlag.UNESCAPED_UNICODE
        and not flags & EncodeFlag.UNESCAPED_LINE_TERMINATORS
    )


def escape(text: str, flags: EncodeFlag) -> str:
    """Apply the escaping flags to every string literal in encoded ``text``."""
    if not needs_escaping(flags):
        return text
    return _STRING_LITERAL.sub(lambda match: _escape_literal(match.group(), flags), text)


__all__ = [
    "DEPTH_EXCEEDED",
    "MALFORMED_UTF8",
    "INT64_MIN",
    "UINT64_MAX",
    "Prepared",
    "prepare",
    "inspect_prepare",
    "partial_default",
    "needs_escaping",
    "escape",
]
