"""
Error types raised by the JSON facade.

Engine-specific exceptions never leave the facade: they are re-raised as one
of the two kinds below with the original exception chained as ``__cause__``.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Optional


class ErrorCode(IntEnum):
    NONE = 0
    DEPTH = 1
    SYNTAX = 4
    UTF8 = 5
    INF_OR_NAN = 7
    UNSUPPORTED_TYPE = 8
    EMPTY = 12
    INVALID_OPTION = 20
    NOT_FOUND = 30
    NOT_WRITABLE = 31
    READ = 40
    WRITE = 41


class JsonError(Exception):
    """Base exception for facade errors."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.NONE):
        self.message = message
        self.code = code
        super().__init__(message)


class InvalidInput(JsonError, ValueError):
    """Malformed JSON, bad options, unsupported values or unusable paths."""


class IoFailure(JsonError, RuntimeError):
    """A read or write failed after its precondition check passed."""


__all__ = ["ErrorCode", "JsonError", "InvalidInput", "IoFailure"]
