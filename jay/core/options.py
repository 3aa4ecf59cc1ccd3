"""
Decode/encode options and the encode flag bitmask.
"""

from __future__ import annotations

from enum import IntFlag
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from .errors import ErrorCode, InvalidInput
from .pydantic_compat import model_validate

DEFAULT_DEPTH = 512


class EncodeFlag(IntFlag):
    NONE = 0
    HEX_TAG = 1 << 0
    HEX_AMP = 1 << 1
    HEX_APOS = 1 << 2
    HEX_QUOT = 1 << 3
    FORCE_OBJECT = 1 << 4
    NUMERIC_CHECK = 1 << 5
    UNESCAPED_SLASHES = 1 << 6
    PRETTY_PRINT = 1 << 7
    UNESCAPED_UNICODE = 1 << 8
    PARTIAL_OUTPUT_ON_ERROR = 1 << 9
    PRESERVE_ZERO_FRACTION = 1 << 10
    UNESCAPED_LINE_TERMINATORS = 1 << 11
    INVALID_UTF8_IGNORE = 1 << 20
    INVALID_UTF8_SUBSTITUTE = 1 << 21


ALL_FLAGS = sum(flag.value for flag in EncodeFlag)


class DecodeOptions(BaseModel):
    associative: bool = True
    max_depth: int = Field(DEFAULT_DEPTH, gt=0)


class EncodeOptions(BaseModel):
    flags: int = Field(0, ge=0)
    max_depth: int = Field(DEFAULT_DEPTH, gt=0)

    @property
    def flag_set(self) -> EncodeFlag:
        """Requested flags with unknown bits masked off."""
        return EncodeFlag(self.flags & ALL_FLAGS)

    def has(self, flag: EncodeFlag) -> bool:
        return bool(self.flags & flag)


def build_options(model_cls: Any, **values: Any) -> Any:
    """Validate keyword options, reporting failures as ``InvalidInput``."""
    try:
        return model_validate(model_cls, values)
    except ValidationError as exc:
        raise InvalidInput(
            f"Invalid {model_cls.__name__}: {exc}", ErrorCode.INVALID_OPTION
        ) from exc


__all__ = [
    "DEFAULT_DEPTH",
    "ALL_FLAGS",
    "EncodeFlag",
    "DecodeOptions",
    "EncodeOptions",
    "build_options",
]
