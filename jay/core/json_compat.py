"""
JSON engine compatibility layer.

Uses ``orjson`` when available and falls back to the standard ``json`` module.
Both engines sit behind the same small interface; ``EngineSelector`` picks one
per call from a probe that runs once per process.
"""

from __future__ import annotations

import functools
import json as _json
import logging
from typing import Any, Optional, Union

from .encoding import Prepared, escape, partial_default
from .options import ALL_FLAGS, EncodeFlag

try:
    import orjson as _orjson
except Exception:  # pragma: no cover - fallback path
    _orjson = None

logger = logging.getLogger(__name__)

# Largest input handed to the fast engine; anything bigger goes to stdlib json.
FAST_ENGINE_MAX_BYTES = 4 * 1024 ** 3 - 1

JsonInput = Union[str, bytes]


class Engine:
    """Common interface of the decode/encode backends."""

    name = "abstract"
    supported_flags = EncodeFlag.NONE

    def loads(self, data: JsonInput) -> Any:
        raise NotImplementedError

    def dumps(self, value: Any, flags: EncodeFlag = EncodeFlag.NONE) -> str:
        raise NotImplementedError

    def dropped_flags(self, flags: EncodeFlag) -> EncodeFlag:
        return EncodeFlag(int(flags) & ~int(self.supported_flags) & ALL_FLAGS)

    def accepts(self, prepared: Prepared) -> bool:
        """Whether ``dumps`` can serialize a value with these properties."""
        return True

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class StdlibEngine(Engine):
    name = "json"
    supported_flags = EncodeFlag(ALL_FLAGS)

    @staticmethod
    def _reject_constant(name: str) -> Any:
        raise ValueError(f"Invalid literal: {name}")

    def loads(self, data: JsonInput) -> Any:
        if isinstance(data, (bytes, bytearray)):
            data = bytes(data).decode("utf-8")
        return _json.loads(data, parse_constant=self._reject_constant)

    def dumps(self, value: Any, flags: EncodeFlag = EncodeFlag.NONE) -> str:
        kwargs: dict[str, Any] = {
            "ensure_ascii": not flags & EncodeFlag.UNESCAPED_UNICODE,
            "allow_nan": False,
        }
        if flags & EncodeFlag.PRETTY_PRINT:
            kwargs["indent"] = 4
            kwargs["separators"] = (",", ": ")
        else:
            kwargs["separators"] = (",", ":")
        if flags & EncodeFlag.PARTIAL_OUTPUT_ON_ERROR:
            kwargs["default"] = partial_default
        return escape(_json.dumps(value, **kwargs), flags)


class OrjsonEngine(Engine):
    name = "orjson"
    # orjson.dumps raises "Recursion limit reached" past this many levels.
    max_depth = 254
    # Value-level flags are applied before the engine runs, so they count as
    # supported here; only text escaping is lost.
    supported_flags = (
        EncodeFlag.PRETTY_PRINT
        | EncodeFlag.FORCE_OBJECT
        | EncodeFlag.NUMERIC_CHECK
        | EncodeFlag.PRESERVE_ZERO_FRACTION
        | EncodeFlag.PARTIAL_OUTPUT_ON_ERROR
        | EncodeFlag.INVALID_UTF8_SUBSTITUTE
        | EncodeFlag.INVALID_UTF8_IGNORE
        | EncodeFlag.UNESCAPED_SLASHES
        | EncodeFlag.UNESCAPED_UNICODE
        | EncodeFlag.UNESCAPED_LINE_TERMINATORS
    )

    def __init__(self):
        if _orjson is None:
            raise RuntimeError("orjson is not installed")
        self._orjson = _orjson

    def option(self, flags: EncodeFlag) -> int:
        option = self._orjson.OPT_PASSTHROUGH_DATACLASS | self._orjson.OPT_PASSTHROUGH_DATETIME
        if flags & EncodeFlag.PRETTY_PRINT:
            option |= self._orjson.OPT_INDENT_2
        return option

    def accepts(self, prepared: Prepared) -> bool:
        # Integers must fit in 64 bits, signed or unsigned.
        return prepared.depth <= self.max_depth and not prepared.wide_integers

    def loads(self, data: JsonInput) -> Any:
        return self._orjson.loads(data)

    def dumps(self, value: Any, flags: EncodeFlag = EncodeFlag.NONE) -> str:
        default = partial_default if flags & EncodeFlag.PARTIAL_OUTPUT_ON_ERROR else None
        encoded = self._orjson.dumps(value, default=default, option=self.option(flags))
        return encoded.decode("utf-8")


BASELINE_ENGINE = StdlibEngine()


@functools.lru_cache(maxsize=None)
def fast_engine() -> Optional[OrjsonEngine]:
    """Return the orjson engine, or ``None`` when orjson cannot be used."""
    if _orjson is None:
        logger.debug("orjson unavailable; using the standard json module")
        return None
    logger.debug("orjson %s available", getattr(_orjson, "__version__", "?"))
    return OrjsonEngine()


class EngineSelector:
    """Chooses the engine for one decode or encode call."""

    def __init__(self, prefer_fast: bool = True, baseline: Optional[Engine] = None):
        self.prefer_fast = prefer_fast
        self.baseline = baseline or BASELINE_ENGINE

    def _fast(self) -> Optional[Engine]:
        if not self.prefer_fast:
            return None
        return fast_engine()

    def for_decode(self, size: int) -> Engine:
        fast = self._fast()
        if fast is not None and size <= FAST_ENGINE_MAX_BYTES:
            return fast
        return self.baseline

    def for_encode(
        self, flags: EncodeFlag = EncodeFlag.NONE, prepared: Optional[Prepared] = None
    ) -> Engine:
        fast = self._fast()
        if fast is None:
            return self.baseline
        if prepared is not None and not fast.accepts(prepared):
            logger.debug(
                "%s cannot encode depth %d (wide integers: %s); using %s",
                fast.name,
                prepared.depth,
                prepared.wide_integers,
                self.baseline.name,
            )
            return self.baseline
        dropped = fast.dropped_flags(flags)
        if dropped:
            logger.debug("%s ignores encode flags %r", fast.name, dropped)
        return fast


DEFAULT_SELECTOR = EngineSelector()

# orjson.JSONDecodeError subclasses json.JSONDecodeError (a ValueError) and
# orjson.JSONEncodeError subclasses TypeError, so these cover both engines.
ENGINE_ERRORS = (ValueError, TypeError, OverflowError, RecursionError)


__all__ = [
    "FAST_ENGINE_MAX_BYTES",
    "Engine",
    "StdlibEngine",
    "OrjsonEngine",
    "BASELINE_ENGINE",
    "fast_engine",
    "EngineSelector",
    "DEFAULT_SELECTOR",
    "ENGINE_ERRORS",
]
