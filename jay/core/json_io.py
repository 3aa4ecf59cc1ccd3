"""
JSON file and text facade.

Provides functions for:
- Decoding JSON from a file or from text
- Encoding a value to JSON text
- Writing JSON text to a file under an exclusive lock

Every engine failure is re-raised as ``InvalidInput`` and every I/O failure
that survives the path precheck as ``IoFailure``.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from types import SimpleNamespace
from typing import IO, Any, Iterator, Optional, Union

from .encoding import DEPTH_EXCEEDED, MALFORMED_UTF8, inspect_prepare
from .errors import ErrorCode, InvalidInput, IoFailure
from .json_compat import DEFAULT_SELECTOR, ENGINE_ERRORS, EngineSelector
from .options import DEFAULT_DEPTH, DecodeOptions, EncodeFlag, EncodeOptions, build_options

try:
    import fcntl
except ImportError:  # pragma: no cover - non-POSIX platforms
    fcntl = None

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]

_JSON_WHITESPACE = b" \t\n\r"
_NOT_TEXT = (bool, int, float, complex, list, tuple, dict, set, frozenset)


def _to_payload(contents: Any) -> bytes:
    """Render ``contents`` to UTF-8 bytes once, before any engine sees it."""
    if isinstance(contents, (bytes, bytearray, memoryview)):
        return bytes(contents)
    if contents is None or isinstance(contents, _NOT_TEXT):
        raise InvalidInput(
            f"Cannot decode JSON from {type(contents).__name__}", ErrorCode.UNSUPPORTED_TYPE
        )
    if not isinstance(contents, str):
        if type(contents).__str__ is object.__str__:
            raise InvalidInput(
                f"Cannot decode JSON from {type(contents).__name__}", ErrorCode.UNSUPPORTED_TYPE
            )
        contents = str(contents)
    try:
        return contents.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise InvalidInput(MALFORMED_UTF8, ErrorCode.UTF8) from exc


def _exceeds_depth(value: Any, max_depth: int) -> bool:
    stack = [(value, 0)]
    while stack:
        node, depth = stack.pop()
        if isinstance(node, dict):
            children = node.values()
        elif isinstance(node, list):
            children = node
        else:
            continue
        depth += 1
        if depth > max_depth:
            return True
        stack.extend((child, depth) for child in children)
    return False


def _to_namespace(value: Any) -> Any:
    root = [value]
    stack = [(root, 0)]
    while stack:
        parent, slot = stack.pop()
        node = parent[slot]
        if isinstance(node, dict):
            namespace = SimpleNamespace(**node)
            parent[slot] = namespace
            attributes = vars(namespace)
            stack.extend((attributes, key) for key in node)
        elif isinstance(node, list):
            items = list(node)
            parent[slot] = items
            stack.extend((items, index) for index in range(len(items)))
    return root[0]


def _decode_code(exc: BaseException) -> ErrorCode:
    if isinstance(exc, UnicodeError) or "utf-8" in str(exc).lower():
        return ErrorCode.UTF8
    if isinstance(exc, RecursionError) or "recursion" in str(exc).lower():
        return ErrorCode.DEPTH
    return ErrorCode.SYNTAX


def _encode_code(exc: BaseException) -> ErrorCode:
    if isinstance(exc, RecursionError) or "recursion" in str(exc).lower():
        return ErrorCode.DEPTH
    return ErrorCode.UNSUPPORTED_TYPE


def from_string(
    contents: Any,
    associative: bool = True,
    max_depth: int = DEFAULT_DEPTH,
    selector: Optional[EngineSelector] = None,
) -> Any:
    """
    Decode JSON text.

    Args:
        contents: ``str``, bytes-like, or an object rendering itself to text
                  through ``__str__``. Bytes must be UTF-8.
        associative: Decode objects to ``dict``; ``False`` gives
                     ``SimpleNamespace`` instances.
        max_depth: Maximum array/object nesting; must be positive.
        selector: Engine selector, defaults to the process-wide one.

    Returns:
        The decoded value.

    Raises:
        InvalidInput: On empty, malformed, non-UTF-8 or too deeply nested input.
    """
    options = build_options(DecodeOptions, associative=associative, max_depth=max_depth)
    payload = _to_payload(contents)
    if not payload.strip(_JSON_WHITESPACE):
        raise InvalidInput("Empty: no JSON found", ErrorCode.EMPTY)

    engine = (selector or DEFAULT_SELECTOR).for_decode(len(payload))
    logger.debug("Decoding %d bytes with %s", len(payload), engine.name)
    try:
        value = engine.loads(payload)
    except ENGINE_ERRORS as exc:
        raise InvalidInput(str(exc), _decode_code(exc)) from exc

    if _exceeds_depth(value, options.max_depth):
        raise InvalidInput(DEPTH_EXCEEDED, ErrorCode.DEPTH)
    if options.associative:
        return value
    return _to_namespace(value)


def from_file(
    path: PathLike,
    associative: bool = True,
    max_depth: int = DEFAULT_DEPTH,
    selector: Optional[EngineSelector] = None,
) -> Any:
    """
    Decode the JSON document stored at ``path``.

    Raises:
        InvalidInput: If the path is missing, not a regular file or unreadable,
                      or the content is invalid.
        IoFailure: If reading fails after the readability check.
    """
    path = os.fspath(path)
    if not (os.path.isfile(path) and os.access(path, os.R_OK)):
        raise InvalidInput(f'File "{path}" not found', ErrorCode.NOT_FOUND)

    try:
        with open(path, "rb") as handle:
            contents = handle.read()
    except OSError as exc:
        raise IoFailure(f'Failed to read file contents of "{path}"', ErrorCode.READ) from exc

    logger.debug("Read %d bytes from %s", len(contents), path)
    return from_string(contents, associative=associative, max_depth=max_depth, selector=selector)


def to_string(
    value: Any,
    flags: Union[int, EncodeFlag] = 0,
    max_depth: int = DEFAULT_DEPTH,
    selector: Optional[EngineSelector] = None,
) -> str:
    """
    Encode ``value`` as JSON text.

    Raises:
        InvalidInput: On unsupported types, invalid UTF-8, non-finite floats
                      or nesting deeper than ``max_depth``.
    """
    options = build_options(EncodeOptions, flags=flags, max_depth=max_depth)
    flag_set = options.flag_set
    try:
        prepared = inspect_prepare(value, options)
        engine = (selector or DEFAULT_SELECTOR).for_encode(flag_set, prepared)
        logger.debug("Encoding %s with %s", type(value).__name__, engine.name)
        return engine.dumps(prepared.value, flag_set)
    except InvalidInput:
        raise
    except ENGINE_ERRORS as exc:
        raise InvalidInput(str(exc), _encode_code(exc)) from exc


def _is_writable(path: str) -> bool:
    if os.path.exists(path):
        return not os.path.isdir(path) and os.access(path, os.W_OK)
    parent = os.path.dirname(os.path.abspath(path))
    return os.path.isdir(parent) and os.access(parent, os.W_OK)


@contextmanager
def _exclusive_lock(handle: IO[bytes], path: str) -> Iterator[IO[bytes]]:
    if fcntl is None:  # pragma: no cover - non-POSIX platforms
        logger.debug("fcntl unavailable; writing %s without a lock", path)
        yield handle
        return
    fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
    try:
        yield handle
    finally:
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


def to_file(
    path: PathLike,
    value: Any,
    flags: Union[int, EncodeFlag] = 0,
    max_depth: int = DEFAULT_DEPTH,
    selector: Optional[EngineSelector] = None,
) -> int:
    """
    Encode ``value`` and write it to ``path``.

    The file is only opened once encoding succeeded, and the write holds an
    exclusive lock on it.

    Returns:
        Number of bytes written.

    Raises:
        InvalidInput: If the path is not writable or the value cannot be encoded.
        IoFailure: If the write fails after the writability check.
    """
    path = os.fspath(path)
    if not _is_writable(path):
        raise InvalidInput(f'File "{path}" is not writable', ErrorCode.NOT_WRITABLE)

    data = to_string(value, flags=flags, max_depth=max_depth, selector=selector).encode("utf-8")
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT, 0o666)
        with os.fdopen(fd, "wb") as handle, _exclusive_lock(handle, path):
            handle.truncate(0)
            written = handle.write(data)
            handle.flush()
    except OSError as exc:
        raise IoFailure(f'Failed to write JSON contents to "{path}"', ErrorCode.WRITE) from exc

    logger.debug("Wrote %d bytes to %s", written, path)
    return written


__all__ = ["from_file", "from_string", "to_string", "to_file"]
