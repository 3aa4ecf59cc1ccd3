"""
Pydantic v1/v2 compatibility helpers.
"""

from __future__ import annotations

from typing import Any, Type, TypeVar

from pydantic import BaseModel

ModelT = TypeVar("ModelT", bound=BaseModel)


def is_model(value: Any) -> bool:
    return isinstance(value, BaseModel)


def model_dump(instance: Any, **kwargs) -> dict:
    """Dump a pydantic model to the dict the JSON engines encode."""
    dump = getattr(instance, "model_dump", None)
    if callable(dump):
        return dump(**kwargs)
    as_dict = getattr(instance, "dict", None)
    if callable(as_dict):
        return as_dict(**kwargs)
    raise TypeError(f"Cannot dump {type(instance).__name__} for JSON encoding: not a pydantic model")


def model_validate(model_cls: Type[ModelT], data: dict) -> ModelT:
    """Validate ``data`` into ``model_cls`` for both Pydantic v1 and v2."""
    validate = getattr(model_cls, "model_validate", None)
    if callable(validate):
        return validate(data)
    return model_cls.parse_obj(data)


__all__ = ["is_model", "model_dump", "model_validate"]
