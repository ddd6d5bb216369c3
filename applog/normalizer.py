"""
Meta normalization: turns whatever a caller passes as extra data into a flat mapping
"""

from collections.abc import Mapping
from typing import Any, Dict

from pydantic import BaseModel

from applog.errors import DEFAULT_MAX_DEPTH, serialize_error

EMPTY = "empty"
ERROR = "error"
SEQUENCE = "sequence"
MAPPING = "mapping"
MODEL = "model"
SCALAR = "scalar"


def classify(value: Any) -> str:
    """Return the kind of `value` the normalizer dispatches on"""
    if value is None:
        return EMPTY
    if isinstance(value, BaseException):
        return ERROR
    if isinstance(value, (list, tuple)):
        return SEQUENCE
    if isinstance(value, Mapping):
        return MAPPING
    if isinstance(value, BaseModel):
        return MODEL
    return SCALAR


def normalize_meta(
    value: Any,
    include_stack: bool = False,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Dict[str, Any]:
    """
    Normalize log call data into a mapping

    Errors are serialized, sequences are wrapped under "items" and scalars
    under "value". Mapping values that are exceptions are serialized one
    level deep; other nested values pass through untouched.
    """
    kind = classify(value)

    if kind == EMPTY:
        return {}

    if kind == ERROR:
        return serialize_error(value, include_stack, max_depth)

    if kind == SEQUENCE:
        return {"items": [normalize_meta(item, include_stack, max_depth) for item in value]}

    if kind == MODEL:
        value = value.model_dump()

    if kind in (MAPPING, MODEL):
        out: Dict[str, Any] = {}
        for key, item in value.items():
            if isinstance(item, BaseException):
                out[key] = serialize_error(item, include_stack, max_depth)
            else:
                out[key] = item
        return out

    return {"value": value}
