"""
Exception serialization for log records
"""

import traceback
from typing import Any, Dict, Optional

DEFAULT_MAX_DEPTH = 10
TRUNCATED = "[Truncated]"


def _cause_of(exc: BaseException) -> Any:
    if exc.__cause__ is not None:
        return exc.__cause__
    if exc.__context__ is not None and not exc.__suppress_context__:
        return exc.__context__
    # Some libraries attach a plain `cause` attribute instead of chaining
    return getattr(exc, "cause", None)


def format_stack(exc: BaseException) -> str:
    """Format the traceback of a single exception without its chained causes"""
    lines = traceback.format_exception(type(exc), exc, exc.__traceback__, chain=False)
    return "".join(lines).rstrip()


def serialize_error(
    exc: BaseException,
    include_stack: bool = False,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Dict[str, Any]:
    """
    Convert an exception into a plain mapping

    Args:
        exc: The exception to serialize
        include_stack: Add the formatted traceback under "stack"
        max_depth: How many causes to follow before substituting a marker

    Returns:
        {"name", "message", "stack"?, "cause"?}
    """
    return _serialize(exc, include_stack, max_depth, 0)


def _serialize(exc: BaseException, include_stack: bool, max_depth: int, depth: int) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "name": type(exc).__name__,
        "message": str(exc),
    }

    if include_stack:
        out["stack"] = format_stack(exc)

    cause: Optional[Any] = _cause_of(exc)
    if cause is None:
        return out

    if isinstance(cause, BaseException):
        if depth + 1 >= max_depth:
            out["cause"] = TRUNCATED
        else:
            out["cause"] = _serialize(cause, include_stack, max_depth, depth + 1)
    else:
        out["cause"] = cause

    return out
