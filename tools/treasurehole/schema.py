"""Expected-shape extraction for hole API responses.

All field access on decoded JSON goes through :func:`expect` and
:func:`expect_field`, so any drift in the upstream schema surfaces as a
single :class:`~treasurehole.errors.SchemaError` carrying the JSON location
that failed.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from .errors import ApiError, SchemaError

CODE_OK = 0
CODE_SKIP = -101  # post deleted or hidden

MAX_POST_ID = 2**64 - 1


class Shape(str, Enum):
    OBJECT = "object"
    ARRAY = "array"
    STRING = "string"
    NUMBER = "number"


def _matches(value: Any, shape: Shape) -> bool:
    if shape is Shape.OBJECT:
        return isinstance(value, dict)
    if shape is Shape.ARRAY:
        return isinstance(value, list)
    if shape is Shape.STRING:
        return isinstance(value, str)
    # bool is an int subclass but never a JSON number
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def expect(value: Any, shape: Shape, location: str = "$") -> Any:
    """Return *value* if it has *shape*, else raise SchemaError."""
    if not _matches(value, shape):
        raise SchemaError(shape.value, location)
    return value


def expect_field(
    obj: dict[str, Any],
    key: str,
    shape: Shape,
    location: str = "$",
    *,
    required: bool = True,
) -> Any:
    """Extract ``obj[key]`` with the given shape.

    A missing key raises SchemaError when *required*, otherwise returns None.
    A present key of the wrong shape always raises.
    """
    path = f"{location}.{key}"
    if key not in obj:
        if required:
            raise SchemaError(shape.value, path)
        return None
    return expect(obj[key], shape, path)


def expect_post_id(value: Any, location: str) -> int:
    """A PostId is an unsigned 64-bit integer."""
    if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= MAX_POST_ID:
        raise SchemaError("post id", location)
    return value


def check_envelope(value: Any, *, allow_skip: bool) -> tuple[dict[str, Any], bool]:
    """Validate the ``{code, msg, ...}`` envelope.

    Returns ``(envelope, skipped)``.  ``skipped`` is True only when *allow_skip*
    is set and the code is the skip sentinel.  Any other non-zero code raises
    ApiError.
    """
    envelope = expect(value, Shape.OBJECT)
    code = expect_field(envelope, "code", Shape.NUMBER)
    if not isinstance(code, int):
        raise SchemaError("integer", "$.code")
    if code == CODE_OK:
        return envelope, False
    if code == CODE_SKIP and allow_skip:
        return envelope, True
    message = expect_field(envelope, "msg", Shape.STRING)
    raise ApiError(code, message)
