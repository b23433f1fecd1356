"""
terrakit/models/values.py

Decoding of untyped JSON values (resource attributes, outputs, variables).

Their shape is provider-defined, so they are kept as plain Python JSON values.
decode_scalar checks the candidate shapes in a fixed order and accepts the
first that matches:

    string, number, bool, null, sequence, mapping

Booleans are never taken as numbers even though bool subclasses int.
"""

from __future__ import annotations

from typing import Any, Dict, List, Union

from pydantic import PlainValidator
from pydantic_core import PydanticCustomError
from typing_extensions import Annotated

JsonValue = Union[str, int, float, bool, None, List[Any], Dict[str, Any]]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def decode_scalar(value: Any) -> JsonValue:
    """Decode an arbitrary JSON value into a ScalarValue.

    Args:
        value (Any): A value as produced by json.loads (or equivalent).

    Returns:
        JsonValue: The same value, with nested sequences and mappings decoded
        recursively.

    Raises:
        PydanticCustomError: With type "type_mismatch" if no shape applies.
    """
    if isinstance(value, str):
        return value
    if _is_number(value):
        return value
    if isinstance(value, bool):
        return value
    if value is None:
        return None
    if isinstance(value, list):
        return [decode_scalar(item) for item in value]
    if isinstance(value, dict):
        if not all(isinstance(key, str) for key in value):
            raise PydanticCustomError(
                "type_mismatch", "mapping keys must be strings"
            )
        return {key: decode_scalar(item) for key, item in value.items()}
    raise PydanticCustomError(
        "type_mismatch",
        "value of type {type_name} is not a JSON value",
        {"type_name": type(value).__name__},
    )


ScalarValue = Annotated[Any, PlainValidator(decode_scalar)]
"""Field type for provider-defined JSON values."""
