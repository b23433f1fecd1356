"""
terrakit/models/validator.py

Validation helpers built on pydantic:

 - validate_type: validate a Python object against any pydantic-compatible type.
 - decode_document: decode a JSON byte buffer into a document model, turning
   any pydantic failure into a single DecodeError that names the offending path.
 - decode_state / decode_plan / decode_schema: the three terraform documents.
"""

from __future__ import annotations

from typing import Any, Type, TypeVar, Union

from pydantic import BaseModel, TypeAdapter, ValidationError

from terrakit.errors import DecodeError, DecodeErrorKind
from terrakit.models.plan import Plan
from terrakit.models.schema import SchemaDescription
from terrakit.models.state import State

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

_MALFORMED_TYPES = frozenset(
    {
        "malformed",
        "missing",
        "json_invalid",
        "json_type",
        "value_error",
        "assertion_error",
        "enum",
        "literal_error",
    }
)


def validate_type(obj: Any, expected_type: Type[T]) -> T:
    """
    Validates that a given Python object conforms to the expected pydantic-based type.

    Args:
        obj (Any): The object to validate.
        expected_type (Type[T]): The type (pydantic or otherwise) to validate against.

    Returns:
        T: The validated object, cast to the expected type.

    Raises:
        ValueError: If validation fails.
    """
    try:
        adapter = TypeAdapter(expected_type)
        return adapter.validate_python(obj)
    except ValidationError as e:
        raise ValueError(f"Validation failed for type {expected_type}: {e}") from e


def _error_kind(error_type: str) -> DecodeErrorKind:
    if error_type == "unknown_type":
        return DecodeErrorKind.UNKNOWN_TYPE
    if error_type in _MALFORMED_TYPES:
        return DecodeErrorKind.MALFORMED
    return DecodeErrorKind.TYPE_MISMATCH


def to_decode_error(exc: ValidationError) -> DecodeError:
    """Convert the first error of a pydantic ValidationError into a DecodeError."""
    first = exc.errors()[0]
    path = ".".join(str(part) for part in first["loc"])
    return DecodeError(first["msg"], _error_kind(first["type"]), path)


def decode_document(model: Type[M], data: Union[bytes, str]) -> M:
    """Decode a JSON document into `model`.

    Args:
        model (Type[M]): The document model class.
        data (Union[bytes, str]): The raw JSON text.

    Returns:
        M: The decoded, immutable document.

    Raises:
        DecodeError: If the JSON is invalid or does not fit the model anywhere
            in the tree.
    """
    try:
        return model.model_validate_json(data)
    except ValidationError as exc:
        raise to_decode_error(exc) from exc


def decode_state(data: Union[bytes, str]) -> State:
    return decode_document(State, data)


def decode_plan(data: Union[bytes, str]) -> Plan:
    return decode_document(Plan, data)


def decode_schema(data: Union[bytes, str]) -> SchemaDescription:
    return decode_document(SchemaDescription, data)
