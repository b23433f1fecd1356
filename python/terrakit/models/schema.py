"""
terrakit/models/schema.py

Models for the output of 'terraform providers schema -json':

 - TypeSpec: a type specification, either a bare primitive name ("string")
   or a [tag, payload] pair (["map", "string"], ["object", {...}]).
 - Schema / Block / Attribute / BlockType: the recursive block schema tree.
 - ProviderSchema / SchemaDescription: the top-level document.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import model_validator
from pydantic_core import PydanticCustomError

from terrakit.models.base import TerraformModel


class TypeKind(str, Enum):
    """The variants of a TypeSpec."""

    STRING = "string"
    NUMBER = "number"
    BOOL = "bool"
    MAP = "map"
    LIST = "list"
    SET = "set"
    OBJECT = "object"


_PRIMITIVES = {
    "string": TypeKind.STRING,
    "number": TypeKind.NUMBER,
    "bool": TypeKind.BOOL,
}

# "list" decodes to SET; to_json_value renders it back as "set".
_COLLECTIONS = {
    "map": TypeKind.MAP,
    "set": TypeKind.SET,
    "list": TypeKind.SET,
}


class TypeSpec(TerraformModel):
    """A Terraform type specification.

    Attributes:
        kind: Which variant this is.
        element: Element type for MAP, LIST and SET.
        attributes: Attribute types for OBJECT.
    """

    kind: TypeKind
    element: Optional[TypeSpec] = None
    attributes: Optional[Dict[str, TypeSpec]] = None

    @model_validator(mode="before")
    @classmethod
    def _decode(cls, value: Any) -> Any:
        """Translate the terraform JSON encoding into field values.

        Field mappings, as produced by model_dump, are passed through, except
        that a "list" kind becomes SET as it does in the JSON encoding.
        """
        if isinstance(value, TypeSpec):
            return value
        if isinstance(value, dict):
            if value.get("kind") == TypeKind.LIST:
                return {**value, "kind": TypeKind.SET}
            return value
        if isinstance(value, str):
            if value not in _PRIMITIVES:
                raise PydanticCustomError(
                    "unknown_type", "unknown type {name}", {"name": value}
                )
            return {"kind": _PRIMITIVES[value]}
        if isinstance(value, list):
            if len(value) != 2:
                raise PydanticCustomError(
                    "malformed",
                    "composite type must be a [tag, payload] pair, got {count} items",
                    {"count": len(value)},
                )
            tag, payload = value
            if not isinstance(tag, str):
                raise PydanticCustomError(
                    "type_mismatch", "composite type tag must be a string"
                )
            if tag not in _COLLECTIONS and tag != "object":
                raise PydanticCustomError(
                    "unknown_type", "unknown type {name}", {"name": tag}
                )
            if payload is None:
                raise PydanticCustomError(
                    "malformed", "composite type {name} has no payload", {"name": tag}
                )
            if tag == "object":
                return {"kind": TypeKind.OBJECT, "attributes": payload}
            return {"kind": _COLLECTIONS[tag], "element": payload}
        raise PydanticCustomError(
            "type_mismatch",
            "type specification must be a string or an array, got {type_name}",
            {"type_name": type(value).__name__},
        )

    def to_json_value(self) -> Union[str, List[Any]]:
        """Render this type back into terraform's JSON encoding."""
        if self.kind in (TypeKind.STRING, TypeKind.NUMBER, TypeKind.BOOL):
            return self.kind.value
        if self.kind == TypeKind.OBJECT:
            attributes = self.attributes or {}
            return [
                "object",
                {name: spec.to_json_value() for name, spec in attributes.items()},
            ]
        assert self.element is not None, "collection type without element type"
        return [self.kind.value, self.element.to_json_value()]


class Attribute(TerraformModel):
    """An attribute that appears directly inside a block.

    Attributes:
        type: The type the attribute's value must conform to.
        description: English-language description of the attribute.
        optional: An omitted or null value is permitted.
        computed: The value comes from the provider rather than the configuration.
        required: An omitted or null value is not permitted.
        sensitive: The attribute may contain sensitive information.
    """

    type: TypeSpec
    description: Optional[str] = None
    description_kind: Optional[str] = None
    optional: bool = False
    computed: bool = False
    required: bool = False
    sensitive: bool = False
    deprecated: bool = False


class NestingMode(str, Enum):
    SINGLE = "single"
    LIST = "list"
    SET = "set"
    MAP = "map"
    GROUP = "group"


class BlockType(TerraformModel):
    """A nested block type inside a block."""

    nesting_mode: NestingMode
    block: Block
    min_items: Optional[int] = None
    max_items: Optional[int] = None


class Block(TerraformModel):
    """Groups the attributes and nested block types of a configuration unit."""

    attributes: Dict[str, Attribute] = {}
    block_types: Dict[str, BlockType] = {}
    description: Optional[str] = None
    description_kind: Optional[str] = None
    deprecated: bool = False


class Schema(TerraformModel):
    """A versioned block schema.

    Attributes:
        version: The schema version, not the provider version.
        block: The root block.
    """

    version: int
    block: Block


class ProviderSchema(TerraformModel):
    """Schemas for one provider.

    Attributes:
        provider: Schema for the provider configuration block.
        resource_schemas: Resource type name -> schema.
        data_source_schemas: Data source type name -> schema.
    """

    provider: Schema
    resource_schemas: Dict[str, Schema] = {}
    data_source_schemas: Dict[str, Schema] = {}


class SchemaDescription(TerraformModel):
    """The top-level object returned by 'terraform providers schema -json'.

    Attributes:
        format_version: Version of the JSON format.
        provider_schemas: Provider name (e.g. "random" or a registry address) -> schemas.
    """

    format_version: str
    provider_schemas: Dict[str, ProviderSchema] = {}


TypeSpec.model_rebuild()
BlockType.model_rebuild()
Block.model_rebuild()
