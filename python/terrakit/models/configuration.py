"""
terrakit/models/configuration.py

Models for the configuration representation embedded in plan output: the
parsed (unevaluated) configuration the plan was made from.

BlockExpression is polymorphic. A JSON value at an expression position is
tried as, in this order:

  1. expression -- an object holding only "constant_value"/"references"
  2. single     -- a nested block body: an object of block expressions with
                   at least one plain attribute expression in it
  3. list       -- an array of block expressions (list/set nested blocks)
  4. map        -- an object of block expressions (map nested blocks)

The first attempt that succeeds wins. An attempt that fails leaves nothing
behind; the next one starts from the raw value again.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import AliasChoices, Field, ValidationError, model_validator
from pydantic_core import PydanticCustomError

from terrakit.models.base import TerraformModel
from terrakit.models.state import ResourceMode
from terrakit.models.values import ScalarValue

_EXPRESSION_KEYS = frozenset({"constant_value", "constantValue", "references"})


class Expression(TerraformModel):
    """An unevaluated expression.

    Attributes:
        constant_value: Set only if the expression references nothing; the constant result.
        references: Every reference in the expression, with multi-step references
            unwrapped per traversal step. Compare with string equality only.
    """

    constant_value: Optional[ScalarValue] = None
    references: List[str] = []


class BlockExpressionKind(str, Enum):
    EXPRESSION = "expression"
    SINGLE = "single"
    LIST = "list"
    MAP = "map"


class BlockExpression(TerraformModel):
    """The expressions nested inside a block, or a single attribute expression.

    Exactly one payload field is set, according to ``kind``:

    - EXPRESSION: ``expression``
    - SINGLE: ``block`` (attribute or block name -> nested block expression)
    - LIST: ``items``
    - MAP: ``entries`` (map key -> nested block expression)
    """

    kind: BlockExpressionKind
    expression: Optional[Expression] = None
    block: Optional[Dict[str, BlockExpression]] = None
    items: Optional[List[BlockExpression]] = None
    entries: Optional[Dict[str, BlockExpression]] = None

    @model_validator(mode="before")
    @classmethod
    def _decode(cls, value: Any) -> Any:
        if isinstance(value, BlockExpression):
            return value
        return dict(decode_block_expression(value))


def _as_expression(value: Any) -> BlockExpression:
    if not isinstance(value, dict) or not set(value) <= _EXPRESSION_KEYS:
        raise ValueError("not an expression object")
    return BlockExpression.model_construct(
        kind=BlockExpressionKind.EXPRESSION,
        expression=Expression.model_validate(value),
    )


def _decode_members(value: Any) -> Dict[str, BlockExpression]:
    if not isinstance(value, dict):
        raise ValueError("not an object")
    return {key: decode_block_expression(item) for key, item in value.items()}


def _as_block(value: Any) -> BlockExpression:
    """A block body (SINGLE) if any member is an attribute expression, else a MAP.

    A body holding only nested blocks is therefore a MAP.
    """
    members = _decode_members(value)
    if any(m.kind == BlockExpressionKind.EXPRESSION for m in members.values()):
        return BlockExpression.model_construct(
            kind=BlockExpressionKind.SINGLE, block=members
        )
    return BlockExpression.model_construct(
        kind=BlockExpressionKind.MAP, entries=members
    )


def _as_list(value: Any) -> BlockExpression:
    if not isinstance(value, list):
        raise ValueError("not an array")
    return BlockExpression.model_construct(
        kind=BlockExpressionKind.LIST,
        items=[decode_block_expression(item) for item in value],
    )


_ATTEMPTS: List[Callable[[Any], BlockExpression]] = [
    _as_expression,
    _as_block,
    _as_list,
]


def decode_block_expression(value: Any) -> BlockExpression:
    """Decode a raw JSON value into a BlockExpression.

    Args:
        value (Any): The raw JSON value at an expression position.

    Returns:
        BlockExpression: The first variant that decodes successfully.

    Raises:
        PydanticCustomError: With type "malformed" if every variant fails.
    """
    for attempt in _ATTEMPTS:
        try:
            return attempt(value)
        except (ValueError, ValidationError, PydanticCustomError):
            continue
    raise PydanticCustomError("malformed", "block expression value cannot be decoded")


class ProviderConfig(TerraformModel):
    """A provider configuration block.

    Attributes:
        name: Provider name without any alias.
        alias: Alias of a non-default configuration, unset for the default one.
        module_address: Address of the declaring module, for descendant modules only.
        expressions: Provider-specific content of the configuration block.
    """

    name: str
    full_name: Optional[str] = None
    alias: Optional[str] = None
    module_address: Optional[str] = None
    version_constraint: Optional[str] = None
    expressions: Dict[str, BlockExpression] = {}


class Property(TerraformModel):
    """An output value declaration."""

    expression: Expression
    sensitive: bool = False


class Provisioner(TerraformModel):
    type: str
    expressions: Dict[str, BlockExpression] = {}


class ResourceConfiguration(TerraformModel):
    """A 'resource' or 'data' block.

    Attributes:
        address: Opaque absolute address of the resource.
        provider_config_key: Key into Configuration.provider_configs.
        provisioners: Provisioners, without connection info.
        expressions: Resource-type-specific content of the block.
        schema_version: Provider schema version for "expressions".
        count_expression: The count meta-argument, if set.
        for_each_expression: The for_each meta-argument, if set.
    """

    address: str
    mode: ResourceMode
    type: str
    name: str
    provider_config_key: str
    provisioners: List[Provisioner] = []
    expressions: Dict[str, BlockExpression] = {}
    schema_version: int
    count_expression: Optional[Expression] = None
    for_each_expression: Optional[Expression] = None


class ModuleConfiguration(TerraformModel):
    """The configuration of one module, recursively describing the module tree."""

    outputs: Dict[str, Property] = {}
    resources: List[ResourceConfiguration] = []
    module_calls: Dict[str, ModuleCall] = {}
    variables: Dict[str, ScalarValue] = {}


class ModuleCall(TerraformModel):
    """A 'module' block.

    Attributes:
        resolved_source: Source address of the module after normalization.
        expressions: Arguments for the child module's input variables.
        count_expression: The count meta-argument, if set.
        for_each_expression: The for_each meta-argument, if set.
        module: The child module's own configuration.
    """

    resolved_source: str = Field(
        validation_alias=AliasChoices("resolved_source", "resolvedSource", "source")
    )
    expressions: Dict[str, BlockExpression] = {}
    count_expression: Optional[Expression] = None
    for_each_expression: Optional[Expression] = None
    module: ModuleConfiguration


class Configuration(TerraformModel):
    """A parsed Terraform configuration.

    Attributes:
        provider_configs: Every provider configuration in the tree, flattened.
        root_module: The root of the module configuration tree.
        resources: Resource blocks listed at the top level.
        module_calls: Module calls listed at the top level, keyed by call name.
    """

    provider_configs: Dict[str, ProviderConfig] = Field(
        default={},
        validation_alias=AliasChoices(
            "provider_configs", "providerConfigs", "provider_config", "providerConfig"
        ),
    )
    root_module: ModuleConfiguration
    resources: List[ResourceConfiguration] = []
    module_calls: Dict[str, ModuleCall] = {}


BlockExpression.model_rebuild()
ModuleConfiguration.model_rebuild()
