"""
terrakit/models/plan.py

Models for the plan document returned by 'terraform show -json <PLAN FILE>'.

A plan consists of a prior state, the configuration being applied to it, and
the changes terraform intends to make. The planned values are included as a
values representation so the outcome can be inspected with the same code that
inspects a state.

The binary plan file itself is not part of the JSON document. The client
attaches it as Plan.raw_source after decoding so it can be handed back to
'terraform apply' unchanged.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Generic, List, Optional, Tuple, TypeVar, Union

from pydantic import Field, model_validator

from terrakit.models.base import TerraformModel
from terrakit.models.configuration import Configuration
from terrakit.models.state import ResourceMode, State, Values
from terrakit.models.values import ScalarValue

V = TypeVar("V")


class Action(str, Enum):
    """One step of a change's action list."""

    NO_OP = "no-op"
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


VALID_ACTIONS: Tuple[Tuple[Action, ...], ...] = (
    (Action.NO_OP,),
    (Action.CREATE,),
    (Action.READ,),
    (Action.UPDATE,),
    (Action.DELETE, Action.CREATE),
    (Action.CREATE, Action.DELETE),
    (Action.DELETE,),
)


class Change(TerraformModel, Generic[V]):
    """The change that will be made to an object.

    The two replace forms, [delete, create] and [create, delete], keep
    "delete" in the list so callers can scan for it to find every change that
    removes the object.

    Attributes:
        actions: The actions taken on the object, one of VALID_ACTIONS.
        before: The object before the action. Unset for [create].
        after: The object after the action. Unset for [delete]. Incomplete
            where values are only known after apply.
        after_unknown: Mirrors "after" with true for each value not yet known.
    """

    actions: List[Action]
    before: Optional[V] = None
    after: Optional[V] = None
    after_unknown: Optional[ScalarValue] = None

    @model_validator(mode="after")
    def _check_actions(self) -> Change[V]:
        """Reject action lists and before/after combinations terraform never emits."""
        actions = tuple(self.actions)
        if actions not in VALID_ACTIONS:
            raise ValueError(
                f"invalid action combination {[a.value for a in self.actions]}"
            )
        if actions == (Action.CREATE,) and self.before is not None:
            raise ValueError("a create change must not have a 'before' value")
        if actions == (Action.DELETE,) and self.after is not None:
            raise ValueError("a delete change must not have an 'after' value")
        if actions == (Action.NO_OP,) and self.before != self.after:
            raise ValueError("a no-op change must have equal 'before' and 'after' values")
        return self

    @property
    def is_noop(self) -> bool:
        return tuple(self.actions) == (Action.NO_OP,)

    @property
    def is_replace(self) -> bool:
        """True for both [delete, create] and [create, delete]."""
        return len(self.actions) == 2


class ResourceChange(TerraformModel):
    """The planned change for one resource instance object.

    Attributes:
        address: Absolute address of the resource instance.
        module_address: Module portion of the address; None in the root module.
        index: Instance key when count or for_each is used.
        deposed: Opaque key of a deposed object this change applies to, None for
            the current object. (address, deposed) is unique within a plan.
        change: Before/after attribute values of the object.
    """

    address: str
    module_address: Optional[str] = None
    mode: ResourceMode
    type: str
    name: str
    index: Optional[Union[int, str]] = None
    provider_name: Optional[str] = None
    deposed: Optional[str] = None
    change: Change[Dict[str, ScalarValue]]


class Variable(TerraformModel):
    value: ScalarValue


class Plan(TerraformModel):
    """The complete plan document.

    Attributes:
        raw_source: The binary plan file, required to apply this exact plan.
            Never part of the JSON document.
        prior_state: The state the configuration is applied to.
        configuration: The configuration being applied.
        planned_values: What is known so far of the outcome; unknown values omitted.
        proposed_unknown: Like planned_values with every value replaced by a
            boolean telling whether it is still unknown.
        variables: Every variable provided for the plan.
        resource_changes: The action for every resource instance object.
        output_changes: Changes to root module outputs. Only create, update and
            delete are expected; "after" is always accurate.
    """

    raw_source: bytes = Field(default=b"", exclude=True, repr=False)
    format_version: Optional[str] = None
    terraform_version: Optional[str] = None
    prior_state: Optional[State] = None
    configuration: Configuration
    planned_values: Values
    proposed_unknown: Optional[Values] = None
    variables: Dict[str, Variable] = {}
    resource_changes: List[ResourceChange] = []
    output_changes: Dict[str, Change[ScalarValue]] = {}

    def with_raw_source(self, data: bytes) -> Plan:
        """Return a copy of this plan carrying the binary plan file."""
        return self.model_copy(update={"raw_source": data})

    def changes_with_action(self, action: Action) -> List[ResourceChange]:
        """Return the resource changes whose action list contains `action`."""
        return [rc for rc in self.resource_changes if action in rc.change.actions]
