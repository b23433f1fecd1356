"""
terrakit/models/state.py

Models for the values representation shared by state and plan output, and
for the state document returned by 'terraform show -json':

 - Resource: one resource instance with its attribute values.
 - Module / ChildModule: the recursive module tree.
 - Values: outputs plus the root module.
 - State: the top-level state document.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Iterator, List, Optional, Union

from terrakit.models.base import TerraformModel
from terrakit.models.values import ScalarValue


class ResourceMode(str, Enum):
    """Whether a resource is managed by terraform or is a data source."""

    MANAGED = "managed"
    DATA = "data"


class Resource(TerraformModel):
    """A resource instance inside a module.

    Attributes:
        address: Absolute resource address. Opaque, but safe for string comparison.
        mode: Managed resource or data source.
        type: Resource type, e.g. "random_pet".
        name: Resource name within its module.
        index: Instance key when count (int) or for_each (str) is used, else None.
        provider_name: Provider responsible for the resource.
        schema_version: Provider schema version of the values.
        values: Attribute values, shaped as described by the provider schema.
    """

    address: str
    mode: ResourceMode
    type: str
    name: str
    index: Optional[Union[int, str]] = None
    provider_name: str
    schema_version: int
    values: Optional[Dict[str, ScalarValue]] = None
    sensitive_values: Optional[Dict[str, ScalarValue]] = None
    depends_on: List[str] = []


class Module(TerraformModel):
    """A module in the values representation."""

    resources: List[Resource] = []
    child_modules: List[ChildModule] = []

    def iter_resources(self) -> Iterator[Resource]:
        """Yield every resource in this module and its descendants, depth first."""
        for resource in self.resources:
            yield resource
        for child in self.child_modules:
            yield from child.iter_resources()

    def count_resources(self) -> int:
        """Recursively count resources in this module, including child modules."""
        return len(self.resources) + sum(
            child.count_resources() for child in self.child_modules
        )


class ChildModule(Module):
    """A descendant module.

    Attributes:
        address: Absolute module address. Opaque, but safe for string comparison.
    """

    address: str


class Values(TerraformModel):
    """The values representation used by both state and plan output.

    Attributes:
        outputs: Root module outputs. Outputs of descendant modules are not available.
        root_module: Resources and child modules of the root module.
    """

    outputs: Dict[str, ScalarValue] = {}
    root_module: Optional[Module] = None


class State(TerraformModel):
    """The complete top-level object returned by 'terraform show -json'.

    Attributes:
        values: Values derived from the state. Always complete.
        terraform_version: The version of Terraform that wrote the state.
        format_version: Version of the JSON format.
    """

    values: Values
    terraform_version: str
    format_version: Optional[str] = None

    def is_empty(self) -> bool:
        """Check if this state contains zero resources.

        Returns:
            True if no resources are present, otherwise False.
        """
        root = self.values.root_module
        return root is None or root.count_resources() == 0


Module.model_rebuild()
ChildModule.model_rebuild()
