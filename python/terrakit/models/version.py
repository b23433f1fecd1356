"""
terrakit/models/version.py

The parsed output of 'terraform version'.
"""

from __future__ import annotations

from typing import List

from terrakit.models.base import TerraformModel


class VersionDescription(TerraformModel):
    """A named component and its version.

    The top-level description is terraform itself; each provider found in the
    working directory is a submodule.

    Attributes:
        name: "terraform" or the provider name, e.g. "random".
        version: Version without its leading "v", e.g. "0.13.2".
        submodules: Provider versions, in the order terraform printed them.
    """

    name: str
    version: str
    submodules: List[VersionDescription] = []

    def submodule(self, name: str) -> VersionDescription:
        """Return the submodule called `name`.

        Raises:
            KeyError: If there is no such submodule.
        """
        for sub in self.submodules:
            if sub.name == name:
                return sub
        raise KeyError(name)


VersionDescription.model_rebuild()
