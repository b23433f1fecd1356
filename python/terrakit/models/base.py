"""
terrakit/models/base.py

Shared pydantic base for every Terraform JSON document model.

Terraform emits snake_case keys. Fields are declared in snake_case and also
accept their camelCase alias, so both spellings of a document decode to the
same object. Keys of data mappings (attribute names, output names) are left
untouched. Models are frozen: a decoded document is never mutated.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class TerraformModel(BaseModel):
    """Base class for immutable Terraform document models."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )
