"""Base model for databaxe records.

Every record type inherits from :class:`DataBaxeBaseModel`, which freezes
instances and rejects unknown fields.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class DataBaxeBaseModel(BaseModel):
    """Frozen, strict base for all databaxe models."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )
