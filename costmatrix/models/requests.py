"""Request bodies accepted by the cost-estimation API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from costmatrix.models.combination import PendingCombination
from costmatrix.models.enums import Dimension


class _DimensionTyped(BaseModel):
    type: Dimension

    @field_validator("type", mode="before")
    @classmethod
    def parse_dimension(cls, v: object) -> Dimension:
        if isinstance(v, Dimension):
            return v
        if not isinstance(v, str):
            msg = "type must be a string"
            raise ValueError(msg)
        return Dimension.parse(v)


class CombinationCreateRequest(BaseModel):
    """A manually entered combination.

    Fields are taken as entered; the matrix editor validates them so the
    caller gets one field-scoped message.
    """

    project_type: str = ""
    style_preference: str = ""
    project_specification: str = ""
    price_per_sqft: str | int | float = ""
    furniture_included_price_per_sqft: str | int | float = ""


class DropdownUpdateRequest(_DimensionTyped):
    """Rename one dimension value across every row that uses it."""

    model_config = ConfigDict(populate_by_name=True)

    old_value: str = Field(alias="oldValue")
    new_value: str = Field(alias="newValue")


class PendingRequest(_DimensionTyped):
    """Ask which combinations a new dimension value would introduce."""

    value: str


class BatchCreateRequest(BaseModel):
    """Priced pending combinations to persist, in order."""

    data: list[PendingCombination]
