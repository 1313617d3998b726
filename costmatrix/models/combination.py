"""Combination models for the cost-estimation pricing matrix."""

from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from costmatrix.models.enums import Dimension

# Same shape the admin panel accepts: ASCII digits, optional point, optional digits.
PRICE_PATTERN = re.compile(r"([0-9]+)(?:\.([0-9]*))?")

# Fits the NUMERIC(12, 2) price columns without rounding.
PRICE_DECIMAL_PLACES = 2
PRICE_MAX_INTEGER_DIGITS = 10


def parse_price(value: Any) -> Decimal:
    """Parse a price into a strictly positive Decimal.

    Prices travel as decimal strings. Plain numbers are accepted by
    converting them to their string form first; booleans are not numbers
    here. Raises ValueError for anything else, for malformed strings such
    as ``"abc"``, ``"-5"`` or ``"1e3"``, for zero, and for values the
    price columns cannot hold exactly (``"12.345"``, eleven or more
    integer digits).
    """
    if isinstance(value, bool):
        msg = "must be a positive number"
        raise ValueError(msg)
    if isinstance(value, (int, float, Decimal)):
        value = str(value)
    match = PRICE_PATTERN.fullmatch(value) if isinstance(value, str) else None
    if match is None:
        msg = "must be a positive number"
        raise ValueError(msg)
    integer_digits, fraction_digits = match.group(1), match.group(2) or ""
    if len(fraction_digits) > PRICE_DECIMAL_PLACES:
        msg = f"must have at most {PRICE_DECIMAL_PLACES} decimal places"
        raise ValueError(msg)
    if len(integer_digits.lstrip("0")) > PRICE_MAX_INTEGER_DIGITS:
        msg = f"must have at most {PRICE_MAX_INTEGER_DIGITS} digits before the decimal point"
        raise ValueError(msg)
    price = Decimal(value)
    if price <= 0:
        msg = "must be a positive number"
        raise ValueError(msg)
    return price


def is_valid_price(value: Any) -> bool:
    try:
        parse_price(value)
    except ValueError:
        return False
    return True


class CombinationKey(BaseModel):
    """The (project type, style, specification) triple that keys a row."""

    model_config = ConfigDict(frozen=True)

    project_type: str
    style_preference: str
    project_specification: str

    def as_tuple(self) -> tuple[str, str, str]:
        return (self.project_type, self.style_preference, self.project_specification)


class _DimensionColumns(BaseModel):
    project_type: str
    style_preference: str
    project_specification: str

    def value(self, dimension: Dimension) -> str:
        """Return this row's value for one dimension."""
        return str(getattr(self, dimension.value))

    @property
    def key(self) -> CombinationKey:
        return CombinationKey(
            project_type=self.project_type,
            style_preference=self.style_preference,
            project_specification=self.project_specification,
        )


class CombinationDraft(_DimensionColumns):
    """The five writable columns of a combination, fully validated.

    This is what a store receives on create. Dimension values are trimmed
    and must be non-empty; both prices must be positive decimals.
    """

    price_per_sqft: Decimal
    furniture_included_price_per_sqft: Decimal

    @field_validator("project_type", "style_preference", "project_specification")
    @classmethod
    def dimension_value_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            msg = "value is required"
            raise ValueError(msg)
        return v

    @field_validator(
        "price_per_sqft", "furniture_included_price_per_sqft", mode="before",
    )
    @classmethod
    def price_must_be_positive(cls, v: Any) -> Decimal:
        return parse_price(v)


class Combination(CombinationDraft):
    """A persisted, priced cell of the dimension cross-product.

    Prices serialize as decimal strings in JSON mode so display never goes
    through binary floats.
    """

    cost_estimation_id: str
    created_at: datetime


class PendingCombination(_DimensionColumns):
    """An unsaved combination generated for a new dimension value.

    Prices start empty and are filled in by the operator before the row is
    submitted. Nothing here is validated until submission.
    """

    price_per_sqft: str = ""
    furniture_included_price_per_sqft: str = ""

    @field_validator(
        "price_per_sqft", "furniture_included_price_per_sqft", mode="before",
    )
    @classmethod
    def price_as_text(cls, v: Any) -> str:
        if v is None:
            return ""
        if isinstance(v, (int, float, Decimal)) and not isinstance(v, bool):
            return str(v)
        return v  # type: ignore[no-any-return]

    @property
    def is_priced(self) -> bool:
        return is_valid_price(self.price_per_sqft) and is_valid_price(
            self.furniture_included_price_per_sqft,
        )

    def priced(self, price: Any, furniture_price: Any) -> PendingCombination:
        """Return a copy carrying the given prices."""
        return self.model_copy(
            update={
                "price_per_sqft": "" if price is None else str(price),
                "furniture_included_price_per_sqft": (
                    "" if furniture_price is None else str(furniture_price)
                ),
            },
        )

    def to_draft(self) -> CombinationDraft:
        """Convert to a validated draft. Raises pydantic's ValidationError."""
        return CombinationDraft.model_validate(self.model_dump())


class PriceUpdate(BaseModel):
    """Partial update of one or both price columns.

    Dimension columns are not accepted here; renames go through the
    bulk dropdown update instead.
    """

    model_config = ConfigDict(extra="forbid")

    price_per_sqft: Decimal | None = None
    furniture_included_price_per_sqft: Decimal | None = None

    @field_validator(
        "price_per_sqft", "furniture_included_price_per_sqft", mode="before",
    )
    @classmethod
    def price_must_be_positive(cls, v: Any) -> Decimal | None:
        if v is None:
            return None
        return parse_price(v)

    @model_validator(mode="after")
    def at_least_one_price(self) -> PriceUpdate:
        if self.price_per_sqft is None and self.furniture_included_price_per_sqft is None:
            msg = "At least one price field is required"
            raise ValueError(msg)
        return self

    def changes(self) -> dict[str, Decimal]:
        """Return only the fields that were set."""
        return {
            name: value
            for name, value in self.model_dump().items()
            if value is not None
        }
