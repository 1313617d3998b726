"""Enums for the cost-estimation matrix models.

The three dimensions are the categorical axes whose values jointly key a
priced combination. Enum values are the column names used on the wire and
in the ``cost_estimations`` table.
"""

from enum import StrEnum


class Dimension(StrEnum):
    """One of the three categorical axes of the pricing matrix."""

    PROJECT_TYPE = "project_type"
    STYLE_PREFERENCE = "style_preference"
    SPECIFICATION = "project_specification"

    @property
    def label(self) -> str:
        """Human-readable name used in operator-facing messages."""
        return _LABELS[self]

    @classmethod
    def parse(cls, raw: str) -> "Dimension":
        """Resolve a column name or a dropdown alias to a Dimension.

        Accepts both ``project_type`` and the admin panel's ``projectType``
        style of naming. Raises ValueError for anything else.
        """
        try:
            return cls(raw)
        except ValueError:
            pass
        dimension = _ALIASES.get(raw)
        if dimension is None:
            msg = f"Invalid dropdown type '{raw}'"
            raise ValueError(msg)
        return dimension


class PriceField(StrEnum):
    """The two editable price columns of a combination."""

    PRICE_PER_SQFT = "price_per_sqft"
    FURNITURE_INCLUDED_PRICE_PER_SQFT = "furniture_included_price_per_sqft"

    @property
    def label(self) -> str:
        if self is PriceField.PRICE_PER_SQFT:
            return "Price per sqft"
        return "Furniture included price per sqft"


class SortField(StrEnum):
    """Columns the combination list can be ordered by."""

    CREATED_AT = "created_at"
    PROJECT_TYPE = "project_type"
    STYLE_PREFERENCE = "style_preference"
    SPECIFICATION = "project_specification"
    PRICE_PER_SQFT = "price_per_sqft"
    FURNITURE_INCLUDED_PRICE_PER_SQFT = "furniture_included_price_per_sqft"


class SortDirection(StrEnum):
    ASC = "asc"
    DESC = "desc"


_LABELS: dict[Dimension, str] = {
    Dimension.PROJECT_TYPE: "project type",
    Dimension.STYLE_PREFERENCE: "style preference",
    Dimension.SPECIFICATION: "specification",
}

_ALIASES: dict[str, Dimension] = {
    "projectType": Dimension.PROJECT_TYPE,
    "stylePreference": Dimension.STYLE_PREFERENCE,
    "specification": Dimension.SPECIFICATION,
}
