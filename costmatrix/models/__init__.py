"""Domain models for the cost-estimation matrix."""

from costmatrix.models.combination import (
    Combination,
    CombinationDraft,
    CombinationKey,
    PendingCombination,
    PriceUpdate,
    is_valid_price,
    parse_price,
)
from costmatrix.models.enums import Dimension, PriceField, SortDirection, SortField
from costmatrix.models.requests import (
    BatchCreateRequest,
    CombinationCreateRequest,
    DropdownUpdateRequest,
    PendingRequest,
)

__all__ = [
    "BatchCreateRequest",
    "Combination",
    "CombinationCreateRequest",
    "CombinationDraft",
    "CombinationKey",
    "Dimension",
    "DropdownUpdateRequest",
    "PendingCombination",
    "PendingRequest",
    "PriceField",
    "PriceUpdate",
    "SortDirection",
    "SortField",
    "is_valid_price",
    "parse_price",
]
