"""Cost-estimation combination matrix.

Usage::

    from costmatrix import Dimension, create_default_editor

    editor = create_default_editor()
    pending = editor.add_dimension_value(Dimension.STYLE_PREFERENCE, "Rustic")
    editor.submit_pending([p.priced("1800", "2600") for p in pending])
"""

from costmatrix.client import CostEstimationClient
from costmatrix.config import Settings, configure_logging
from costmatrix.data.sql_store import SqlCombinationStore
from costmatrix.data.store import CombinationStore, InMemoryCombinationStore
from costmatrix.exceptions import (
    BatchAbortedError,
    ConflictError,
    CostMatrixError,
    DimensionValueError,
    DuplicateCombinationError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from costmatrix.factory import create_default_editor, create_default_store
from costmatrix.matrix import CombinationMatrix, MatrixEditor
from costmatrix.models.combination import (
    Combination,
    CombinationDraft,
    PendingCombination,
    PriceUpdate,
)
from costmatrix.models.enums import Dimension, PriceField

__all__ = [
    "BatchAbortedError",
    "Combination",
    "CombinationDraft",
    "CombinationMatrix",
    "CombinationStore",
    "ConflictError",
    "CostEstimationClient",
    "CostMatrixError",
    "Dimension",
    "DimensionValueError",
    "DuplicateCombinationError",
    "InMemoryCombinationStore",
    "MatrixEditor",
    "NotFoundError",
    "PendingCombination",
    "PriceField",
    "PriceUpdate",
    "Settings",
    "SqlCombinationStore",
    "TransportError",
    "ValidationError",
    "configure_logging",
    "create_default_editor",
    "create_default_store",
]
