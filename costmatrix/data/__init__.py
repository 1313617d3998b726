"""Data-access layer for the cost-estimation matrix."""

from costmatrix.data.sql_store import SqlCombinationStore
from costmatrix.data.store import CombinationStore, InMemoryCombinationStore

__all__ = [
    "CombinationStore",
    "InMemoryCombinationStore",
    "SqlCombinationStore",
]
