"""Factory functions for creating pre-configured stores and editors."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from costmatrix.config import Settings
from costmatrix.data.seed import SEED_COMBINATIONS
from costmatrix.data.sql_store import SqlCombinationStore
from costmatrix.data.store import InMemoryCombinationStore
from costmatrix.matrix import MatrixEditor

if TYPE_CHECKING:
    from costmatrix.data.store import CombinationStore

logger = logging.getLogger(__name__)


def create_default_store(settings: Settings | None = None) -> CombinationStore:
    """Create the combination store described by the settings.

    With ``database_url`` set this is a SQL store over that database
    (tables are created if missing). Without it, an in-memory store,
    seeded with the demo matrix unless ``seed_demo`` is off.
    """
    settings = settings or Settings.from_env()
    if settings.database_url:
        logger.info("Using SQL combination store")
        return SqlCombinationStore.from_url(settings.database_url, echo=settings.db_echo)

    logger.info("Using in-memory combination store (seeded=%s)", settings.seed_demo)
    if settings.seed_demo:
        return InMemoryCombinationStore.from_drafts(SEED_COMBINATIONS)
    return InMemoryCombinationStore()


def create_default_editor(settings: Settings | None = None) -> MatrixEditor:
    """Create a MatrixEditor over the default store.

    Example::

        from costmatrix import Dimension, create_default_editor

        editor = create_default_editor()
        pending = editor.add_dimension_value(Dimension.SPECIFICATION, "Luxury")
    """
    return MatrixEditor(create_default_store(settings))
