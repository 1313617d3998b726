"""Combination-matrix consistency engine for the cost-estimation dropdowns.

Three dimensions (project type, style preference, specification) jointly key
a priced combination. No dimension has storage of its own:

1. **Derived values**: a dimension's values are the distinct values of its
   column across all rows, in first-seen order. A value exists only while at
   least one row references it.
2. **Add**: introducing a value generates the cross-product of that value
   against the other two dimensions, minus triples that already exist. The
   operator prices every pending row before it is created.
3. **Rename**: one bulk column rewrite scoped by the old value; row ids and
   creation times are kept. Renaming onto an existing value is refused rather
   than silently merging two categories.
4. **Delete**: removes every row holding the value, one row at a time. The
   last value of a dimension can never be deleted.

Every precondition is checked before the first store call. Bulk operations
run sequentially and stop at the first failure, leaving earlier rows
committed.
"""

from __future__ import annotations

import itertools
import logging
from typing import TYPE_CHECKING, Any

from costmatrix.data.store import DUPLICATE_COMBINATION_MESSAGE
from costmatrix.exceptions import (
    BatchAbortedError,
    DimensionValueError,
    DuplicateCombinationError,
    ValidationError,
)
from costmatrix.models.combination import (
    CombinationDraft,
    PendingCombination,
    PriceUpdate,
    parse_price,
)
from costmatrix.models.enums import Dimension, PriceField, SortField

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from decimal import Decimal

    from costmatrix.data.store import CombinationStore
    from costmatrix.models.combination import Combination

logger = logging.getLogger(__name__)

NO_NEW_COMBINATIONS_MESSAGE = "No new combinations would be created."


class CombinationMatrix:
    """Read-only projection over one snapshot of combination rows.

    Build a new one after every mutation; nothing here is cached across
    snapshots.
    """

    def __init__(self, combinations: Iterable[Combination]) -> None:
        self._rows = list(combinations)
        self._keys = {row.key.as_tuple() for row in self._rows}

    @property
    def rows(self) -> list[Combination]:
        return list(self._rows)

    def values(self, dimension: Dimension) -> list[str]:
        """Distinct values of one dimension, in first-seen order."""
        return list(dict.fromkeys(row.value(dimension) for row in self._rows))

    @property
    def project_types(self) -> list[str]:
        return self.values(Dimension.PROJECT_TYPE)

    @property
    def style_preferences(self) -> list[str]:
        return self.values(Dimension.STYLE_PREFERENCE)

    @property
    def specifications(self) -> list[str]:
        return self.values(Dimension.SPECIFICATION)

    def dropdowns(self) -> dict[str, list[str]]:
        return {dimension.value: self.values(dimension) for dimension in Dimension}

    def has_triple(
        self, project_type: str, style_preference: str, specification: str,
    ) -> bool:
        return (project_type, style_preference, specification) in self._keys

    def rows_with(self, dimension: Dimension, value: str) -> list[Combination]:
        return [row for row in self._rows if row.value(dimension) == value]

    def pending_for(
        self, dimension: Dimension, new_value: str,
    ) -> list[PendingCombination]:
        """Unpriced rows needed to complete the matrix for ``new_value``.

        The cross-product of ``new_value`` with the current values of the
        other two dimensions, skipping any triple that already has a row.
        """
        axes = {d: self.values(d) for d in Dimension}
        axes[dimension] = [new_value]
        return self._uncovered(axes)

    def missing_cells(self) -> list[PendingCombination]:
        """Every cell of the full cross-product that has no priced row."""
        return self._uncovered({d: self.values(d) for d in Dimension})

    def _uncovered(self, axes: dict[Dimension, list[str]]) -> list[PendingCombination]:
        cells = itertools.product(
            axes[Dimension.PROJECT_TYPE],
            axes[Dimension.STYLE_PREFERENCE],
            axes[Dimension.SPECIFICATION],
        )
        return [
            PendingCombination(
                project_type=project_type,
                style_preference=style_preference,
                project_specification=specification,
            )
            for project_type, style_preference, specification in cells
            if (project_type, style_preference, specification) not in self._keys
        ]


class MatrixEditor:
    """Applies structural edits to the pricing matrix through a store.

    Each operation loads a fresh snapshot, validates against it, and only
    then talks to the store.

    Args:
        store: Data-access collaborator: an in-process store on the server,
            or a ``CostEstimationClient`` on the operator's side.

    Example::

        editor = MatrixEditor(InMemoryCombinationStore.from_drafts(SEED_COMBINATIONS))
        pending = editor.add_dimension_value(Dimension.STYLE_PREFERENCE, "Rustic")
        editor.submit_pending([p.priced("1800", "2600") for p in pending])
    """

    def __init__(self, store: CombinationStore) -> None:
        self._store = store

    @property
    def store(self) -> CombinationStore:
        return self._store

    def snapshot(self) -> CombinationMatrix:
        """Load every combination, oldest first."""
        return CombinationMatrix(self._store.list(sort_field=SortField.CREATED_AT))

    # ------------------------------------------------------------------
    # Dimension values
    # ------------------------------------------------------------------

    def add_dimension_value(
        self, dimension: Dimension, new_value: str,
    ) -> list[PendingCombination]:
        """Return the unpriced combinations a new dimension value needs.

        Nothing is written; price the returned rows and pass them to
        :meth:`submit_pending`.

        Raises:
            ValidationError: If the value is blank, or no combination would
                be created (another dimension has no values yet).
            DimensionValueError: If the value already exists.
        """
        value = _required(new_value, dimension.value)
        matrix = self.snapshot()
        if value in matrix.values(dimension):
            raise DimensionValueError(f"{value} already exists", field=dimension.value)

        pending = matrix.pending_for(dimension, value)
        if not pending:
            raise ValidationError(NO_NEW_COMBINATIONS_MESSAGE, field=dimension.value)
        return pending

    def submit_pending(
        self, pending: Sequence[PendingCombination],
    ) -> list[Combination]:
        """Create priced pending combinations one at a time, in order.

        Every row is validated before the first create. A failing create
        stops the batch; rows created before it stay committed.

        Raises:
            ValidationError: If any row lacks a positive price.
            BatchAbortedError: If a create fails partway through.
        """
        drafts = [_draft_from_pending(row) for row in pending]

        created: list[Combination] = []
        for row, draft in zip(pending, drafts, strict=True):
            try:
                created.append(self._store.create(draft))
            except Exception as exc:
                logger.warning(
                    "Batch create stopped after %d of %d rows at %s: %s",
                    len(created), len(drafts), draft.key.as_tuple(), exc,
                )
                msg = f"Failed to create combination {_describe(draft)}: {exc}"
                raise BatchAbortedError(msg, completed=created, failed=row) from exc
        logger.info("Created %d combinations", len(created))
        return created

    def rename_dimension_value(
        self, dimension: Dimension, old_value: str, new_value: str,
    ) -> int:
        """Rewrite ``old_value`` to ``new_value`` on every row that has it.

        Returns the number of rows rewritten.

        Raises:
            ValidationError: If the new value is blank.
            DimensionValueError: If the new value already exists in the
                dimension, or the old one does not.
        """
        value = _required(new_value, dimension.value)
        if value == old_value:
            return 0

        values = self.snapshot().values(dimension)
        if old_value not in values:
            raise DimensionValueError(
                f"{old_value} does not exist", field=dimension.value,
            )
        if value in values:
            raise DimensionValueError("Duplicate value", field=dimension.value)

        updated = self._store.update_where(dimension, old_value, value)
        logger.info(
            "Renamed %s %r to %r on %d combinations",
            dimension.label, old_value, value, updated,
        )
        return updated

    def delete_dimension_value(self, dimension: Dimension, value: str) -> list[str]:
        """Delete every combination holding ``value``, one row at a time.

        Returns the ids deleted.

        Raises:
            DimensionValueError: If ``value`` is the dimension's last value,
                or is not present.
            BatchAbortedError: If a delete fails partway through.
        """
        matrix = self.snapshot()
        values = matrix.values(dimension)
        if value not in values:
            raise DimensionValueError(f"{value} does not exist", field=dimension.value)
        if not self.can_delete(matrix, dimension, value):
            raise DimensionValueError(
                f"Cannot delete the last {dimension.label}", field=dimension.value,
            )

        deleted: list[str] = []
        for row in matrix.rows_with(dimension, value):
            try:
                self._store.delete(row.cost_estimation_id)
            except Exception as exc:
                logger.warning(
                    "Deleting %s %r stopped after %d rows at %s: %s",
                    dimension.label, value, len(deleted), row.cost_estimation_id, exc,
                )
                msg = f"Failed to delete combination {row.cost_estimation_id}: {exc}"
                raise BatchAbortedError(
                    msg, completed=deleted, failed=row.cost_estimation_id,
                ) from exc
            deleted.append(row.cost_estimation_id)
        logger.info("Deleted %s %r (%d combinations)", dimension.label, value, len(deleted))
        return deleted

    @staticmethod
    def can_delete(matrix: CombinationMatrix, dimension: Dimension, value: str) -> bool:
        """True if another value would remain in ``dimension``."""
        return any(v != value for v in matrix.values(dimension))

    # ------------------------------------------------------------------
    # Single combinations
    # ------------------------------------------------------------------

    def edit_price(
        self, combination_id: str, field: PriceField, new_value: Any,
    ) -> Combination:
        """Update one price column of one combination."""
        price = _price(new_value, field)
        return self._store.update(combination_id, PriceUpdate(**{field.value: price}))

    def create_manual_combination(
        self,
        project_type: str,
        style_preference: str,
        specification: str,
        price: Any,
        furniture_price: Any,
    ) -> Combination:
        """Create one combination after checking it is not a duplicate.

        The duplicate check runs against the loaded snapshot; a store with
        a unique constraint still has the final say under concurrency.

        Raises:
            ValidationError: If a field is blank or a price is invalid.
            DuplicateCombinationError: If the triple already exists.
        """
        for name, raw in (
            (Dimension.PROJECT_TYPE.value, project_type),
            (Dimension.STYLE_PREFERENCE.value, style_preference),
            (Dimension.SPECIFICATION.value, specification),
            (PriceField.PRICE_PER_SQFT.value, price),
            (PriceField.FURNITURE_INCLUDED_PRICE_PER_SQFT.value, furniture_price),
        ):
            if raw is None or (isinstance(raw, str) and not raw.strip()):
                raise ValidationError("All fields are required", field=name)

        draft = CombinationDraft(
            project_type=project_type,
            style_preference=style_preference,
            project_specification=specification,
            price_per_sqft=_price(price, PriceField.PRICE_PER_SQFT),
            furniture_included_price_per_sqft=_price(
                furniture_price, PriceField.FURNITURE_INCLUDED_PRICE_PER_SQFT,
            ),
        )
        if self.snapshot().has_triple(*draft.key.as_tuple()):
            raise DuplicateCombinationError(DUPLICATE_COMBINATION_MESSAGE)
        return self._store.create(draft)


def _required(value: str, field: str) -> str:
    value = value.strip() if isinstance(value, str) else ""
    if not value:
        raise ValidationError("Value is required", field=field)
    return value


def _price(value: Any, field: PriceField) -> Decimal:
    try:
        return parse_price(value)
    except ValueError as exc:
        msg = f"{field.label} {exc}"
        raise ValidationError(msg, field=field.value) from None


def _draft_from_pending(row: PendingCombination) -> CombinationDraft:
    return CombinationDraft(
        project_type=_required(row.project_type, Dimension.PROJECT_TYPE.value),
        style_preference=_required(
            row.style_preference, Dimension.STYLE_PREFERENCE.value,
        ),
        project_specification=_required(
            row.project_specification, Dimension.SPECIFICATION.value,
        ),
        price_per_sqft=_price(row.price_per_sqft, PriceField.PRICE_PER_SQFT),
        furniture_included_price_per_sqft=_price(
            row.furniture_included_price_per_sqft,
            PriceField.FURNITURE_INCLUDED_PRICE_PER_SQFT,
        ),
    )


def _describe(draft: CombinationDraft) -> str:
    return " / ".join(draft.key.as_tuple())
