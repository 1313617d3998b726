"""Combination stores: the data-access layer behind the pricing matrix."""

from __future__ import annotations

import threading
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol

from costmatrix.exceptions import ConflictError, NotFoundError, ValidationError
from costmatrix.models.combination import Combination, parse_price
from costmatrix.models.enums import PriceField, SortField

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from costmatrix.models.combination import CombinationDraft, PriceUpdate
    from costmatrix.models.enums import Dimension

DUPLICATE_COMBINATION_MESSAGE = "This combination already exists"


def check_prices(fields: Mapping[str, Any]) -> None:
    """Refuse price columns the stores cannot hold exactly.

    Models normally guarantee this already; rows built with
    ``model_construct`` skip validation and are caught here.
    """
    for price_field in PriceField:
        if price_field.value not in fields:
            continue
        try:
            parse_price(fields[price_field.value])
        except ValueError as exc:
            msg = f"{price_field.label} {exc}"
            raise ValidationError(msg, field=price_field.value) from None


class CombinationStore(Protocol):
    """Data-access collaborator the matrix editor and the API depend on.

    ``where`` maps a dimension to the exact value its column must equal.
    """

    def list(
        self,
        where: Mapping[Dimension, str] | None = None,
        *,
        sort_field: SortField = SortField.CREATED_AT,
        descending: bool = False,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Combination]: ...

    def count(self, where: Mapping[Dimension, str] | None = None) -> int: ...

    def get(self, combination_id: str) -> Combination: ...

    def create(self, draft: CombinationDraft) -> Combination: ...

    def update(self, combination_id: str, changes: PriceUpdate) -> Combination: ...

    def update_where(
        self, dimension: Dimension, old_value: str, new_value: str,
    ) -> int: ...

    def delete(self, combination_id: str) -> None: ...


class InMemoryCombinationStore:
    """Store that keeps combinations in a list.

    Rows stay in insertion order, which is also their ``created_at`` order,
    so ties on the sort column fall back to that order (reversed when
    sorting descending).
    The lock only protects the list itself; FastAPI calls sync handlers
    from a thread pool.
    """

    def __init__(self, combinations: Iterable[Combination] = ()) -> None:
        self._rows: list[Combination] = list(combinations)
        self._lock = threading.Lock()

    @classmethod
    def from_drafts(cls, drafts: Iterable[CombinationDraft]) -> InMemoryCombinationStore:
        store = cls()
        for draft in drafts:
            store.create(draft)
        return store

    def list(
        self,
        where: Mapping[Dimension, str] | None = None,
        *,
        sort_field: SortField = SortField.CREATED_AT,
        descending: bool = False,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Combination]:
        with self._lock:
            indexed = [(i, row) for i, row in enumerate(self._rows) if _matches(row, where)]
        indexed.sort(
            key=lambda item: (getattr(item[1], sort_field.value), item[0]),
            reverse=descending,
        )
        rows = [row for _, row in indexed]
        end = None if limit is None else offset + limit
        return rows[offset:end]

    def count(self, where: Mapping[Dimension, str] | None = None) -> int:
        with self._lock:
            return sum(1 for row in self._rows if _matches(row, where))

    def get(self, combination_id: str) -> Combination:
        with self._lock:
            return self._rows[self._index_of(combination_id)]

    def create(self, draft: CombinationDraft) -> Combination:
        check_prices(draft.model_dump())
        with self._lock:
            if any(row.key == draft.key for row in self._rows):
                raise ConflictError(DUPLICATE_COMBINATION_MESSAGE)
            combination = Combination(
                cost_estimation_id=str(uuid.uuid4()),
                created_at=datetime.now(UTC),
                **draft.model_dump(),
            )
            self._rows.append(combination)
            return combination

    def update(self, combination_id: str, changes: PriceUpdate) -> Combination:
        check_prices(changes.changes())
        with self._lock:
            index = self._index_of(combination_id)
            updated = self._rows[index].model_copy(update=changes.changes())
            self._rows[index] = updated
            return updated

    def update_where(
        self, dimension: Dimension, old_value: str, new_value: str,
    ) -> int:
        """Rewrite one column on every row holding ``old_value``.

        Either every matching row is rewritten or none is: a rename that
        would collide with an untouched row's triple raises ConflictError
        before anything changes.
        """
        with self._lock:
            renamed = {
                index: row.model_copy(update={dimension.value: new_value})
                for index, row in enumerate(self._rows)
                if row.value(dimension) == old_value
            }
            untouched = {
                row.key for index, row in enumerate(self._rows) if index not in renamed
            }
            new_keys = [row.key for row in renamed.values()]
            if any(key in untouched for key in new_keys) or len(set(new_keys)) != len(new_keys):
                raise ConflictError(DUPLICATE_COMBINATION_MESSAGE)
            for index, row in renamed.items():
                self._rows[index] = row
            return len(renamed)

    def delete(self, combination_id: str) -> None:
        with self._lock:
            del self._rows[self._index_of(combination_id)]

    def _index_of(self, combination_id: str) -> int:
        for index, row in enumerate(self._rows):
            if row.cost_estimation_id == combination_id:
                return index
        msg = f"Cost estimation '{combination_id}' not found"
        raise NotFoundError(msg)


def _matches(row: Combination, where: Mapping[Dimension, str] | None) -> bool:
    if not where:
        return True
    return all(row.value(dimension) == value for dimension, value in where.items())
