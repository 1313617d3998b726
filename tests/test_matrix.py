"""Tests for the combination-matrix engine (projections and structural edits)."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from costmatrix.data.sql_store import SqlCombinationStore
from costmatrix.data.store import InMemoryCombinationStore
from costmatrix.exceptions import (
    BatchAbortedError,
    ConflictError,
    DimensionValueError,
    DuplicateCombinationError,
    NotFoundError,
    ValidationError,
)
from costmatrix.matrix import NO_NEW_COMBINATIONS_MESSAGE, CombinationMatrix, MatrixEditor
from costmatrix.models.combination import Combination, CombinationDraft, PendingCombination
from costmatrix.models.enums import Dimension, PriceField

# ---------------------------------------------------------------------------
# Fixtures / helpers
# ---------------------------------------------------------------------------


def _draft(
    project_type: str,
    style_preference: str,
    specification: str,
    price: str = "10",
    furniture_price: str = "15",
) -> CombinationDraft:
    return CombinationDraft(
        project_type=project_type,
        style_preference=style_preference,
        project_specification=specification,
        price_per_sqft=price,
        furniture_included_price_per_sqft=furniture_price,
    )


def _make_store(*triples: tuple[str, str, str]) -> InMemoryCombinationStore:
    return InMemoryCombinationStore.from_drafts(_draft(*t) for t in triples)


def _make_editor(*triples: tuple[str, str, str]) -> tuple[MatrixEditor, InMemoryCombinationStore]:
    store = _make_store(*triples)
    return MatrixEditor(store), store


def _spy_editor(*triples: tuple[str, str, str]) -> tuple[MatrixEditor, MagicMock]:
    spy = MagicMock(wraps=_make_store(*triples))
    return MatrixEditor(spy), spy


def _triples(store: InMemoryCombinationStore) -> list[tuple[str, str, str]]:
    return [row.key.as_tuple() for row in store.list()]


class _FailingStore(InMemoryCombinationStore):
    """In-memory store whose Nth create/delete call raises."""

    def __init__(
        self, *, fail_create_at: int | None = None, fail_delete_at: int | None = None,
    ) -> None:
        super().__init__()
        self.fail_create_at = fail_create_at
        self.fail_delete_at = fail_delete_at
        self.create_calls = 0
        self.delete_calls = 0

    def create(self, draft: CombinationDraft) -> Combination:
        self.create_calls += 1
        if self.create_calls == self.fail_create_at:
            raise ConflictError("This combination already exists")
        return super().create(draft)

    def delete(self, combination_id: str) -> None:
        self.delete_calls += 1
        if self.delete_calls == self.fail_delete_at:
            raise NotFoundError(f"Cost estimation '{combination_id}' not found")
        super().delete(combination_id)


# ---------------------------------------------------------------------------
# CombinationMatrix projections
# ---------------------------------------------------------------------------


class TestCombinationMatrix:
    def test_distinct_values_first_seen_order(self) -> None:
        store = _make_store(("B", "Y", "2"), ("A", "X", "1"), ("B", "X", "1"))
        matrix = CombinationMatrix(store.list())

        assert matrix.project_types == ["B", "A"]
        assert matrix.style_preferences == ["Y", "X"]
        assert matrix.specifications == ["2", "1"]

    def test_empty_matrix(self) -> None:
        matrix = CombinationMatrix([])
        assert matrix.project_types == []
        assert matrix.missing_cells() == []
        assert matrix.pending_for(Dimension.PROJECT_TYPE, "A") == []

    def test_dropdowns(self) -> None:
        matrix = CombinationMatrix(_make_store(("A", "X", "1")).list())
        assert matrix.dropdowns() == {
            "project_type": ["A"],
            "style_preference": ["X"],
            "project_specification": ["1"],
        }

    def test_rows_with(self) -> None:
        matrix = CombinationMatrix(_make_store(("A", "X", "1"), ("B", "X", "1")).list())
        assert [r.project_type for r in matrix.rows_with(Dimension.STYLE_PREFERENCE, "X")] == [
            "A",
            "B",
        ]

    def test_pending_is_cross_product_of_other_dimensions(self) -> None:
        matrix = CombinationMatrix(
            _make_store(("A", "X", "1"), ("A", "Y", "2"), ("B", "X", "1")).list(),
        )
        pending = matrix.pending_for(Dimension.PROJECT_TYPE, "C")

        assert [p.key.as_tuple() for p in pending] == [
            ("C", "X", "1"),
            ("C", "X", "2"),
            ("C", "Y", "1"),
            ("C", "Y", "2"),
        ]
        assert all(p.price_per_sqft == "" for p in pending)

    def test_pending_skips_existing_triples(self) -> None:
        matrix = CombinationMatrix(_make_store(("A", "X", "1"), ("B", "Y", "1")).list())
        pending = matrix.pending_for(Dimension.PROJECT_TYPE, "A")
        assert [p.key.as_tuple() for p in pending] == [("A", "Y", "1")]

    def test_missing_cells(self) -> None:
        matrix = CombinationMatrix(
            _make_store(("A", "X", "1"), ("A", "Y", "1"), ("B", "X", "1")).list(),
        )
        assert [p.key.as_tuple() for p in matrix.missing_cells()] == [("B", "Y", "1")]

    def test_has_triple(self) -> None:
        matrix = CombinationMatrix(_make_store(("A", "X", "1")).list())
        assert matrix.has_triple("A", "X", "1")
        assert not matrix.has_triple("A", "X", "2")


# ---------------------------------------------------------------------------
# AddDimensionValue / submit_pending
# ---------------------------------------------------------------------------


class TestAddDimensionValue:
    def test_single_row_scenario(self) -> None:
        """Adding a style to a one-row matrix needs exactly one new row."""
        editor, store = _make_editor(("Villa", "Modern", "Basic"))

        pending = editor.add_dimension_value(Dimension.STYLE_PREFERENCE, "Classic")

        assert pending == [
            PendingCombination(
                project_type="Villa",
                style_preference="Classic",
                project_specification="Basic",
                price_per_sqft="",
                furniture_included_price_per_sqft="",
            ),
        ]

        created = editor.submit_pending([p.priced("20", "25") for p in pending])

        assert len(created) == 1
        assert created[0].price_per_sqft == Decimal("20")
        assert len(store.list()) == 2
        assert editor.snapshot().style_preferences == ["Modern", "Classic"]

    def test_cross_product_completeness(self) -> None:
        editor, store = _make_editor(
            ("A", "X", "1"), ("A", "Y", "1"), ("B", "X", "2"),
        )

        pending = editor.add_dimension_value(Dimension.SPECIFICATION, "3")
        editor.submit_pending([p.priced("11", "12") for p in pending])

        triples = _triples(store)
        assert len(triples) == len(set(triples))
        new_cells = {t for t in triples if t[2] == "3"}
        assert new_cells == {
            (p, s, "3") for p in ("A", "B") for s in ("X", "Y")
        }

    def test_value_is_trimmed(self) -> None:
        editor, _ = _make_editor(("A", "X", "1"))
        pending = editor.add_dimension_value(Dimension.PROJECT_TYPE, "  B  ")
        assert pending[0].project_type == "B"

    @pytest.mark.parametrize("value", ["", "   "])
    def test_blank_value_rejected(self, value: str) -> None:
        editor, spy = _spy_editor(("A", "X", "1"))
        with pytest.raises(ValidationError, match="Value is required") as exc_info:
            editor.add_dimension_value(Dimension.PROJECT_TYPE, value)
        assert exc_info.value.field == "project_type"
        spy.list.assert_not_called()

    def test_existing_value_rejected(self) -> None:
        editor, _ = _make_editor(("A", "X", "1"))
        with pytest.raises(DimensionValueError, match="X already exists"):
            editor.add_dimension_value(Dimension.STYLE_PREFERENCE, "X")

    def test_existing_check_is_case_sensitive(self) -> None:
        editor, _ = _make_editor(("A", "X", "1"))
        pending = editor.add_dimension_value(Dimension.STYLE_PREFERENCE, "x")
        assert len(pending) == 1

    def test_empty_matrix_creates_nothing(self) -> None:
        editor, _ = _make_editor()
        with pytest.raises(ValidationError, match=NO_NEW_COMBINATIONS_MESSAGE):
            editor.add_dimension_value(Dimension.PROJECT_TYPE, "Villa")

    def test_add_writes_nothing(self) -> None:
        editor, spy = _spy_editor(("A", "X", "1"))
        editor.add_dimension_value(Dimension.PROJECT_TYPE, "B")
        spy.create.assert_not_called()


class TestSubmitPending:
    def _pending(self, *triples: tuple[str, str, str]) -> list[PendingCombination]:
        return [
            PendingCombination(
                project_type=t[0], style_preference=t[1], project_specification=t[2],
            )
            for t in triples
        ]

    def test_unpriced_rows_rejected_before_any_create(self) -> None:
        editor, spy = _spy_editor(("A", "X", "1"))
        pending = self._pending(("B", "X", "1"), ("C", "X", "1"))
        rows = [pending[0].priced("10", "12"), pending[1].priced("10", "")]

        with pytest.raises(ValidationError, match="Furniture included price per sqft") as exc_info:
            editor.submit_pending(rows)

        assert exc_info.value.field == "furniture_included_price_per_sqft"
        spy.create.assert_not_called()

    @pytest.mark.parametrize("price", ["0", "-5", "abc"])
    def test_non_positive_price_rejected(self, price: str) -> None:
        editor, spy = _spy_editor(("A", "X", "1"))
        rows = [p.priced(price, "10") for p in self._pending(("B", "X", "1"))]
        with pytest.raises(ValidationError):
            editor.submit_pending(rows)
        spy.create.assert_not_called()

    def test_stops_at_first_failure(self) -> None:
        store = _FailingStore(fail_create_at=2)
        editor = MatrixEditor(store)
        rows = [
            p.priced("10", "12")
            for p in self._pending(("A", "X", "1"), ("A", "X", "2"), ("A", "X", "3"))
        ]

        with pytest.raises(BatchAbortedError) as exc_info:
            editor.submit_pending(rows)

        err = exc_info.value
        assert [c.project_specification for c in err.completed] == ["1"]
        assert err.failed == rows[1]
        assert isinstance(err.__cause__, ConflictError)
        # The third row was never attempted; the first stays committed.
        assert store.create_calls == 2
        assert _triples(store) == [("A", "X", "1")]

    def test_empty_batch(self) -> None:
        editor, _ = _make_editor(("A", "X", "1"))
        assert editor.submit_pending([]) == []


# ---------------------------------------------------------------------------
# RenameDimensionValue
# ---------------------------------------------------------------------------


class TestRenameDimensionValue:
    def test_rename_preserves_row_identity(self) -> None:
        editor, store = _make_editor(("A", "X", "1"), ("A", "Y", "1"), ("B", "X", "1"))
        before = {r.cost_estimation_id: r for r in store.list()}

        updated = editor.rename_dimension_value(Dimension.PROJECT_TYPE, "A", "C")

        assert updated == 2
        after = {r.cost_estimation_id: r for r in store.list()}
        assert after.keys() == before.keys()
        for row_id, old in before.items():
            new = after[row_id]
            assert new.created_at == old.created_at
            assert new.style_preference == old.style_preference
            assert new.project_specification == old.project_specification
            assert new.price_per_sqft == old.price_per_sqft
            expected = "C" if old.project_type == "A" else old.project_type
            assert new.project_type == expected
        assert editor.snapshot().project_types == ["C", "B"]

    def test_merge_rejected(self) -> None:
        editor, spy = _spy_editor(("A", "X", "1"), ("B", "Y", "1"))
        with pytest.raises(DimensionValueError, match="Duplicate value"):
            editor.rename_dimension_value(Dimension.PROJECT_TYPE, "A", "B")
        spy.update_where.assert_not_called()

    def test_blank_rejected(self) -> None:
        editor, spy = _spy_editor(("A", "X", "1"))
        with pytest.raises(ValidationError, match="Value is required"):
            editor.rename_dimension_value(Dimension.SPECIFICATION, "1", "  ")
        spy.update_where.assert_not_called()

    def test_same_value_is_noop(self) -> None:
        editor, spy = _spy_editor(("A", "X", "1"))
        assert editor.rename_dimension_value(Dimension.PROJECT_TYPE, "A", " A ") == 0
        spy.update_where.assert_not_called()

    def test_unknown_old_value_rejected(self) -> None:
        editor, spy = _spy_editor(("A", "X", "1"))
        with pytest.raises(DimensionValueError, match="Z does not exist"):
            editor.rename_dimension_value(Dimension.STYLE_PREFERENCE, "Z", "W")
        spy.update_where.assert_not_called()

    def test_single_update_call(self) -> None:
        editor, spy = _spy_editor(("A", "X", "1"), ("B", "X", "2"))
        editor.rename_dimension_value(Dimension.STYLE_PREFERENCE, "X", "Z")
        spy.update_where.assert_called_once_with(Dimension.STYLE_PREFERENCE, "X", "Z")


# ---------------------------------------------------------------------------
# DeleteDimensionValue
# ---------------------------------------------------------------------------


class TestDeleteDimensionValue:
    def test_delete_removes_rows_holding_value(self) -> None:
        editor, store = _make_editor(("A", "X", "1"), ("A", "Y", "1"), ("B", "X", "1"))

        deleted = editor.delete_dimension_value(Dimension.PROJECT_TYPE, "A")

        assert len(deleted) == 2
        assert _triples(store) == [("B", "X", "1")]

    def test_cascading_shrinkage_of_other_dimensions(self) -> None:
        editor, _ = _make_editor(("A", "X", "1"), ("A", "Y", "1"), ("B", "X", "1"))
        editor.delete_dimension_value(Dimension.PROJECT_TYPE, "A")
        assert editor.snapshot().style_preferences == ["X"]

    def test_last_value_rejected(self) -> None:
        editor, spy = _spy_editor(("A", "X", "1"), ("B", "X", "2"))
        with pytest.raises(DimensionValueError, match="Cannot delete the last style preference"):
            editor.delete_dimension_value(Dimension.STYLE_PREFERENCE, "X")
        spy.delete.assert_not_called()

    @pytest.mark.parametrize("dimension", list(Dimension))
    def test_single_value_dimension_never_emptied(self, dimension: Dimension) -> None:
        editor, store = _make_editor(("A", "X", "1"))
        value = store.list()[0].value(dimension)
        with pytest.raises(DimensionValueError):
            editor.delete_dimension_value(dimension, value)
        assert len(store.list()) == 1

    def test_unknown_value_rejected(self) -> None:
        editor, spy = _spy_editor(("A", "X", "1"), ("B", "X", "1"))
        with pytest.raises(DimensionValueError, match="C does not exist"):
            editor.delete_dimension_value(Dimension.PROJECT_TYPE, "C")
        spy.delete.assert_not_called()

    def test_stops_at_first_failure(self) -> None:
        store = _FailingStore(fail_delete_at=2)
        for triple in (("A", "X", "1"), ("A", "X", "2"), ("A", "X", "3"), ("B", "X", "1")):
            store.create(_draft(*triple))
        editor = MatrixEditor(store)

        with pytest.raises(BatchAbortedError) as exc_info:
            editor.delete_dimension_value(Dimension.PROJECT_TYPE, "A")

        err = exc_info.value
        assert len(err.completed) == 1
        assert isinstance(err.__cause__, NotFoundError)
        assert store.delete_calls == 2
        assert _triples(store) == [("A", "X", "2"), ("A", "X", "3"), ("B", "X", "1")]

    def test_can_delete(self) -> None:
        matrix = CombinationMatrix(_make_store(("A", "X", "1"), ("B", "X", "1")).list())
        assert MatrixEditor.can_delete(matrix, Dimension.PROJECT_TYPE, "A")
        assert not MatrixEditor.can_delete(matrix, Dimension.STYLE_PREFERENCE, "X")


# ---------------------------------------------------------------------------
# EditPrice
# ---------------------------------------------------------------------------


class TestEditPrice:
    @pytest.mark.parametrize("value", ["0", "-5", "abc", ""])
    def test_invalid_prices_rejected_without_store_call(self, value: str) -> None:
        editor, spy = _spy_editor(("A", "X", "1"))
        row_id = spy.list()[0].cost_estimation_id
        with pytest.raises(ValidationError, match="Price per sqft must be a positive number"):
            editor.edit_price(row_id, PriceField.PRICE_PER_SQFT, value)
        spy.update.assert_not_called()

    @pytest.mark.parametrize("value", ["12", "12.50"])
    def test_valid_prices_accepted(self, value: str) -> None:
        editor, store = _make_editor(("A", "X", "1"))
        row = store.list()[0]

        updated = editor.edit_price(row.cost_estimation_id, PriceField.PRICE_PER_SQFT, value)

        assert updated.price_per_sqft == Decimal(value)
        assert updated.furniture_included_price_per_sqft == row.furniture_included_price_per_sqft
        assert updated.key == row.key
        assert updated.cost_estimation_id == row.cost_estimation_id

    def test_furniture_price_only(self) -> None:
        editor, store = _make_editor(("A", "X", "1"))
        row = store.list()[0]
        updated = editor.edit_price(
            row.cost_estimation_id, PriceField.FURNITURE_INCLUDED_PRICE_PER_SQFT, "99.5",
        )
        assert updated.furniture_included_price_per_sqft == Decimal("99.5")
        assert updated.price_per_sqft == row.price_per_sqft

    def test_unknown_row(self) -> None:
        editor, _ = _make_editor(("A", "X", "1"))
        with pytest.raises(NotFoundError):
            editor.edit_price("missing", PriceField.PRICE_PER_SQFT, "12")

    @pytest.mark.parametrize("value", ["0.001", "12.345", "12345678901"])
    def test_unstorable_prices_rejected_without_store_call(self, value: str) -> None:
        editor, spy = _spy_editor(("A", "X", "1"))
        row_id = spy.list()[0].cost_estimation_id
        with pytest.raises(ValidationError, match="Price per sqft must have at most") as exc_info:
            editor.edit_price(row_id, PriceField.PRICE_PER_SQFT, value)
        assert exc_info.value.field == "price_per_sqft"
        spy.update.assert_not_called()

    def test_sql_matrix_stays_readable_after_rejected_price(self) -> None:
        editor = MatrixEditor(SqlCombinationStore.from_url("sqlite://"))
        row = editor.create_manual_combination("Villa", "Modern", "Basic", "10", "15")

        with pytest.raises(ValidationError):
            editor.edit_price(row.cost_estimation_id, PriceField.PRICE_PER_SQFT, "0.001")
        with pytest.raises(ValidationError):
            editor.create_manual_combination("Villa", "Modern", "Premium", "12.345", "15")

        matrix = editor.snapshot()
        assert [r.price_per_sqft for r in matrix.rows] == [Decimal("10")]
        assert matrix.specifications == ["Basic"]


# ---------------------------------------------------------------------------
# CreateManualCombination
# ---------------------------------------------------------------------------


class TestCreateManualCombination:
    def test_creates_row(self) -> None:
        editor, store = _make_editor(("A", "X", "1"))
        created = editor.create_manual_combination("B", "X", "1", "12", "12.50")
        assert created.key.as_tuple() == ("B", "X", "1")
        assert len(store.list()) == 2

    def test_first_row_in_empty_matrix(self) -> None:
        editor, _ = _make_editor()
        editor.create_manual_combination("Villa", "Modern", "Basic", "10", "15")
        assert editor.snapshot().project_types == ["Villa"]

    def test_duplicate_triple_rejected(self) -> None:
        editor, spy = _spy_editor(("A", "X", "1"))
        with pytest.raises(DuplicateCombinationError, match="already exists"):
            editor.create_manual_combination("A", "X", "1", "12", "13")
        spy.create.assert_not_called()
        assert len(spy.list()) == 1

    @pytest.mark.parametrize(
        ("args", "field"),
        [
            (("", "X", "1", "12", "13"), "project_type"),
            (("A", " ", "1", "12", "13"), "style_preference"),
            (("A", "X", "", "12", "13"), "project_specification"),
            (("A", "X", "2", "", "13"), "price_per_sqft"),
            (("A", "X", "2", "12", None), "furniture_included_price_per_sqft"),
        ],
    )
    def test_missing_field_rejected(self, args: tuple[str, ...], field: str) -> None:
        editor, spy = _spy_editor(("A", "X", "1"))
        with pytest.raises(ValidationError, match="All fields are required") as exc_info:
            editor.create_manual_combination(*args)
        assert exc_info.value.field == field
        spy.create.assert_not_called()

    @pytest.mark.parametrize("price", ["0", "-5", "abc"])
    def test_invalid_price_rejected(self, price: str) -> None:
        editor, spy = _spy_editor(("A", "X", "1"))
        with pytest.raises(ValidationError, match="must be a positive number"):
            editor.create_manual_combination("B", "X", "1", price, "13")
        spy.create.assert_not_called()
