"""SQLAlchemy-backed combination store for Postgres (or SQLite).

The ``cost_estimations`` table carries a unique constraint on the
(project type, style preference, specification) triple, so duplicate
rows are rejected by the database even when two operators race past the
editor's own checks.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    delete,
    func,
    select,
    update,
)
from sqlalchemy.exc import DataError, IntegrityError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from costmatrix.data.store import DUPLICATE_COMBINATION_MESSAGE, check_prices
from costmatrix.exceptions import (
    ConflictError,
    CostMatrixError,
    NotFoundError,
    ValidationError,
)
from costmatrix.models.combination import Combination
from costmatrix.models.enums import SortField

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy import Engine, Select

    from costmatrix.models.combination import CombinationDraft, PriceUpdate
    from costmatrix.models.enums import Dimension

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all models."""


class CostEstimationRow(Base):
    """One priced combination."""

    __tablename__ = "cost_estimations"
    __table_args__ = (
        UniqueConstraint(
            "project_type",
            "style_preference",
            "project_specification",
            name="uq_cost_estimations_combination",
        ),
        CheckConstraint("price_per_sqft > 0", name="ck_cost_estimations_price_positive"),
        CheckConstraint(
            "furniture_included_price_per_sqft > 0",
            name="ck_cost_estimations_furniture_price_positive",
        ),
    )

    cost_estimation_id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=_new_id,
    )
    project_type: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    style_preference: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    project_specification: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    price_per_sqft: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    furniture_included_price_per_sqft: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )


class SqlCombinationStore:
    """Combination store over a relational ``cost_estimations`` table.

    Every method runs in its own short session. ``update_where`` is a
    single UPDATE statement, so a rename is all-or-nothing.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._session_factory = sessionmaker(engine, expire_on_commit=False)

    @classmethod
    def from_url(
        cls, url: str, *, echo: bool = False, create_schema: bool = True,
    ) -> SqlCombinationStore:
        """Create a store from a database URL.

        In-memory SQLite databases share one connection across threads;
        any other backend gets a pre-pinged, recycled pool.
        """
        engine_kwargs: dict[str, Any] = {"echo": echo}
        if url.startswith("sqlite"):
            if ":memory:" in url or url.rstrip("/").endswith("://"):
                engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        else:
            engine_kwargs["pool_pre_ping"] = True
            engine_kwargs["pool_recycle"] = 3600

        store = cls(create_engine(url, **engine_kwargs))
        if create_schema:
            store.create_schema()
        return store

    def create_schema(self) -> None:
        Base.metadata.create_all(self._engine)

    def list(
        self,
        where: Mapping[Dimension, str] | None = None,
        *,
        sort_field: SortField = SortField.CREATED_AT,
        descending: bool = False,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Combination]:
        column = getattr(CostEstimationRow, sort_field.value)
        order = [column]
        if sort_field is not SortField.CREATED_AT:
            order.append(CostEstimationRow.created_at)
        stmt = _filtered(select(CostEstimationRow), where).order_by(
            *(c.desc() if descending else c.asc() for c in order),
        )
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._session_factory() as session:
            return [_to_combination(row) for row in session.scalars(stmt)]

    def count(self, where: Mapping[Dimension, str] | None = None) -> int:
        stmt = _filtered(
            select(func.count()).select_from(CostEstimationRow), where,
        )
        with self._session_factory() as session:
            return int(session.scalar(stmt) or 0)

    def get(self, combination_id: str) -> Combination:
        with self._session_factory() as session:
            row = session.get(CostEstimationRow, combination_id)
            if row is None:
                raise NotFoundError(_not_found(combination_id))
            return _to_combination(row)

    def create(self, draft: CombinationDraft) -> Combination:
        fields = draft.model_dump()
        check_prices(fields)
        row = CostEstimationRow(**fields)
        with self._session_factory() as session:
            session.add(row)
            try:
                session.commit()
            except (IntegrityError, DataError) as exc:
                session.rollback()
                logger.info("Rejected combination %s: %s", draft.key.as_tuple(), exc.orig)
                raise _write_error(exc) from exc
            return _to_combination(row)

    def update(self, combination_id: str, changes: PriceUpdate) -> Combination:
        fields = changes.changes()
        check_prices(fields)
        with self._session_factory() as session:
            row = session.get(CostEstimationRow, combination_id)
            if row is None:
                raise NotFoundError(_not_found(combination_id))
            for name, value in fields.items():
                setattr(row, name, value)
            try:
                session.commit()
            except (IntegrityError, DataError) as exc:
                session.rollback()
                raise _write_error(exc) from exc
            return _to_combination(row)

    def update_where(
        self, dimension: Dimension, old_value: str, new_value: str,
    ) -> int:
        column = getattr(CostEstimationRow, dimension.value)
        stmt = (
            update(CostEstimationRow)
            .where(column == old_value)
            .values({dimension.value: new_value})
        )
        with self._session_factory() as session:
            try:
                result = session.execute(stmt)
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise _write_error(exc) from exc
            return int(result.rowcount or 0)  # type: ignore[attr-defined]

    def delete(self, combination_id: str) -> None:
        stmt = delete(CostEstimationRow).where(
            CostEstimationRow.cost_estimation_id == combination_id,
        )
        with self._session_factory() as session:
            result = session.execute(stmt)
            if not result.rowcount:  # type: ignore[attr-defined]
                session.rollback()
                raise NotFoundError(_not_found(combination_id))
            session.commit()


def _filtered(stmt: Select[Any], where: Mapping[Dimension, str] | None) -> Select[Any]:
    for dimension, value in (where or {}).items():
        stmt = stmt.where(getattr(CostEstimationRow, dimension.value) == value)
    return stmt


def _write_error(exc: IntegrityError | DataError) -> CostMatrixError:
    """Translate a rejected write into the matching costmatrix error.

    Only the unique triple constraint means a duplicate; CHECK violations
    and out-of-range values are invalid prices.
    """
    # SQLite: "UNIQUE constraint failed", Postgres: "violates unique constraint".
    if isinstance(exc, IntegrityError) and "unique" in str(exc.orig).lower():
        return ConflictError(DUPLICATE_COMBINATION_MESSAGE)
    return ValidationError("Prices must be positive numbers the price columns can hold")


def _to_combination(row: CostEstimationRow) -> Combination:
    return Combination.model_validate(row, from_attributes=True)


def _not_found(combination_id: str) -> str:
    return f"Cost estimation '{combination_id}' not found"
