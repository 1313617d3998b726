"""FastAPI application: create_app factory with /api endpoints."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from costmatrix.config import Settings
from costmatrix.exceptions import (
    BatchAbortedError,
    ConflictError,
    CostMatrixError,
    DimensionValueError,
    DuplicateCombinationError,
    NotFoundError,
    ValidationError,
)
from costmatrix.matrix import MatrixEditor
from costmatrix.models.combination import Combination, PriceUpdate
from costmatrix.models.enums import Dimension, SortDirection, SortField
from costmatrix.models.requests import (  # noqa: TCH001 (FastAPI resolves at runtime)
    BatchCreateRequest,
    CombinationCreateRequest,
    DropdownUpdateRequest,
    PendingRequest,
)

if TYPE_CHECKING:
    from costmatrix.data.store import CombinationStore

logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"

# Checked in order; subclasses before their bases.
_ERROR_STATUS: list[tuple[type[CostMatrixError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (DuplicateCombinationError, status.HTTP_409_CONFLICT),
    (DimensionValueError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
]


def _status_for(exc: BaseException | None) -> int:
    if isinstance(exc, BatchAbortedError):
        return _status_for(exc.__cause__)
    for error_type, code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _error_body(exc: CostMatrixError) -> dict[str, Any]:
    body: dict[str, Any] = {"message": getattr(exc, "message", str(exc))}
    if isinstance(exc, ValidationError) and exc.field:
        body["field"] = exc.field
    if isinstance(exc, BatchAbortedError):
        body["completed"] = [
            item.cost_estimation_id if isinstance(item, Combination) else item
            for item in exc.completed
        ]
    return body


def _dump(combination: Combination) -> dict[str, Any]:
    return combination.model_dump(mode="json")


def create_app(
    *,
    store: CombinationStore | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    store
        Optional pre-built combination store for dependency injection
        (e.g. tests). If not provided, one is created from settings on the
        first request.
    settings
        Optional settings; read from the environment when omitted.
    """
    settings = settings or Settings.from_env()
    app = FastAPI(title="Cost Estimation Matrix", version=API_VERSION)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Store on app state so tests can inject their own
    app.state.store = store
    app.state.settings = settings

    def _get_editor() -> MatrixEditor:
        st: CombinationStore | None = app.state.store
        if st is None:
            from costmatrix.factory import create_default_store

            st = create_default_store(settings)
            app.state.store = st
        return MatrixEditor(st)

    # ------------------------------------------------------------------
    # Error handlers: every failure answers {"message": ...}
    # ------------------------------------------------------------------

    @app.exception_handler(CostMatrixError)
    async def costmatrix_error(_request: Request, exc: CostMatrixError) -> JSONResponse:
        code = _status_for(exc)
        if code >= 500:
            logger.error("Store failure: %s", exc, exc_info=exc)
        else:
            logger.info("Rejected request (%d): %s", code, exc)
        return JSONResponse(status_code=code, content=_error_body(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(
        _request: Request, exc: RequestValidationError,
    ) -> JSONResponse:
        errors = exc.errors()
        body: dict[str, Any] = {"message": "Invalid request"}
        if errors:
            first = errors[0]
            loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query")]
            body["message"] = str(first.get("msg", body["message"]))
            if loc:
                body["field"] = ".".join(loc)
        return JSONResponse(status_code=422, content=body)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)})

    @app.exception_handler(Exception)
    async def unexpected_error(_request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error", exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Failed"},
        )

    # ------------------------------------------------------------------
    # GET /api/health
    # ------------------------------------------------------------------

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "version": API_VERSION}

    # ------------------------------------------------------------------
    # /api/cost-estimations
    # ------------------------------------------------------------------

    @app.get("/api/cost-estimations")
    def list_cost_estimations(
        page: int = Query(1, ge=1),
        page_size: int | None = Query(None, alias="pageSize", ge=1),
        sort_field: SortField = Query(SortField.CREATED_AT, alias="sortField"),
        sort_dir: SortDirection = Query(SortDirection.DESC, alias="sortDir"),
        project_type: str | None = None,
        style_preference: str | None = None,
        project_specification: str | None = None,
    ) -> dict[str, Any]:
        size = min(page_size or settings.default_page_size, settings.max_page_size)
        where = {
            dimension: value
            for dimension, value in (
                (Dimension.PROJECT_TYPE, project_type),
                (Dimension.STYLE_PREFERENCE, style_preference),
                (Dimension.SPECIFICATION, project_specification),
            )
            if value is not None
        }
        st = _get_editor().store
        rows = st.list(
            where,
            sort_field=sort_field,
            descending=sort_dir is SortDirection.DESC,
            offset=(page - 1) * size,
            limit=size,
        )
        return {"message": "Success", "data": [_dump(r) for r in rows], "count": st.count(where)}

    @app.post("/api/cost-estimations", status_code=status.HTTP_201_CREATED)
    def create_cost_estimation(body: CombinationCreateRequest) -> dict[str, Any]:
        created = _get_editor().create_manual_combination(
            body.project_type,
            body.style_preference,
            body.project_specification,
            body.price_per_sqft,
            body.furniture_included_price_per_sqft,
        )
        return {"message": "Created", "data": _dump(created)}

    @app.post("/api/cost-estimations/batch", status_code=status.HTTP_201_CREATED)
    def create_cost_estimations(body: BatchCreateRequest) -> dict[str, Any]:
        created = _get_editor().submit_pending(body.data)
        return {
            "message": "Created",
            "data": [_dump(r) for r in created],
            "count": len(created),
        }

    # ------------------------------------------------------------------
    # Dropdown (dimension value) management
    # ------------------------------------------------------------------

    @app.get("/api/cost-estimations/dropdowns")
    def get_dropdowns() -> dict[str, Any]:
        matrix = _get_editor().snapshot()
        return {
            "message": "Success",
            "data": {
                **matrix.dropdowns(),
                "missing": [p.model_dump() for p in matrix.missing_cells()],
            },
        }

    @app.post("/api/cost-estimations/dropdowns/pending")
    def pending_combinations(body: PendingRequest) -> dict[str, Any]:
        pending = _get_editor().add_dimension_value(body.type, body.value)
        return {
            "message": "Success",
            "data": [p.model_dump() for p in pending],
            "count": len(pending),
        }

    @app.post("/api/cost-estimations/update-dropdown")
    def update_dropdown(body: DropdownUpdateRequest) -> dict[str, Any]:
        if not body.old_value or not body.new_value:
            raise ValidationError("type, oldValue and newValue are required")
        updated = _get_editor().rename_dimension_value(
            body.type, body.old_value, body.new_value,
        )
        return {"message": "Updated", "data": {"updated": updated}}

    @app.delete("/api/cost-estimations/dropdowns")
    def delete_dropdown_value(
        dimension: str = Query(..., alias="type"),
        value: str = Query(...),
    ) -> dict[str, Any]:
        try:
            parsed = Dimension.parse(dimension)
        except ValueError as exc:
            raise ValidationError(str(exc), field="type") from exc
        deleted = _get_editor().delete_dimension_value(parsed, value)
        return {"message": "Deleted", "data": {"deleted": deleted}}

    # ------------------------------------------------------------------
    # /api/cost-estimations/{id}
    # ------------------------------------------------------------------

    @app.get("/api/cost-estimations/{cost_estimation_id}")
    def get_cost_estimation(cost_estimation_id: str) -> dict[str, Any]:
        row = _get_editor().store.get(cost_estimation_id)
        return {"message": "Success", "data": _dump(row)}

    @app.patch("/api/cost-estimations/{cost_estimation_id}")
    def update_cost_estimation(cost_estimation_id: str, body: PriceUpdate) -> dict[str, Any]:
        row = _get_editor().store.update(cost_estimation_id, body)
        return {"message": "Updated", "data": _dump(row)}

    @app.delete("/api/cost-estimations/{cost_estimation_id}")
    def delete_cost_estimation(cost_estimation_id: str) -> dict[str, Any]:
        _get_editor().store.delete(cost_estimation_id)
        return {"message": "Deleted", "data": {"cost_estimation_id": cost_estimation_id}}

    return app
