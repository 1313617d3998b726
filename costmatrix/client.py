"""HTTP client for the cost-estimation API.

``CostEstimationClient`` satisfies the combination store interface over
HTTP, so a ``MatrixEditor`` can run on the operator's side against a
remote service: validation happens locally, and only well-formed edits
reach the network.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from costmatrix.exceptions import (
    ConflictError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from costmatrix.models.combination import Combination
from costmatrix.models.enums import SortField

if TYPE_CHECKING:
    from collections.abc import Mapping

    from costmatrix.models.combination import CombinationDraft, PriceUpdate
    from costmatrix.models.enums import Dimension

logger = logging.getLogger(__name__)

_BASE_PATH = "/api/cost-estimations"
_FALLBACK_MESSAGE = "Request failed"

# Aliases the update-dropdown endpoint expects.
_DROPDOWN_TYPES: dict[str, str] = {
    "project_type": "projectType",
    "style_preference": "stylePreference",
    "project_specification": "specification",
}


class CostEstimationClient:
    """Combination store backed by the cost-estimation HTTP API.

    Args:
        http: A configured ``httpx.Client`` (base URL, auth headers,
            timeouts). ``fastapi.testclient.TestClient`` works too.
        page_size: Rows requested per page when listing.
    """

    def __init__(self, http: httpx.Client, *, page_size: int = 100) -> None:
        self._http = http
        self._page_size = page_size

    @classmethod
    def from_url(
        cls, base_url: str, *, timeout: float = 10.0, headers: Mapping[str, str] | None = None,
    ) -> CostEstimationClient:
        return cls(httpx.Client(base_url=base_url, timeout=timeout, headers=headers))

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> CostEstimationClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Store interface
    # ------------------------------------------------------------------

    def list(
        self,
        where: Mapping[Dimension, str] | None = None,
        *,
        sort_field: SortField = SortField.CREATED_AT,
        descending: bool = False,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Combination]:
        """Fetch combinations page by page, then apply offset and limit."""
        rows: list[Combination] = []
        end = None if limit is None else offset + limit
        page = 1
        while True:
            payload = self._request(
                "GET",
                _BASE_PATH,
                params={
                    **_where_params(where),
                    "page": page,
                    "pageSize": self._page_size,
                    "sortField": sort_field.value,
                    "sortDir": "desc" if descending else "asc",
                },
            )
            batch = [Combination.model_validate(item) for item in payload.get("data", [])]
            rows.extend(batch)
            total = int(payload.get("count", 0))
            if not batch or len(rows) >= total:
                break
            if end is not None and len(rows) >= end:
                break
            page += 1
        return rows[offset:end]

    def count(self, where: Mapping[Dimension, str] | None = None) -> int:
        payload = self._request(
            "GET", _BASE_PATH, params={**_where_params(where), "page": 1, "pageSize": 1},
        )
        return int(payload.get("count", 0))

    def get(self, combination_id: str) -> Combination:
        payload = self._request("GET", f"{_BASE_PATH}/{combination_id}")
        return Combination.model_validate(payload["data"])

    def create(self, draft: CombinationDraft) -> Combination:
        payload = self._request("POST", _BASE_PATH, json=draft.model_dump(mode="json"))
        return Combination.model_validate(payload["data"])

    def update(self, combination_id: str, changes: PriceUpdate) -> Combination:
        payload = self._request(
            "PATCH",
            f"{_BASE_PATH}/{combination_id}",
            json=changes.model_dump(mode="json", exclude_none=True),
        )
        return Combination.model_validate(payload["data"])

    def update_where(
        self, dimension: Dimension, old_value: str, new_value: str,
    ) -> int:
        payload = self._request(
            "POST",
            f"{_BASE_PATH}/update-dropdown",
            json={
                "type": _DROPDOWN_TYPES[dimension.value],
                "oldValue": old_value,
                "newValue": new_value,
            },
        )
        return int(payload.get("data", {}).get("updated", 0))

    def delete(self, combination_id: str) -> None:
        self._request("DELETE", f"{_BASE_PATH}/{combination_id}")

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = self._http.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise TransportError(str(exc) or _FALLBACK_MESSAGE) from exc

        if response.is_success:
            body: dict[str, Any] = response.json()
            return body

        message = _error_message(response)
        logger.info("%s %s -> %d: %s", method, url, response.status_code, message)
        if response.status_code == 404:
            raise NotFoundError(message)
        if response.status_code == 409:
            raise ConflictError(message)
        if response.status_code in (400, 422):
            raise ValidationError(message, field=_error_field(response))
        raise TransportError(message, status_code=response.status_code)


def _where_params(where: Mapping[Dimension, str] | None) -> dict[str, str]:
    return {dimension.value: value for dimension, value in (where or {}).items()}


def _error_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _error_message(response: httpx.Response) -> str:
    message = _error_body(response).get("message")
    return str(message) if message else _FALLBACK_MESSAGE


def _error_field(response: httpx.Response) -> str | None:
    field = _error_body(response).get("field")
    return str(field) if field else None
