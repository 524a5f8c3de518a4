"""Thin PostgREST client for the hosted warehouse backend."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Sequence

import requests

from shipdesk.errors import (
    BackendError,
    BackendTimeout,
    BackendUnavailable,
    RecordNotFound,
)


logger = logging.getLogger(__name__)

# (column, operator, value); operators follow PostgREST: eq, neq, gt, gte,
# lt, lte, in, is, ilike.
Filter = tuple[str, str, Any]
Filters = Mapping[str, Any] | Sequence[Filter] | None


def _format_scalar(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _format_in_value(value: Any) -> str:
    text = _format_scalar(value)
    if any(ch in text for ch in ',()"'):
        escaped = text.replace('"', '\\"')
        return f'"{escaped}"'
    return text


def normalize_filters(filters: Filters) -> list[Filter]:
    if not filters:
        return []
    if isinstance(filters, Mapping):
        return [(column, "eq", value) for column, value in filters.items()]
    return [tuple(item) for item in filters]


def encode_filters(filters: Filters) -> list[tuple[str, str]]:
    """Translate filter triples into PostgREST query parameters."""

    params: list[tuple[str, str]] = []
    for column, operator, value in normalize_filters(filters):
        if operator == "in":
            joined = ",".join(_format_in_value(item) for item in value)
            params.append((column, f"in.({joined})"))
        elif operator == "is":
            params.append((column, f"is.{_format_scalar(value)}"))
        elif operator == "ilike":
            params.append((column, f"ilike.*{value}*"))
        else:
            params.append((column, f"{operator}.{_format_scalar(value)}"))
    return params


class BackendClient:
    """Send table and RPC requests to a PostgREST endpoint.

    Every request carries a client-side timeout. Transport failures are
    re-raised as :class:`BackendTimeout` or :class:`BackendUnavailable`, and
    error responses as :class:`BackendError` carrying the backend's
    ``message``, ``code`` and ``details``.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        *,
        timeout: float = 15.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = api_key or ""
        self.timeout = timeout
        self.session = session or requests.Session()

    def init_app(self, app) -> None:
        self.base_url = (app.config.get("SUPABASE_URL") or "").rstrip("/")
        self.api_key = app.config.get("SUPABASE_KEY") or ""
        self.timeout = float(app.config.get("BACKEND_TIMEOUT", self.timeout))
        app.extensions["shipdesk_backend"] = self

    def _headers(self, extra: Mapping[str, str] | None = None) -> dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Iterable[tuple[str, str]] | None = None,
        json: Any = None,
        prefer: str | None = None,
        timeout: float | None = None,
    ) -> Any:
        url = f"{self.base_url}/rest/v1/{path}"
        extra = {"Prefer": prefer} if prefer else None
        effective_timeout = timeout if timeout is not None else self.timeout
        try:
            response = self.session.request(
                method,
                url,
                params=list(params or []),
                json=json,
                headers=self._headers(extra),
                timeout=effective_timeout,
            )
        except requests.Timeout as exc:
            logger.warning("%s %s timed out after %ss", method, path, effective_timeout)
            raise BackendTimeout(
                f"Request timed out after {effective_timeout:g} seconds",
                code="TIMEOUT",
            ) from exc
        except requests.ConnectionError as exc:
            logger.warning("%s %s failed to connect: %s", method, path, exc)
            raise BackendUnavailable(
                "Unable to reach the warehouse backend", code="UNAVAILABLE", details=str(exc)
            ) from exc
        except requests.RequestException as exc:
            raise BackendError(str(exc), code="REQUEST_FAILED") from exc

        if response.status_code >= 400:
            raise self._error_from_response(response)

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise BackendError(
                "Backend returned a non-JSON response",
                code="BAD_RESPONSE",
                status_code=response.status_code,
            ) from exc

    @staticmethod
    def _error_from_response(response: requests.Response) -> BackendError:
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}
        message = payload.get("message") or response.reason or "Backend request failed"
        return BackendError(
            message,
            code=payload.get("code"),
            details=payload.get("details") or payload.get("hint"),
            status_code=response.status_code,
        )

    def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Filters = None,
        order: str | Sequence[str] | None = None,
        limit: int | None = None,
        single: bool = False,
        maybe_single: bool = False,
        timeout: float | None = None,
    ) -> Any:
        """Fetch rows from ``table``.

        ``order`` takes ``"column"`` or ``"column.desc"`` (or a list of
        them). With ``single`` exactly one row must match; with
        ``maybe_single`` the result is that row or ``None``.
        """

        params = [("select", columns)]
        params.extend(encode_filters(filters))
        if order:
            orders = [order] if isinstance(order, str) else list(order)
            params.append(("order", ",".join(orders)))
        if single or maybe_single:
            params.append(("limit", "2"))
        elif limit is not None:
            params.append(("limit", str(int(limit))))

        rows = self._request("GET", table, params=params, timeout=timeout) or []
        if not (single or maybe_single):
            return rows
        if len(rows) > 1:
            raise BackendError(
                f"Expected a single {table} row, got several", code="PGRST116"
            )
        if not rows:
            if single:
                raise RecordNotFound(f"No {table} row matched", code="PGRST116")
            return None
        return rows[0]

    def insert(
        self,
        table: str,
        rows: Mapping[str, Any] | Sequence[Mapping[str, Any]],
        *,
        timeout: float | None = None,
    ) -> list[dict[str, Any]]:
        payload = [dict(rows)] if isinstance(rows, Mapping) else [dict(row) for row in rows]
        return self._request(
            "POST",
            table,
            json=payload,
            prefer="return=representation",
            timeout=timeout,
        ) or []

    def update(
        self,
        table: str,
        values: Mapping[str, Any],
        *,
        filters: Filters,
        timeout: float | None = None,
    ) -> list[dict[str, Any]]:
        if not filters:
            raise ValueError("update requires at least one filter")
        return self._request(
            "PATCH",
            table,
            params=encode_filters(filters),
            json=dict(values),
            prefer="return=representation",
            timeout=timeout,
        ) or []

    def delete(
        self,
        table: str,
        *,
        filters: Filters,
        timeout: float | None = None,
    ) -> list[dict[str, Any]]:
        if not filters:
            raise ValueError("delete requires at least one filter")
        return self._request(
            "DELETE",
            table,
            params=encode_filters(filters),
            prefer="return=representation",
            timeout=timeout,
        ) or []

    def rpc(
        self,
        name: str,
        params: Mapping[str, Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> Any:
        return self._request(
            "POST", f"rpc/{name}", json=dict(params or {}), timeout=timeout
        )
