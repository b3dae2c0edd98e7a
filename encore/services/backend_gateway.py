from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Mapping

import httpx
from pydantic import BaseModel, ValidationError

from encore.config import BackendConfig
from encore.schemas.records import ROW_SCHEMAS, User
from encore.services.errors import (
    AuthFailure,
    DecodeFailure,
    RequestRejected,
    StaleSessionError,
    TransportFailure,
)


LOGGER = logging.getLogger("encore.gateway")

Row = dict[str, Any]
Filters = Mapping[str, str] | str | None

_MESSAGE_KEYS = ("error_description", "msg", "message", "error")


class SessionContext:
    """The one signed-in identity and bearer token the gateway sends.

    ``generation`` moves on every ``create``/``destroy`` so a request can tell
    whether the session it started under is still the current one.
    """

    def __init__(self):
        self.token: str | None = None
        self.user: User | None = None
        self.generation = 0
        self._destroy_listeners: list[Callable[[], None]] = []

    @property
    def is_active(self) -> bool:
        return self.token is not None

    def create(self, token: str, user: User) -> None:
        self.token = token
        self.user = user
        self.generation += 1

    def destroy(self) -> None:
        self.token = None
        self.user = None
        self.generation += 1
        for listener in list(self._destroy_listeners):
            listener()

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    def on_destroy(self, listener: Callable[[], None]) -> None:
        self._destroy_listeners.append(listener)


def _extract_message(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    for key in _MESSAGE_KEYS:
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


class BackendGateway:
    def __init__(
        self,
        config: BackendConfig,
        session: SessionContext | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self.session = session or SessionContext()
        self._client = httpx.AsyncClient(base_url=config.api_url, transport=transport)
        self._inflight: set[asyncio.Task] = set()
        self.session.on_destroy(self.cancel_inflight)

    async def __aenter__(self) -> "BackendGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def cancel_inflight(self) -> int:
        current = asyncio.current_task() if _has_running_loop() else None
        cancelled = 0
        for task in list(self._inflight):
            if task is current or task.done():
                continue
            task.cancel()
            cancelled += 1
        if cancelled:
            LOGGER.info("Cancelled in-flight requests count=%s", cancelled)
        return cancelled

    def _headers(self, prefer_representation: bool = False) -> dict[str, str]:
        headers = {
            "apikey": self.config.anon_key,
            "Content-Type": "application/json",
        }
        if prefer_representation:
            headers["Prefer"] = "return=representation"
        if self.session.token:
            headers["Authorization"] = f"Bearer {self.session.token}"
        return headers

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: Filters = None,
        json_body: Any = None,
        prefer_representation: bool = False,
    ) -> httpx.Response:
        generation = self.session.generation
        LOGGER.debug("Backend request method=%s path=%s", method, path)
        request = asyncio.ensure_future(
            self._client.request(
                method,
                path,
                params=params,
                json=json_body,
                headers=self._headers(prefer_representation),
            )
        )
        self._inflight.add(request)
        try:
            response = await request
        except asyncio.CancelledError:
            # only the request was cancelled; the caller keeps running
            if request.cancelled() and not self.session.is_current(generation):
                LOGGER.info("Dropped request cancelled by session change method=%s path=%s", method, path)
                raise StaleSessionError() from None
            raise
        except httpx.RequestError as exc:
            if not self.session.is_current(generation):
                LOGGER.info("Dropped failed request after session change method=%s path=%s", method, path)
                raise StaleSessionError() from exc
            LOGGER.warning("Backend request failed method=%s path=%s error=%s", method, path, exc)
            raise TransportFailure(str(exc) or exc.__class__.__name__) from exc
        finally:
            self._inflight.discard(request)
        if not self.session.is_current(generation):
            LOGGER.info("Discarded stale response method=%s path=%s", method, path)
            raise StaleSessionError(status_code=response.status_code)
        return response

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise DecodeFailure("Backend returned invalid JSON", status_code=response.status_code) from exc

    def _raise_for_status(self, response: httpx.Response, *, auth: bool = False) -> None:
        if response.status_code < 400:
            return
        try:
            payload = response.json()
        except ValueError:
            payload = None
        detail = _extract_message(payload)
        LOGGER.info("Backend rejected request status=%s path=%s", response.status_code, response.request.url.path)
        if auth or response.status_code in (401, 403):
            raise AuthFailure(detail, status_code=response.status_code)
        raise RequestRejected(detail, status_code=response.status_code)

    async def post_auth(self, path: str, body: BaseModel | Row, params: Filters = None) -> Row:
        payload = body.model_dump(mode="json") if isinstance(body, BaseModel) else dict(body)
        response = await self._send("POST", f"/auth/v1/{path.lstrip('/')}", params=params, json_body=payload)
        self._raise_for_status(response, auth=True)
        decoded = self._decode(response)
        if not isinstance(decoded, dict):
            raise DecodeFailure("Auth response is not an object", status_code=response.status_code)
        return decoded

    async def fetch(self, table: str, filters: Filters = None) -> list[Row]:
        response = await self._send("GET", f"/rest/v1/{table}", params=filters or None)
        self._raise_for_status(response)
        rows = self._decode(response)
        if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
            raise DecodeFailure(f"Expected a list of {table} rows", status_code=response.status_code)
        return rows

    async def insert(self, table: str, row: BaseModel | Row) -> Row:
        payload = row.model_dump(mode="json") if isinstance(row, BaseModel) else dict(row)
        response = await self._send("POST", f"/rest/v1/{table}", json_body=payload, prefer_representation=True)
        self._raise_for_status(response)
        return self._single_row(table, self._decode(response), response.status_code)

    async def update(self, table: str, row_id: str, partial_row: Row) -> Row:
        rows = await self.update_where(table, {"id": f"eq.{row_id}"}, partial_row)
        return self._single_row(table, rows, 200)

    async def update_where(self, table: str, filters: Mapping[str, str], partial_row: Row) -> list[Row]:
        """PATCH every row matching ``filters``; an empty list means nothing matched."""
        response = await self._send(
            "PATCH",
            f"/rest/v1/{table}",
            params=dict(filters),
            json_body=dict(partial_row),
            prefer_representation=True,
        )
        self._raise_for_status(response)
        rows = self._decode(response)
        if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
            raise DecodeFailure(f"Expected a list of {table} rows", status_code=response.status_code)
        return rows

    @staticmethod
    def _single_row(table: str, payload: Any, status_code: int) -> Row:
        if isinstance(payload, list):
            if not payload:
                raise RequestRejected(f"No {table} row matched", status_code=404)
            if len(payload) != 1 or not isinstance(payload[0], dict):
                raise DecodeFailure(f"Expected exactly one {table} row, got {len(payload)}", status_code=status_code)
            return payload[0]
        if isinstance(payload, dict):
            return payload
        raise DecodeFailure(f"Unexpected {table} representation", status_code=status_code)

    async def fetch_records(self, table: str, filters: Filters = None) -> list:
        rows = await self.fetch(table, filters)
        return [_validate_row(table, row) for row in rows]

    async def insert_record(self, table: str, row: BaseModel | Row):
        return _validate_row(table, await self.insert(table, row))

    async def update_record(self, table: str, row_id: str, partial_row: Row):
        return _validate_row(table, await self.update(table, row_id, partial_row))

    async def update_records(self, table: str, filters: Mapping[str, str], partial_row: Row) -> list:
        rows = await self.update_where(table, filters, partial_row)
        return [_validate_row(table, row) for row in rows]


def _validate_row(table: str, row: Row):
    schema = ROW_SCHEMAS.get(table)
    if schema is None:
        raise ValueError(f"No record schema for table: {table}")
    try:
        return schema.model_validate(row)
    except ValidationError as exc:
        raise DecodeFailure(f"Invalid {table} row: {exc.error_count()} validation error(s)") from exc


def _has_running_loop() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True
