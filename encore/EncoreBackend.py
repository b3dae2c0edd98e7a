"""Local stand-in for the hosted auth + REST backend the Encore client talks to.

Implements only the slice of the contract the client uses: password sign-up
and sign-in under ``/auth/v1`` and filtered table access under ``/rest/v1``.
"""

import logging
import os
import threading
from typing import Any

from fastapi import Body, Depends, FastAPI, Header, Query, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from encore.db.base import Base
from encore.db.deps import get_backend_db
from encore.db.session import EMULATOR_SETTINGS, SessionLocalBackend, engine_backend
from encore.models.backend_models import InstrumentRow, RentalRow
from encore.schemas.auth import PasswordGrantRequest, SignUpRequest, VerifyRequest
from encore.services.backend_auth_service import (
    BackendAuthError,
    auth_user_payload,
    authenticate,
    confirm_user,
    create_access_token,
    get_token_user_id,
    register_user,
    revoke_all_tokens,
    SESSION_TTL_SECONDS,
)
from encore.services.sample_data import SAMPLE_INSTRUMENTS
from encore.services.table_service import (
    TableRequestError,
    get_table_model,
    insert_row,
    select_rows,
    serialize_row,
    update_row,
)


BACKEND_LOGGER = logging.getLogger("encore.backend")
PUBLIC_TABLES = {"instruments", "reviews"}
# writes run one at a time so filtered PATCHes act as compare-and-set
_WRITE_LOCK = threading.Lock()

app = FastAPI(title="Encore Backend Emulator")
app.state.anon_key = EMULATOR_SETTINGS.anon_key
app.state.require_confirmation = EMULATOR_SETTINGS.require_confirmation


class BackendHTTPError(Exception):
    def __init__(self, status_code: int, body: dict[str, Any]):
        super().__init__(body)
        self.status_code = status_code
        self.body = body


@app.exception_handler(BackendHTTPError)
async def _backend_error_handler(request: Request, exc: BackendHTTPError):
    return JSONResponse(status_code=exc.status_code, content=exc.body)


def _auth_error(status_code: int, error: str, description: str) -> BackendHTTPError:
    return BackendHTTPError(status_code, {"error": error, "error_description": description})


def _rest_error(status_code: int, message: str) -> BackendHTTPError:
    return BackendHTTPError(status_code, {"message": message})


def require_api_key(apikey: str | None = Header(None)) -> None:
    if not apikey or apikey != app.state.anon_key:
        raise _rest_error(401, "Invalid API key")


def current_user_id(authorization: str | None = Header(None)) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    user_id = get_token_user_id(token.strip()) if scheme.lower() == "bearer" else None
    if user_id is None:
        raise _rest_error(401, "Invalid or expired token")
    return user_id


def reset_backend(seed: bool = True) -> None:
    Base.metadata.drop_all(engine_backend)
    Base.metadata.create_all(engine_backend)
    revoke_all_tokens()
    if seed:
        seed_sample_catalog()


def seed_sample_catalog() -> int:
    db = SessionLocalBackend()
    try:
        if db.execute(select(func.count()).select_from(InstrumentRow)).scalar():
            return 0
        for instrument in SAMPLE_INSTRUMENTS:
            insert_row(db, "instruments", instrument.model_dump(mode="json"))
        db.commit()
        BACKEND_LOGGER.info("Seeded sample catalog count=%s", len(SAMPLE_INSTRUMENTS))
        return len(SAMPLE_INSTRUMENTS)
    finally:
        db.close()


Base.metadata.create_all(engine_backend)
if EMULATOR_SETTINGS.seed_sample_data:
    seed_sample_catalog()


@app.get("/healthz")
def healthcheck():
    return {"status": "ok"}


# ---------- Auth ----------


def _session_payload(token: str) -> dict[str, Any]:
    return {"access_token": token, "token_type": "bearer", "expires_in": SESSION_TTL_SECONDS}


@app.post("/auth/v1/signup", dependencies=[Depends(require_api_key)])
def auth_signup(payload: dict, db: Session = Depends(get_backend_db)):
    try:
        parsed = SignUpRequest.model_validate(payload)
    except ValidationError:
        raise _auth_error(400, "validation_failed", "Invalid sign-up request")
    try:
        user = register_user(db, parsed, require_confirmation=app.state.require_confirmation)
    except BackendAuthError as exc:
        BACKEND_LOGGER.warning("Sign-up rejected email=%s reason=%s", parsed.email, exc.error)
        raise _auth_error(422 if exc.error == "user_already_exists" else 400, exc.error, exc.description)

    if not user.confirmed:
        BACKEND_LOGGER.info("Sign-up pending confirmation user_id=%s", user.id)
        return auth_user_payload(user)

    token = create_access_token(user.id)
    BACKEND_LOGGER.info("Sign-up success user_id=%s", user.id)
    return {"session": _session_payload(token), "user": auth_user_payload(user)}


@app.post("/auth/v1/token", dependencies=[Depends(require_api_key)])
def auth_token(payload: dict, grant_type: str = Query(""), db: Session = Depends(get_backend_db)):
    if grant_type != "password":
        raise _auth_error(400, "unsupported_grant_type", f"Unsupported grant type: {grant_type or 'none'}")
    try:
        parsed = PasswordGrantRequest.model_validate(payload)
    except ValidationError:
        raise _auth_error(400, "invalid_request", "Email and password are required")
    try:
        user = authenticate(db, parsed.email, parsed.password)
    except BackendAuthError as exc:
        BACKEND_LOGGER.warning("Sign-in failed email=%s reason=%s", parsed.email, exc.description)
        raise _auth_error(400, exc.error, exc.description)

    token = create_access_token(user.id)
    BACKEND_LOGGER.info("Sign-in success user_id=%s", user.id)
    return {**_session_payload(token), "user": auth_user_payload(user)}


@app.post("/auth/v1/verify", dependencies=[Depends(require_api_key)])
def auth_verify(payload: dict, db: Session = Depends(get_backend_db)):
    try:
        parsed = VerifyRequest.model_validate(payload)
        user = confirm_user(db, parsed.email)
    except ValidationError:
        raise _auth_error(400, "invalid_request", "Email is required")
    except BackendAuthError as exc:
        raise _auth_error(404, exc.error, exc.description)
    return auth_user_payload(user)


# ---------- REST tables ----------


def _visibility_clauses(table: str, user_id: str | None) -> list:
    if table == "rentals":
        return [or_(RentalRow.renter_id == user_id, RentalRow.host_id == user_id)]
    return []


def _check_write(table: str, user_id: str, values: dict[str, Any]) -> None:
    if table == "instruments" and values.get("host_id") != user_id:
        raise _rest_error(403, "Listings can only be changed by their host")
    if table == "users" and values.get("id") != user_id:
        raise _rest_error(403, "Profiles can only be changed by their owner")
    if table == "rentals" and user_id not in (values.get("renter_id"), values.get("host_id")):
        raise _rest_error(403, "Rentals can only be changed by their renter or host")


def _require_user(user_id: str | None) -> str:
    if user_id is None:
        raise _rest_error(401, "Authentication required")
    return user_id


def _table_call(fn, *args):
    try:
        return fn(*args)
    except TableRequestError as exc:
        raise _rest_error(exc.status_code, exc.message)


@app.get("/rest/v1/{table}", dependencies=[Depends(require_api_key)])
def rest_select(
    table: str,
    request: Request,
    user_id: str | None = Depends(current_user_id),
    db: Session = Depends(get_backend_db),
):
    _table_call(get_table_model, table)
    if table not in PUBLIC_TABLES:
        _require_user(user_id)
    params = list(request.query_params.multi_items())
    rows = _table_call(select_rows, db, table, params, _visibility_clauses(table, user_id))
    return [serialize_row(table, row) for row in rows]


@app.post("/rest/v1/{table}", dependencies=[Depends(require_api_key)])
def rest_insert(
    table: str,
    payload: Any = Body(...),
    prefer: str | None = Header(None),
    user_id: str | None = Depends(current_user_id),
    db: Session = Depends(get_backend_db),
):
    user_id = _require_user(user_id)
    _table_call(get_table_model, table)
    bodies = payload if isinstance(payload, list) else [payload]
    if not bodies or not all(isinstance(body, dict) for body in bodies):
        raise _rest_error(400, "Request body must be an object or a list of objects")
    created = []
    with _WRITE_LOCK:
        for body in bodies:
            row = _table_call(insert_row, db, table, body)
            _check_write(table, user_id, serialize_row(table, row))
            created.append(row)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise _rest_error(409, f"Row conflicts with an existing {table} row")
    BACKEND_LOGGER.info("Inserted rows table=%s count=%s user_id=%s", table, len(created), user_id)
    if prefer and "return=representation" in prefer:
        return JSONResponse(status_code=201, content=[serialize_row(table, row) for row in created])
    return Response(status_code=201)


@app.patch("/rest/v1/{table}", dependencies=[Depends(require_api_key)])
def rest_update(
    table: str,
    payload: dict,
    request: Request,
    prefer: str | None = Header(None),
    user_id: str | None = Depends(current_user_id),
    db: Session = Depends(get_backend_db),
):
    user_id = _require_user(user_id)
    params = list(request.query_params.multi_items())
    if not [name for name, _ in params if name not in ("select", "order", "limit", "offset")]:
        raise _rest_error(400, "UPDATE requires a filter")
    with _WRITE_LOCK:
        rows = _table_call(select_rows, db, table, params, _visibility_clauses(table, user_id))
        for row in rows:
            _check_write(table, user_id, serialize_row(table, row))
            _table_call(update_row, db, table, row, payload)
        db.commit()
    BACKEND_LOGGER.info("Updated rows table=%s count=%s user_id=%s", table, len(rows), user_id)
    if prefer and "return=representation" in prefer:
        return [serialize_row(table, row) for row in rows]
    return Response(status_code=204)


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 54321))
    uvicorn.run(app, host="127.0.0.1", port=port)
