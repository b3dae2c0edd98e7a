from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterable

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from encore.models.backend_models import TABLE_MODELS
from encore.schemas.records import ROW_SCHEMAS


RESERVED_PARAMS = {"select", "order", "limit", "offset"}
FILTER_OPERATORS = {"eq", "neq", "gt", "gte", "lt", "lte", "in", "is"}


class TableRequestError(ValueError):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def get_table_model(table: str):
    model = TABLE_MODELS.get(table)
    if model is None:
        raise TableRequestError(f"relation \"{table}\" does not exist", status_code=404)
    return model


def _get_column(model, name: str):
    column = model.__table__.columns.get(name)
    if column is None:
        raise TableRequestError(f"column {model.__tablename__}.{name} does not exist")
    return column


def _coerce_value(column, raw: str) -> Any:
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return raw
    try:
        if python_type is bool:
            lowered = raw.strip().lower()
            if lowered not in {"true", "false"}:
                raise ValueError(raw)
            return lowered == "true"
        if python_type is date:
            return date.fromisoformat(raw)
        if python_type is Decimal:
            return Decimal(raw)
        if python_type in (int, float):
            return python_type(raw)
    except (ValueError, InvalidOperation) as exc:
        raise TableRequestError(f"invalid input for {column.name}: {raw!r}") from exc
    return raw


def _filter_clause(model, name: str, expression: str):
    operator, sep, raw = expression.partition(".")
    if operator not in FILTER_OPERATORS or not sep:
        raise TableRequestError(f"failed to parse filter ({name}={expression})")
    column = _get_column(model, name)
    if operator == "is":
        lowered = raw.lower()
        if lowered == "null":
            return column.is_(None)
        if lowered in {"true", "false"}:
            return column.is_(lowered == "true")
        raise TableRequestError(f"failed to parse filter ({name}={expression})")
    if operator == "in":
        if not (raw.startswith("(") and raw.endswith(")")):
            raise TableRequestError(f"failed to parse filter ({name}={expression})")
        values = [item.strip().strip('"') for item in raw[1:-1].split(",") if item.strip()]
        return column.in_([_coerce_value(column, value) for value in values])
    value = _coerce_value(column, raw)
    if operator == "eq":
        return column == value
    if operator == "neq":
        return column != value
    if operator == "gt":
        return column > value
    if operator == "gte":
        return column >= value
    if operator == "lt":
        return column < value
    return column <= value


def build_filters(model, params: Iterable[tuple[str, str]]) -> list:
    clauses = []
    for name, expression in params:
        if name in RESERVED_PARAMS:
            continue
        clauses.append(_filter_clause(model, name, expression))
    return clauses


def _order_by(model, raw: str | None) -> list:
    if not raw:
        return [model.__table__.primary_key.columns.values()[0].asc()]
    output = []
    for part in raw.split(","):
        name, _, direction = part.strip().partition(".")
        column = _get_column(model, name)
        output.append(column.desc() if direction.startswith("desc") else column.asc())
    return output


def serialize_row(table: str, row) -> dict[str, Any]:
    schema = ROW_SCHEMAS[table]
    values = {column.name: getattr(row, column.name) for column in row.__table__.columns}
    return schema.model_validate(values).model_dump(mode="json")


def _validated_values(table: str, payload: dict[str, Any]) -> dict[str, Any]:
    schema = ROW_SCHEMAS[table]
    try:
        record = schema.model_validate(payload)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise TableRequestError(f"invalid {table} row: {location} {first.get('msg')}".strip()) from exc
    values = record.model_dump()
    return {key: (value.value if isinstance(value, Enum) else value) for key, value in values.items()}


def select_rows(db: Session, table: str, params: list[tuple[str, str]], extra_clauses: Iterable = ()) -> list:
    model = get_table_model(table)
    query = dict(params)
    stmt = select(model)
    for clause in [*build_filters(model, params), *extra_clauses]:
        stmt = stmt.where(clause)
    stmt = stmt.order_by(*_order_by(model, query.get("order")))
    try:
        if query.get("limit"):
            stmt = stmt.limit(int(query["limit"]))
        if query.get("offset"):
            stmt = stmt.offset(int(query["offset"]))
    except ValueError as exc:
        raise TableRequestError("limit and offset must be integers") from exc
    return list(db.execute(stmt).scalars().all())


def insert_row(db: Session, table: str, payload: dict[str, Any]):
    model = get_table_model(table)
    body = dict(payload)
    body.setdefault("id", str(uuid.uuid4()))
    if db.get(model, body["id"]) is not None:
        raise TableRequestError(f"duplicate key value violates unique constraint \"{table}_pkey\"", status_code=409)
    row = model(**_validated_values(table, body))
    db.add(row)
    return row


def update_row(db: Session, table: str, row, patch: dict[str, Any]):
    changes = {key: value for key, value in patch.items() if key != "id"}
    unknown = [key for key in changes if key not in row.__table__.columns]
    if unknown:
        raise TableRequestError(f"column {table}.{unknown[0]} does not exist")
    merged = serialize_row(table, row)
    merged.update(changes)
    values = _validated_values(table, merged)
    for key in changes:
        setattr(row, key, values[key])
    return row
