from __future__ import annotations
from dotenv import load_dotenv

load_dotenv()

import os, re, logging

from dataclasses import replace
from fastapi import Depends, FastAPI, Body, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from typing import Any
import jsonschema
import psycopg2

from .filters import (
    Filter,
    GridQuery,
    QueryTable,
    RowMutation,
    parse_grid_query_json,
    parse_row_mutation_json,
)
from .registry import Registry, TableEntry
from .database import _execute_sql
from .query import (
    build_grid_queries,
    count_query,
    delete_query,
    insert_query,
    update_query,
)
from .auth import ADMIN_ROLE, READ_ROLE, WRITE_ROLE, require_auth, require_roles
from .validation import (
    _assert_columns_allowed,
    _assert_sorts_allowed,
    _assert_filters_allowed,
    _assert_values_allowed,
    _assert_editable,
    _cap_pagination,
)

log = logging.getLogger("grid")
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())

GLOBAL_MAX_PAGE_SIZE = int(os.getenv("GLOBAL_MAX_PAGE_SIZE", "1000"))

app = FastAPI(title="Supagrid Data Service", version="1.0.0")

origins_raw = os.getenv("CORS_ALLOW_ORIGINS", "")
origins = [o.strip() for o in origins_raw.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)

REG = Registry()


def _to_snake(name: str) -> str:
    """
    Convert camelCase string to snake_case.
    Example: 'countryCode' -> 'country_code'
    """
    s1 = re.sub('(.)([A-Z][a-z]+)', r'\1_\2', name)
    return re.sub('([a-z0-9])([A-Z])', r'\1_\2', s1).lower()


def _snake_filters(filters: list[Filter]) -> list[Filter]:
    return [replace(f, column=_to_snake(f.column)) for f in filters]


def _convert_camel_to_snake(gq: GridQuery) -> GridQuery:
    """
    Convert camelCase column names in a GridQuery to snake_case.
    """
    return replace(
        gq,
        columns=[_to_snake(c) for c in gq.columns],
        filters=_snake_filters(gq.filters),
        sorts=[replace(s, column=_to_snake(s.column)) for s in gq.sorts],
    )


def _convert_mutation_to_snake(rm: RowMutation) -> RowMutation:
    return replace(
        rm,
        value={_to_snake(k): v for k, v in rm.value.items()},
        filters=_snake_filters(rm.filters),
    )


def _physical(entry: TableEntry) -> QueryTable:
    return QueryTable(name=entry["table"], schema=entry["schema"])


def _resolve(raw_table: Any) -> tuple[str, TableEntry]:
    """
    Look up the configured table for what the grid sent. A bare name may be
    a configured key; a schema the caller named is always honoured.
    """
    table = QueryTable.from_value(raw_table)
    name = REG.resolve(table.name, QueryTable.requested_schema(raw_table))
    return name, REG.ensure_table(name)


def _prepare_grid_query(payload: dict, is_camel_case: bool) -> tuple[GridQuery, TableEntry]:
    gq = parse_grid_query_json(payload, validate=True)
    if is_camel_case:
        gq = _convert_camel_to_snake(gq)

    name, entry = _resolve(payload["table"])
    _assert_columns_allowed(name, gq.columns, entry)
    _assert_sorts_allowed(name, gq.sorts, entry)
    _assert_filters_allowed(name, gq.filters, entry)
    gq = replace(
        gq,
        table=_physical(entry),
        pagination=_cap_pagination(name, gq.pagination, entry),
    )
    return gq, entry


def _prepare_mutation(payload: dict, is_camel_case: bool) -> tuple[RowMutation, TableEntry]:
    rm = parse_row_mutation_json(payload, validate=True)
    if is_camel_case:
        rm = _convert_mutation_to_snake(rm)

    name, entry = _resolve(payload["table"])
    _assert_editable(name, entry)
    _assert_values_allowed(name, rm.value, entry)
    _assert_filters_allowed(name, rm.filters, entry)
    return replace(rm, table=_physical(entry)), entry


def _run(sql: str, *, commit: bool = False):
    try:
        return _execute_sql(sql, commit=commit)
    except psycopg2.Error as e:
        raise HTTPException(status_code=502, detail=str(e).strip())


def _handle(fn):
    """Map builder/validator errors onto HTTP status codes."""
    try:
        return fn()
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e).strip("'\""))
    except jsonschema.ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except psycopg2.Error as e:
        raise HTTPException(status_code=502, detail=str(e).strip())


def _rows_as_dicts(cols: list[str], rows: list[Any]) -> list[dict[str, Any]]:
    return [dict(zip(cols, r)) for r in rows]


@app.on_event("startup")
def _startup():
    REG.load_tables()
    REG.load_cache()


@app.get("/healthz")
def health():
    return {
        "ok": True,
        "tables": list(REG.tables_cfg.keys()),
    }


@app.get("/tables", dependencies=[Depends(require_roles(READ_ROLE))])
def list_tables(
    include_columns: bool = True,
    ensure: bool = False,
):
    """
    List configured tables and (optionally) their column/type info.

    - include_columns: if True, returns columns when present in cache.
    - ensure: if True, describes each table from Postgres when it is not cached.
    """
    out = []
    for name, meta in REG.tables_cfg.items():
        cached = REG.columns_cache.get(name)

        if ensure:
            try:
                cached = REG.ensure_table(name)
            except Exception as e:
                log.warning("Could not describe %s: %s", name, e)
                out.append(
                    {
                        "name": name,
                        "table": meta["table"],
                        "schema": meta["schema"],
                        "maxPageSize": int(meta.get("maxPageSize", GLOBAL_MAX_PAGE_SIZE)),
                        "cached": False,
                        "error": str(e),
                    }
                )
                continue

        item = {
            "name": name,
            "table": meta["table"],
            "schema": meta["schema"],
            "maxPageSize": int(meta.get("maxPageSize", GLOBAL_MAX_PAGE_SIZE)),
            "cached": bool(cached),
        }
        if cached:
            item["loadedAt"] = cached.get("loadedAt")
            item["editable"] = cached.get("editable", False)
            if include_columns:
                item["columns"] = [
                    {"name": col, "type": typ}
                    for col, typ in cached.get("columns", {}).items()
                ]

        out.append(item)

    return {"tables": out}


class ColumnOut(BaseModel):
    name: str
    type: str
    isPrimaryKey: bool = False


class TableInfoOut(BaseModel):
    name: str
    table: str
    schema_: str = Field(alias="schema")
    columns: list[ColumnOut]
    primaryKeys: list[str]
    editable: bool
    maxPageSize: int


@app.get(
    "/tables/{name}",
    response_model=TableInfoOut,
    dependencies=[Depends(require_roles(READ_ROLE))],
)
def table_info(name: str, schema: str | None = None):
    """
    Column, primary key and editability info for one table; what the grid
    needs before it can render or edit.
    """
    def _go():
        key = REG.resolve(name, schema)
        entry = REG.ensure_table(key)
        return TableInfoOut(
            name=key,
            table=entry["table"],
            schema=entry["schema"],
            columns=[
                ColumnOut(name=col, type=typ, isPrimaryKey=col in entry["primaryKeys"])
                for col, typ in entry["columns"].items()
            ],
            primaryKeys=entry["primaryKeys"],
            editable=entry["editable"],
            maxPageSize=entry["maxPageSize"],
        )

    return _handle(_go)


@app.post("/sql", dependencies=[Depends(require_roles(READ_ROLE))])
def build_query(
    payload: dict = Body(..., description="GridQuery JSON"),
    include_count: bool = False,
    is_camel_case: bool = False,
):
    def _go():
        gq, entry = _prepare_grid_query(payload, is_camel_case)
        res = build_grid_queries(gq, include_count=include_count)
        return {
            "sql": res.sql,
            "countSql": res.count_sql,
            "limitApplied": gq.pagination.limit,
            "maxPageSize": entry.get("maxPageSize", GLOBAL_MAX_PAGE_SIZE),
            "table": gq.table.to_dict(),
        }

    return _handle(_go)


@app.post("/rows/search", dependencies=[Depends(require_roles(READ_ROLE))])
def search_rows(
    payload: dict = Body(..., description="GridQuery JSON"),
    include_count: bool = True,
    is_camel_case: bool = False,
):
    gq, _ = _handle(lambda: _prepare_grid_query(payload, is_camel_case))
    build = build_grid_queries(gq, include_count=include_count)

    cols, rows = _run(build.sql)
    total = None
    if build.count_sql:
        _, count_rows = _run(build.count_sql)
        total = int(count_rows[0][0]) if count_rows else 0

    return {
        "columns": cols,
        "rows": _rows_as_dicts(cols, rows),
        "totalRows": total,
        "sql": build.sql,
        "limitApplied": gq.pagination.limit,
        "table": gq.table.to_dict(),
    }


@app.post("/rows/count", dependencies=[Depends(require_roles(READ_ROLE))])
def count_rows(
    payload: dict = Body(..., description="GridQuery JSON"),
    is_camel_case: bool = False,
):
    gq, _ = _handle(lambda: _prepare_grid_query(payload, is_camel_case))
    sql = count_query(gq.table, filters=gq.filters)
    _, rows = _run(sql)
    return {"count": int(rows[0][0]) if rows else 0, "sql": sql}


@app.post("/rows", dependencies=[Depends(require_roles(WRITE_ROLE))])
def insert_row(
    payload: dict = Body(..., description="RowMutation JSON"),
    is_camel_case: bool = False,
):
    def _go():
        rm, _ = _prepare_mutation(payload, is_camel_case)
        return rm, insert_query(rm.table, rm.value, returning=rm.returning)

    rm, sql = _handle(_go)
    cols, rows = _run(sql, commit=True)
    log.info("Inserted row into %s.%s", rm.table.schema, rm.table.name)
    return {"rows": _rows_as_dicts(cols, rows), "sql": sql}


@app.patch("/rows", dependencies=[Depends(require_roles(WRITE_ROLE))])
def update_rows(
    payload: dict = Body(..., description="RowMutation JSON"),
    is_camel_case: bool = False,
):
    def _go():
        rm, _ = _prepare_mutation(payload, is_camel_case)
        return rm, update_query(
            rm.table, rm.value, filters=rm.filters, returning=rm.returning
        )

    rm, sql = _handle(_go)
    cols, rows = _run(sql, commit=True)
    log.info("Updated rows in %s.%s", rm.table.schema, rm.table.name)
    return {"rows": _rows_as_dicts(cols, rows), "sql": sql}


@app.post("/rows/delete", dependencies=[Depends(require_roles(WRITE_ROLE))])
def delete_rows(
    payload: dict = Body(..., description="RowMutation JSON"),
    is_camel_case: bool = False,
):
    def _go():
        rm, _ = _prepare_mutation(payload, is_camel_case)
        return rm, delete_query(rm.table, rm.filters, returning=rm.returning)

    rm, sql = _handle(_go)
    cols, rows = _run(sql, commit=True)
    log.info("Deleted rows from %s.%s", rm.table.schema, rm.table.name)
    return {"rows": _rows_as_dicts(cols, rows), "sql": sql}


@app.post("/reload", dependencies=[Depends(require_roles(ADMIN_ROLE))])
def reload_registry():
    try:
        summary = REG.refresh_all()
        return {"reloaded": summary}
    except Exception as e:
        log.exception("Registry reload failed")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/me")
def me(claims=Depends(require_auth)):
    return {
        "sub": claims["sub"],
        "email": claims.get("email"),
        "roles": claims.get("roles", []),
    }
