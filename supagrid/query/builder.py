from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Dict, Iterable, List, Optional, Sequence
import json
import logging
import math
import re

from ..filters import (
    Filter,
    GridQuery,
    IS_KEYWORDS,
    Operator,
    QueryPagination,
    QueryTable,
    Sort,
)

log = logging.getLogger("grid")

_UNQUOTED_IDENT_RE = re.compile(r"^[a-z_][a-z0-9_$]*$")
_NUMBER_RE = re.compile(r"^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?\s*$", re.ASCII)

# Postgres reserved key words; these must be quoted even when lowercase.
RESERVED_WORDS = frozenset("""
    all analyse analyze and any array as asc asymmetric authorization binary
    both case cast check collate collation column concurrently constraint
    create cross current_catalog current_date current_role current_schema
    current_time current_timestamp current_user default deferrable desc
    distinct do else end except false fetch for foreign freeze from full
    grant group having ilike in initially inner intersect into is isnull join
    lateral leading left like limit localtime localtimestamp natural not
    notnull null offset on only or order outer overlaps placing primary
    references returning right select session_user similar some symmetric
    table tablesample then to trailing true union unique user using variadic
    verbose when where window with
""".split())

# -----------------------------------------------------------------------------
# Identifier / literal formatting
# -----------------------------------------------------------------------------
def _quote_identifier(name: str) -> str:
    """
    Quote an identifier if needed. Doubles internal quotes.
    """
    if _UNQUOTED_IDENT_RE.match(name) and name not in RESERVED_WORDS:
        return name
    return '"' + name.replace('"', '""') + '"'

def ident(value: Any) -> str:
    if value is None:
        raise ValueError("SQL identifier cannot be null or undefined")
    if value is True:
        return '"t"'
    if value is False:
        return '"f"'
    if isinstance(value, (list, tuple)):
        return ",".join(ident(v) for v in value)
    if isinstance(value, dict):
        raise ValueError("SQL identifier cannot be an object")
    return _quote_identifier(str(value))

def _quote_string(value: str) -> str:
    """
    Single-quote a string. Backslashes switch to an E'' escape string.
    """
    quoted = "'" + value.replace("'", "''") + "'"
    if "\\" in value:
        quoted = "E" + quoted.replace("\\", "\\\\")
    return quoted

def literal(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "'t'" if value else "'f'"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isfinite(value):
            return repr(value)
        return _quote_string(repr(value))
    if isinstance(value, (datetime, date, time)):
        return _quote_string(value.isoformat())
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "E'\\\\x" + bytes(value).hex() + "'"
    if isinstance(value, (list, tuple)):
        return ",".join(
            "(" + literal(v) + ")" if isinstance(v, (list, tuple)) else literal(v)
            for v in value
        )
    if isinstance(value, dict):
        return _quote_string(json.dumps(value))
    return _quote_string(str(value))

def filter_literal(value: str) -> str:
    """
    Grid filter values are always text. Numeric-looking text goes out as a
    number so `id = 5` compares against an int column without a cast.
    """
    if not _NUMBER_RE.match(value):
        return literal(value)
    s = value.strip()
    if any(ch in s for ch in ".eE"):
        number = float(s)
        if number.is_integer() and abs(number) < 2 ** 53:
            return literal(int(number))
        return literal(number)
    return literal(int(s))

def _query_table(table: QueryTable) -> str:
    return f"{ident(table.schema)}.{ident(table.name)}"

# -----------------------------------------------------------------------------
# WHERE / ORDER BY
# -----------------------------------------------------------------------------
def _in_filter_sql(f: Filter) -> str:
    # blank items (trailing commas) are dropped
    values = [filter_literal(x.strip()) for x in f.value.split(",") if x.strip()]
    if not values:
        raise ValueError(f"Empty value list for 'in' filter on {f.column}")
    return f"{ident(f.column)} {f.operator.value} ({','.join(values)})"

def _is_filter_sql(f: Filter) -> str:
    if f.value in IS_KEYWORDS:
        return f"{ident(f.column)} {f.operator.value} {f.value}"
    return f"{ident(f.column)} {f.operator.value} {filter_literal(f.value)}"

def _filter_sql(f: Filter) -> str:
    if f.operator == Operator.IN:
        return _in_filter_sql(f)
    if f.operator == Operator.IS:
        return _is_filter_sql(f)
    return f"{ident(f.column)} {f.operator.value} {filter_literal(f.value)}"

def _apply_filters(query: str, filters: Optional[Sequence[Filter]]) -> str:
    if not filters:
        return query
    return query + " where " + " and ".join(_filter_sql(f) for f in filters)

def _apply_sorts(query: str, sorts: Optional[Sequence[Sort]]) -> str:
    if not sorts:
        return query
    rendered: List[str] = []
    for s in sorts:
        order = "asc" if s.ascending else "desc"
        null_order = "nulls first" if s.nulls_first else "nulls last"
        rendered.append(f"{ident(s.column)} {order} {null_order}")
    return query + " order by " + ", ".join(rendered)

def _apply_returning(query: str, returning: bool) -> str:
    return query + " returning *" if returning else query

# -----------------------------------------------------------------------------
# Statements
# -----------------------------------------------------------------------------
def count_query(
    table: QueryTable,
    *,
    filters: Optional[Sequence[Filter]] = None,
) -> str:
    query = f"select count(*) from {_query_table(table)}"
    query = _apply_filters(query, filters)
    return query + ";"

def delete_query(
    table: QueryTable,
    filters: Optional[Sequence[Filter]],
    *,
    returning: bool = False,
) -> str:
    if not filters:
        raise ValueError("no filters for this delete query")
    query = f"delete from {_query_table(table)}"
    query = _apply_filters(query, filters)
    query = _apply_returning(query, returning)
    return query + ";"

def insert_query(
    table: QueryTable,
    value: Dict[str, Any],
    *,
    returning: bool = False,
) -> str:
    """
    Postgres arrays are not detected; callers pass them pre-formatted as
    text (e.g. '{1,2,3}'). Dicts are sent as JSON text.
    """
    if value:
        columns = ",".join(ident(k) for k in value)
        values = ",".join(literal(v) for v in value.values())
        query = f"insert into {_query_table(table)} ({columns}) values ({values})"
    else:
        query = f"insert into {_query_table(table)} default values"
    query = _apply_returning(query, returning)
    log.debug("insert query: %s", query)
    return query + ";"

def select_query(
    table: QueryTable,
    columns: Optional[Iterable[str]] = None,
    *,
    filters: Optional[Sequence[Filter]] = None,
    sorts: Optional[Sequence[Sort]] = None,
    pagination: Optional[QueryPagination] = None,
) -> str:
    cols = list(columns or [])
    select_list = ", ".join(ident(c) for c in cols) if cols else "*"
    query = f"select {select_list} from {_query_table(table)}"
    query = _apply_filters(query, filters)
    query = _apply_sorts(query, sorts)
    if pagination is not None:
        query += f" limit {literal(pagination.limit)} offset {literal(pagination.offset)}"
    return query + ";"

def update_query(
    table: QueryTable,
    value: Dict[str, Any],
    *,
    filters: Optional[Sequence[Filter]] = None,
    returning: bool = False,
) -> str:
    """
    The new row values travel as one JSON document and are cast to the
    table's row type by json_populate_record, so Postgres does the typing.
    """
    if not filters:
        raise ValueError("no filters for this update query")
    if not value:
        raise ValueError("no values for this update query")
    target = _query_table(table)
    columns = ",".join(ident(k) for k in value)
    query = (
        f"update {target} set ({columns}) = "
        f"(select {columns} from json_populate_record(null::{target}, "
        f"{literal(json.dumps(value, default=str))}))"
    )
    query = _apply_filters(query, filters)
    query = _apply_returning(query, returning)
    return query + ";"

# -----------------------------------------------------------------------------
# Grid page builder
# -----------------------------------------------------------------------------
@dataclass
class GridQueryBuildResult:
    sql: str
    count_sql: Optional[str] = None

def build_grid_queries(gq: GridQuery, *, include_count: bool = False) -> GridQueryBuildResult:
    """
    Build the page SELECT for a GridQuery and, optionally, the COUNT(*)
    with the same filters (sorts and paging do not apply to the count).
    """
    if not gq.table.name:
        raise ValueError("GridQuery.table is required")

    sql = select_query(
        gq.table,
        gq.columns,
        filters=gq.filters,
        sorts=gq.sorts,
        pagination=gq.pagination,
    )
    count_sql = count_query(gq.table, filters=gq.filters) if include_count else None
    log.debug("grid query: %s", sql)
    return GridQueryBuildResult(sql=sql, count_sql=count_sql)

# -----------------------------------------------------------------------------
# Public exports
# -----------------------------------------------------------------------------
__all__ = [
    "RESERVED_WORDS",
    "ident",
    "literal",
    "filter_literal",
    "count_query",
    "delete_query",
    "insert_query",
    "select_query",
    "update_query",
    "build_grid_queries",
    "GridQueryBuildResult",
]
