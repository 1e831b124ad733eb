import os
from typing import Any, Optional, Sequence

from ..registry import TableEntry
from ..filters import (
    Filter,
    Operator,
    PATTERN_OPERATORS,
    QueryPagination,
    RANGE_OPERATORS,
    Sort,
)

GLOBAL_MAX_PAGE_SIZE = int(os.getenv("GLOBAL_MAX_PAGE_SIZE", "1000"))
_TEXTY = {"TEXT"}
_UNORDERED = {"BOOLEAN", "JSON"}


def _assert_columns_allowed(table: str, cols: Sequence[str], reg: TableEntry) -> None:
    if not cols or list(cols) == ["*"]:
        return
    allowed = set(reg["columns"].keys())
    for c in cols:
        if c not in allowed and c != "*":
            raise ValueError(f"Column not allowed for {table}: {c}")


def _assert_sorts_allowed(table: str, sorts: Sequence[Sort], reg: TableEntry) -> None:
    allowed = set(reg["columns"].keys())
    for s in sorts or []:
        if s.column not in allowed:
            raise ValueError(f"Sort field not allowed for {table}: {s.column}")


def _assert_filters_allowed(table: str, filters: Sequence[Filter], reg: TableEntry) -> None:
    allowed = reg["columns"]
    for f in filters or []:
        if f.column not in allowed:
            raise ValueError(f"Filter column not allowed for {table}: {f.column}")
        typ = allowed[f.column]
        if f.operator in PATTERN_OPERATORS and typ not in _TEXTY:
            raise ValueError(
                f"Operator {f.operator.value} not allowed on non-text column {f.column}"
            )
        if f.operator in RANGE_OPERATORS and typ in _UNORDERED:
            raise ValueError(
                f"Operator {f.operator.value} not allowed on column {f.column} of type {typ}"
            )
        if f.operator == Operator.IS and f.value in ("true", "false") and typ != "BOOLEAN":
            raise ValueError(
                f"'is {f.value}' only allowed on boolean columns, {f.column} is {typ}"
            )
        if f.operator == Operator.IN and not any(x.strip() for x in f.value.split(",")):
            raise ValueError(f"Empty value list for 'in' filter on {f.column}")


def _assert_values_allowed(table: str, value: dict[str, Any], reg: TableEntry) -> None:
    allowed = set(reg["columns"].keys())
    for k in value:
        if k not in allowed:
            raise ValueError(f"Column not allowed for {table}: {k}")


def _assert_editable(table: str, reg: TableEntry) -> None:
    if not reg.get("editable"):
        raise ValueError(f"Table is read-only: {table}")


def _cap_pagination(
    table: str, pagination: Optional[QueryPagination], reg: TableEntry
) -> QueryPagination:
    cap = int(reg.get("maxPageSize", GLOBAL_MAX_PAGE_SIZE))
    if pagination is None or pagination.limit <= 0:
        offset = pagination.offset if pagination is not None else 0
        return QueryPagination(limit=min(100, cap), offset=offset)  # nice default
    return QueryPagination(limit=min(pagination.limit, cap), offset=pagination.offset)
