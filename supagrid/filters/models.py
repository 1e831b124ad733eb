# supagrid/filters/models.py
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union
import json

import jsonschema

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Operator(str, Enum):
    EQ = "="
    NE = "<>"
    GT = ">"
    LT = "<"
    GTE = ">="
    LTE = "<="
    MATCH = "~"
    IMATCH = "~*"
    LIKE = "~~"
    ILIKE = "~~*"
    IN = "in"
    IS = "is"


PATTERN_OPERATORS = (Operator.MATCH, Operator.IMATCH, Operator.LIKE, Operator.ILIKE)
RANGE_OPERATORS = (Operator.GT, Operator.LT, Operator.GTE, Operator.LTE)

# `is` values emitted as SQL keywords rather than literals
IS_KEYWORDS = ("null", "not null", "true", "false")


def _as_text(value: Any) -> str:
    """
    Filter values come from a text input; normalise whatever JSON gave us.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(_as_text(v) for v in value)
    return str(value)


# ---------------------------------------------------------------------------
# Core grid models
# ---------------------------------------------------------------------------

@dataclass
class QueryTable:
    name: str
    schema: str = "public"

    def to_dict(self) -> Dict[str, Any]:
        return {"schema": self.schema, "name": self.name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueryTable":
        return cls(name=data["name"], schema=data.get("schema") or "public")

    @classmethod
    def from_value(cls, value: Union[str, Dict[str, Any], "QueryTable"]) -> "QueryTable":
        """
        Accepts 'countries', 'public.countries' or {"schema":..., "name":...}.
        """
        if isinstance(value, QueryTable):
            return value
        if isinstance(value, dict):
            return cls.from_dict(value)
        parts = [p.strip() for p in str(value).split(".", 1)]
        if len(parts) == 2 and parts[0] and parts[1]:
            return cls(name=parts[1], schema=parts[0])
        return cls(name=parts[0])

    @staticmethod
    def requested_schema(value: Union[str, Dict[str, Any], "QueryTable"]) -> Optional[str]:
        """
        The schema the caller actually named, or None for a bare table name.
        `from_value` fills in 'public' for rendering; lookups must not.
        """
        if isinstance(value, QueryTable):
            return value.schema
        if isinstance(value, dict):
            return value.get("schema") or None
        parts = [p.strip() for p in str(value).split(".", 1)]
        if len(parts) == 2 and parts[0] and parts[1]:
            return parts[0]
        return None


@dataclass
class Filter:
    """
    One grid filter row: column, operator and the raw text typed by the user.
    """
    column: str
    operator: Operator = Operator.EQ
    value: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "column": self.column,
            "operator": self.operator.value,
            "value": self.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Filter":
        return cls(
            column=data["column"],
            operator=Operator(data.get("operator", Operator.EQ.value)),
            value=_as_text(data.get("value", "")),
        )


@dataclass
class Sort:
    column: str
    ascending: bool = True
    nulls_first: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "column": self.column,
            "ascending": self.ascending,
            "nullsFirst": self.nulls_first,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Sort":
        return cls(
            column=data["column"],
            ascending=bool(data.get("ascending", True)),
            nulls_first=bool(data.get("nullsFirst", False)),
        )


@dataclass
class QueryPagination:
    limit: int
    offset: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"limit": self.limit, "offset": self.offset}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueryPagination":
        return cls(
            limit=int(data.get("limit", 0) or 0),
            offset=int(data.get("offset", 0) or 0),
        )


# ---------------------------------------------------------------------------
# JSON Schemas
# ---------------------------------------------------------------------------

_DEFS: Dict[str, Any] = {
    "QueryTable": {
        "oneOf": [
            {"type": "string", "minLength": 1},
            {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "schema": {"type": "string", "minLength": 1},
                    "name": {"type": "string", "minLength": 1},
                },
                "required": ["name"],
            },
        ]
    },
    "Filter": {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "column": {"type": "string", "minLength": 1},
            "operator": {
                "type": "string",
                "enum": [op.value for op in Operator],
            },
            "value": {
                "oneOf": [
                    {"type": "string"},
                    {"type": "number"},
                    {"type": "boolean"},
                    {"type": "null"},
                    {"type": "array", "items": {"type": ["string", "number"]}},
                ]
            },
        },
        "required": ["column", "operator"],
    },
    "Sort": {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "column": {"type": "string", "minLength": 1},
            "ascending": {"type": "boolean"},
            "nullsFirst": {"type": "boolean"},
        },
        "required": ["column"],
    },
    "QueryPagination": {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "limit": {"type": "integer", "minimum": 0},
            "offset": {"type": "integer", "minimum": 0},
        },
    },
}

GRID_QUERY_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "Grid Query",
    "type": "object",
    "additionalProperties": False,
    "$defs": _DEFS,
    "properties": {
        "table": {"$ref": "#/$defs/QueryTable"},
        "columns": {"type": "array", "items": {"type": "string", "minLength": 1}},
        "filters": {"type": "array", "items": {"$ref": "#/$defs/Filter"}},
        "sorts": {"type": "array", "items": {"$ref": "#/$defs/Sort"}},
        "pagination": {"$ref": "#/$defs/QueryPagination"},
    },
    "required": ["table"],
}

ROW_MUTATION_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "Row Mutation",
    "type": "object",
    "additionalProperties": False,
    "$defs": _DEFS,
    "properties": {
        "table": {"$ref": "#/$defs/QueryTable"},
        "value": {"type": "object"},
        "filters": {"type": "array", "items": {"$ref": "#/$defs/Filter"}},
        "returning": {"type": "boolean"},
    },
    "required": ["table"],
}


def _validate(instance: Dict[str, Any], schema: Dict[str, Any]) -> None:
    jsonschema.validate(instance=instance, schema=schema)


def _load(payload: Union[str, Dict[str, Any]]) -> Dict[str, Any]:
    data = json.loads(payload) if isinstance(payload, str) else payload
    if not isinstance(data, dict):
        raise ValueError("payload must be a JSON object")
    return data


# ---------------------------------------------------------------------------
# Request models with camelCase interop
# ---------------------------------------------------------------------------

@dataclass
class GridQuery:
    """
    What the grid asks for when it loads a page: which table, which columns,
    filtered and sorted how, and which slice of rows.
    """
    table: QueryTable
    columns: List[str] = field(default_factory=list)
    filters: List[Filter] = field(default_factory=list)
    sorts: List[Sort] = field(default_factory=list)
    pagination: Optional[QueryPagination] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "table": self.table.to_dict(),
            "columns": list(self.columns),
            "filters": [f.to_dict() for f in self.filters],
            "sorts": [s.to_dict() for s in self.sorts],
        }
        if self.pagination is not None:
            out["pagination"] = self.pagination.to_dict()
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GridQuery":
        pagination = data.get("pagination")
        return cls(
            table=QueryTable.from_value(data["table"]),
            columns=list(data.get("columns", [])),
            filters=[Filter.from_dict(f) for f in data.get("filters", [])],
            sorts=[Sort.from_dict(s) for s in data.get("sorts", [])],
            pagination=QueryPagination.from_dict(pagination) if pagination is not None else None,
        )


@dataclass
class RowMutation:
    """
    Body of an insert, update or delete coming from the grid editor.
    """
    table: QueryTable
    value: Dict[str, Any] = field(default_factory=dict)
    filters: List[Filter] = field(default_factory=list)
    returning: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": self.table.to_dict(),
            "value": dict(self.value),
            "filters": [f.to_dict() for f in self.filters],
            "returning": self.returning,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RowMutation":
        return cls(
            table=QueryTable.from_value(data["table"]),
            value=dict(data.get("value", {})),
            filters=[Filter.from_dict(f) for f in data.get("filters", [])],
            returning=bool(data.get("returning", False)),
        )


def parse_grid_query_json(
    payload: Union[str, Dict[str, Any]],
    *,
    validate: bool = True,
) -> GridQuery:
    """
    Accept a JSON string or dict and return a GridQuery.
    """
    data = _load(payload)
    if validate:
        _validate(data, GRID_QUERY_SCHEMA)
    return GridQuery.from_dict(data)


def parse_row_mutation_json(
    payload: Union[str, Dict[str, Any]],
    *,
    validate: bool = True,
) -> RowMutation:
    data = _load(payload)
    if validate:
        _validate(data, ROW_MUTATION_SCHEMA)
    return RowMutation.from_dict(data)


# ---------------------------------------------------------------------------
# Public exports
# ---------------------------------------------------------------------------

__all__ = [
    "Operator",
    "PATTERN_OPERATORS",
    "RANGE_OPERATORS",
    "IS_KEYWORDS",
    "QueryTable",
    "Filter",
    "Sort",
    "QueryPagination",
    "GridQuery",
    "RowMutation",
    "GRID_QUERY_SCHEMA",
    "ROW_MUTATION_SCHEMA",
    "parse_grid_query_json",
    "parse_row_mutation_json",
]
