"""
Grid request models for the supagrid data service.

This module provides the table, filter, sort and pagination models the grid
sends, plus JSON parsing and schema validation.
"""

from .models import (
    Operator,
    PATTERN_OPERATORS,
    RANGE_OPERATORS,
    IS_KEYWORDS,
    QueryTable,
    Filter,
    Sort,
    QueryPagination,
    GridQuery,
    RowMutation,
    GRID_QUERY_SCHEMA,
    ROW_MUTATION_SCHEMA,
    parse_grid_query_json,
    parse_row_mutation_json,
)

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
