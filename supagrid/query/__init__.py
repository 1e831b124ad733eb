"""
Query building module for the supagrid data service.

This module provides SQL statement generation from grid request models.
"""

from .builder import (
    RESERVED_WORDS,
    ident,
    literal,
    filter_literal,
    count_query,
    delete_query,
    insert_query,
    select_query,
    update_query,
    build_grid_queries,
    GridQueryBuildResult,
)

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
