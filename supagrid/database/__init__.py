"""
Database operations for the supagrid data service.

This module handles Postgres connections, table description and query execution.
"""

from .postgres import (
    _bucket,
    _describe_table_postgres,
    _execute_sql,
    _pg_connect,
)

__all__ = [
    "_bucket",
    "_describe_table_postgres",
    "_execute_sql",
    "_pg_connect",
]
