import os, logging, typing as t

import psycopg2

log = logging.getLogger("grid")

_DESCRIBE_COLUMNS_SQL = """
SELECT column_name, data_type
FROM information_schema.columns
WHERE table_schema = %s AND table_name = %s
ORDER BY ordinal_position
"""

_PRIMARY_KEYS_SQL = """
SELECT kcu.column_name
FROM information_schema.table_constraints tc
JOIN information_schema.key_column_usage kcu
  ON kcu.constraint_name = tc.constraint_name
 AND kcu.table_schema = tc.table_schema
 AND kcu.table_name = tc.table_name
WHERE tc.constraint_type = 'PRIMARY KEY'
  AND tc.table_schema = %s AND tc.table_name = %s
ORDER BY kcu.ordinal_position
"""


def _bucket(dtype: str) -> str:
    """Collapse a Postgres data_type into the categories the validators use."""
    u = dtype.upper()
    if u in ("USER-DEFINED", "ARRAY", "INTERVAL"): return "OTHER"
    if u == "UUID": return "UUID"
    if u in ("JSON", "JSONB"): return "JSON"
    if u == "BOOLEAN": return "BOOLEAN"
    if "TIMESTAMP" in u: return "TIMESTAMP"
    if u == "DATE": return "DATE"
    if u.startswith("TIME"): return "TIME"
    if any(x in u for x in ("CHAR", "TEXT", "CITEXT")): return "TEXT"
    if any(x in u for x in ("INT", "NUMERIC", "DECIMAL", "REAL", "DOUBLE", "MONEY")): return "NUMBER"
    return "OTHER"


def _pg_connect():
    dsn = os.environ.get("DATABASE_URL")
    if dsn:
        return psycopg2.connect(dsn)
    # Falls back to libpq's PGHOST / PGUSER / PGDATABASE / ... variables.
    return psycopg2.connect("")


def _describe_table_postgres(schema: str, table: str) -> dict[str, t.Any]:
    """
    Return {"columns": {COLUMN_NAME: TYPE_CATEGORY}, "primaryKeys": [...]}.
    """
    conn = _pg_connect()
    try:
        with conn.cursor() as cur:
            cur.execute(_DESCRIBE_COLUMNS_SQL, (schema, table))
            rows = cur.fetchall()
            cur.execute(_PRIMARY_KEYS_SQL, (schema, table))
            pks = [r[0] for r in cur.fetchall()]
    finally:
        conn.close()

    if not rows:
        raise KeyError(f"Table not found in database: {schema}.{table}")
    return {
        "columns": {name: _bucket(dtype) for (name, dtype) in rows},
        "primaryKeys": pks,
    }


def _execute_sql(sql: str, *, commit: bool = False):
    """
    Run one generated statement. Returns (columns, rows); both are empty for
    statements that return nothing.
    """
    log.debug("executing: %s", sql)
    conn = _pg_connect()
    try:
        with conn.cursor() as cur:
            cur.execute(sql)
            cols = [d[0] for d in cur.description] if cur.description else []
            rows = cur.fetchall() if cur.description else []
        if commit:
            conn.commit()
        else:
            conn.rollback()
        return cols, rows
    except psycopg2.Error:
        conn.rollback()
        log.exception("query failed: %s", sql)
        raise
    finally:
        conn.close()
