"""
Shared fixtures for the supagrid test suite.
"""

from __future__ import annotations

import os

os.environ.setdefault("APP_JWT_SECRET", "test-secret-not-for-production")
os.environ.setdefault("APP_JWT_AUD", "supagrid")
os.environ.setdefault("APP_JWT_ISS", "http://localhost:8000")

import pytest

from supagrid.registry import Registry


COUNTRIES_ENTRY = {
    "table": "countries",
    "schema": "public",
    "columns": {
        "id": "NUMBER",
        "name": "TEXT",
        "iso_code": "TEXT",
        "population": "NUMBER",
        "is_member": "BOOLEAN",
        "meta": "JSON",
        "founded_at": "DATE",
    },
    "primaryKeys": ["id"],
    "editable": True,
    "loadedAt": "2026-01-01T00:00:00Z",
    "maxPageSize": 500,
}

ORDER_TOTALS_ENTRY = {
    "table": "order_totals_v",
    "schema": "sales",
    "columns": {"customer_id": "NUMBER", "total": "NUMBER"},
    "primaryKeys": [],
    "editable": False,
    "loadedAt": "2026-01-01T00:00:00Z",
    "maxPageSize": 200,
}


@pytest.fixture
def countries_entry():
    return {**COUNTRIES_ENTRY, "columns": dict(COUNTRIES_ENTRY["columns"])}


@pytest.fixture
def registry(tmp_path):
    """A registry whose metadata is already cached, so nothing hits Postgres."""
    reg = Registry(tables_path=tmp_path / "tables.yaml", cache_path=tmp_path / "cache.json")
    reg.tables_cfg = {
        "countries": {"table": "countries", "schema": "public", "editable": True, "maxPageSize": 500},
        "order_totals": {"table": "order_totals_v", "schema": "sales", "editable": False, "maxPageSize": 200},
    }
    reg.columns_cache = {
        "countries": {**COUNTRIES_ENTRY, "columns": dict(COUNTRIES_ENTRY["columns"])},
        "order_totals": dict(ORDER_TOTALS_ENTRY),
    }
    return reg


@pytest.fixture
def token():
    from supagrid.session import issue_access_token

    def _make(*roles: str) -> dict[str, str]:
        tok, _ = issue_access_token({"sub": "user-1", "email": "ada@example.com"}, list(roles))
        return {"Authorization": f"Bearer {tok}"}

    return _make
