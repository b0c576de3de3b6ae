"""
Shared test fixtures.
"""

import sys
from pathlib import Path

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

import pytest
from unittest.mock import patch
from datetime import datetime
from typing import Generator, Optional
from uuid import uuid4

# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data or []
        self.count = count if count is not None else len(self.data)


class MockSupabaseQuery:
    """Mock Supabase query builder with chainable methods."""

    def __init__(
        self,
        data: list = None,
        count: int = None,
        error: Optional[Exception] = None,
        on_write=None,
    ):
        self._data = data or []
        self._count = count
        self._error = error
        self._on_write = on_write

    def select(self, *args, **kwargs):
        return self

    def insert(self, data):
        # Simulate insert - add id and timestamps
        if isinstance(data, dict):
            data = [data]
        rows = []
        for item in data:
            row = dict(item)
            row.setdefault("id", str(uuid4()))
            row["created_at"] = datetime.utcnow().isoformat() + "Z"
            rows.append(row)
        self._data = rows
        if self._on_write:
            self._on_write("insert", rows)
        return self

    def upsert(self, data, on_conflict: Optional[str] = None, **kwargs):
        # Simulate upsert - ids are stable per conflict key
        if isinstance(data, dict):
            data = [data]
        rows = []
        for item in data:
            row = dict(item)
            key = item.get(on_conflict) if on_conflict else None
            row.setdefault("id", f"uuid-{key}" if key else str(uuid4()))
            rows.append(row)
        self._data = rows
        if self._on_write:
            self._on_write("upsert", rows)
        return self

    def eq(self, column, value):
        self._data = [r for r in self._data if r.get(column, value) == value]
        return self

    def in_(self, column, values):
        allowed = set(values)
        self._data = [r for r in self._data if r.get(column) in allowed]
        return self

    def order(self, column, **kwargs):
        return self

    def limit(self, count):
        return self

    def execute(self) -> MockSupabaseResponse:
        if self._error is not None:
            raise self._error
        return MockSupabaseResponse(
            data=self._data,
            count=self._count if self._count is not None else len(self._data)
        )


class MockSupabaseTable:
    """Mock Supabase table with configurable responses."""

    def __init__(self, name: str, client: "MockSupabaseClient"):
        config = client._tables.get(name, {"data": [], "count": None})
        self._name = name
        self._client = client
        self._data = config["data"]
        self._count = config["count"]
        self._error = client._errors.get(name)

    def _query(self) -> MockSupabaseQuery:
        return MockSupabaseQuery(
            [dict(r) for r in self._data],
            self._count,
            error=self._error,
            on_write=lambda op, rows: self._client.record_write(self._name, op, rows),
        )

    def select(self, *args, **kwargs):
        return self._query()

    def insert(self, data):
        return self._query().insert(data)

    def upsert(self, data, on_conflict: Optional[str] = None, **kwargs):
        return self._query().upsert(data, on_conflict=on_conflict, **kwargs)


class MockSupabaseClient:
    """
    Mock Supabase client.

    Writes are recorded in `writes` as (table, operation, rows). Callables
    in `write_hooks` run after each write is recorded.
    """

    def __init__(self):
        self._tables = {}
        self._errors = {}
        self.writes: list[tuple[str, str, list[dict]]] = []
        self.write_hooks: list = []

    def set_table_data(self, table_name: str, data: list, count: int = None):
        """Configure mock data for a table."""
        self._tables[table_name] = {"data": data, "count": count}

    def set_table_error(self, table_name: str, error: Exception):
        """Make every query on a table raise."""
        self._errors[table_name] = error

    def table(self, name: str) -> MockSupabaseTable:
        """Get mock table."""
        return MockSupabaseTable(name, self)

    def record_write(self, table_name: str, operation: str, rows: list[dict]):
        self.writes.append((table_name, operation, rows))
        for hook in self.write_hooks:
            hook(table_name, operation, rows)

    def written(self, table_name: str, operation: str) -> list[dict]:
        """All rows written to a table by one operation type."""
        return [
            row
            for table, op, rows in self.writes
            if table == table_name and op == operation
            for row in rows
        ]


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("orders", [
                {"id": "1", "order_number": "PO-1", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Usage:
        def test_something(mock_db, mock_supabase):
            mock_supabase.set_table_data("orders", [...])
            # Now any code using get_supabase_client() gets the mock
    """
    with patch("config.database.get_supabase_client", return_value=mock_supabase):
        with patch("services.order_service.get_supabase_client", return_value=mock_supabase):
            with patch("services.hierarchy_service.get_supabase_client", return_value=mock_supabase):
                yield mock_supabase


@pytest.fixture(autouse=True)
def reset_service_state(monkeypatch):
    """Fresh service singletons and an empty session cache for every test."""
    import services.hierarchy_service as hierarchy_service
    import services.order_service as order_service
    import services.order_import_service as order_import_service
    from services import preview_cache_service

    monkeypatch.setattr(hierarchy_service, "_hierarchy_service", None)
    monkeypatch.setattr(order_service, "_order_service", None)
    monkeypatch.setattr(order_import_service, "_order_import_service", None)
    preview_cache_service.clear()
    yield
    preview_cache_service.clear()


@pytest.fixture
def sample_levels() -> list[dict]:
    """Contract > Category > Product, plus an assignment level."""
    return [
        {"id": "lvl-contract", "name": "Contract", "key": "contract", "sort_order": 1},
        {"id": "lvl-category", "name": "Category", "key": "category", "sort_order": 2},
        {"id": "lvl-product", "name": "Product", "key": "product", "sort_order": 3},
        {"id": "lvl-engineer", "name": "Engineer", "key": "engineer", "sort_order": 4},
    ]


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client_with_mock_db(mock_db):
    """
    Create FastAPI test client with mocked database.

    Usage:
        def test_endpoint(test_client_with_mock_db, mock_supabase):
            mock_supabase.set_table_data("hierarchy_levels", [...])
            response = test_client_with_mock_db.get("/api/hierarchy/levels")
    """
    from fastapi.testclient import TestClient
    from main import app

    yield TestClient(app)
