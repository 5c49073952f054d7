"""
Shared fixtures: an in-memory stand-in for ResourceRepository so the HTTP
layer can be exercised without PostgreSQL.
"""
import itertools
import threading
from contextlib import contextmanager
from typing import Any, Dict, List
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from app.api.routes import create_app
from app.services.errors import RecordValidationError, ResourceNotFoundError, StorageError
from app.services.resource_schema import RESOURCES


class InMemoryRepository:
    """Same contract as ResourceRepository, backed by a dict."""

    def __init__(self, schema):
        self.schema = schema
        self.rows: Dict[int, Dict[str, Any]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def list_all(self) -> List[Dict[str, Any]]:
        return [dict(self.rows[k]) for k in sorted(self.rows)]

    def get(self, record_id):
        if record_id not in self.rows:
            raise ResourceNotFoundError(self.schema, record_id)
        return dict(self.rows[record_id])

    def create(self, payload):
        record = {"id": next(self._ids)}
        record.update({f: payload.get(f) for f in self.schema.field_names})
        self.rows[record["id"]] = record
        return dict(record)

    def update(self, record_id, changes):
        with self._lock:
            existing = self.get(record_id)
            merged = {**existing, **{k: v for k, v in changes.items() if k in self.schema.field_names}}
            nulled = [f for f in self.schema.required_fields if merged.get(f) is None]
            if nulled:
                raise RecordValidationError(f"Fields cannot be null: {', '.join(nulled)}")
            self.rows[record_id] = merged
            return dict(merged)

    def delete(self, record_id):
        self.rows.pop(record_id, None)


class BrokenRepository:
    """Every call fails the way a lost database connection would."""

    def __init__(self, schema):
        self.schema = schema
        self.calls = 0

    def _fail(self, *args, **kwargs):
        self.calls += 1
        raise StorageError("connection to server was lost")

    list_all = get = create = update = delete = _fail


@pytest.fixture
def repositories():
    return {schema.name: InMemoryRepository(schema) for schema in RESOURCES}


@pytest.fixture
def client(repositories):
    return TestClient(create_app(repositories=repositories))


@pytest.fixture
def broken_client():
    repos = {schema.name: BrokenRepository(schema) for schema in RESOURCES}
    return TestClient(create_app(repositories=repos)), repos


class FakeDatabase:
    """Hands out one mocked connection; records commits through `with conn`."""

    def __init__(self):
        self.cursor = MagicMock()
        self.conn = MagicMock()
        self.conn.cursor.return_value.__enter__.return_value = self.cursor
        self.borrowed = 0

    @contextmanager
    def connection(self):
        self.borrowed += 1
        yield self.conn


@pytest.fixture
def fake_db():
    return FakeDatabase()


class CrashingRepository(BrokenRepository):
    """Fails with an error the resource layer does not translate."""

    def _fail(self, *args, **kwargs):
        self.calls += 1
        raise ValueError("A string literal cannot contain NUL (0x00) characters.")

    list_all = get = create = update = delete = _fail


@pytest.fixture
def crashing_client():
    repos = {schema.name: CrashingRepository(schema) for schema in RESOURCES}
    return TestClient(create_app(repositories=repos), raise_server_exceptions=False)
