"""Pytest configuration and fixtures."""

import asyncio
import os
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import pytest

# Set test environment variables before importing settings
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "service-key-test")

from verifolio_engine.errors import StoreError  # noqa: E402
from verifolio_engine.models import ActivityEntry  # noqa: E402
from verifolio_engine.tools.executor import ToolExecutor  # noqa: E402

OWNER_ID = "0b8f6c1e-1111-4a2b-9c3d-000000000001"
OTHER_OWNER_ID = "0b8f6c1e-2222-4a2b-9c3d-000000000002"
FIXED_NOW = datetime(2025, 3, 14, 10, 30, tzinfo=timezone.utc)

Row = dict[str, Any]


def _sort_key(column: str):
    def key(row: Row) -> tuple[bool, Any]:
        value = row.get(column)
        return (value is None, value if value is not None else "")

    return key


@dataclass
class FakeStore:
    """In-memory ``Store`` with PostgREST-like semantics.

    ``unique`` declares unique keys per table (a violation raises a
    ``StoreError`` carrying code 23505). ``failures`` and ``update_failures``
    make every insert or update on a table raise the given exception.
    """

    tables: dict[str, list[Row]] = field(default_factory=lambda: defaultdict(list))
    sequences: dict[tuple[str, str, str], int] = field(default_factory=dict)
    unique: dict[str, tuple[str, ...]] = field(default_factory=dict)
    failures: dict[str, Exception] = field(default_factory=dict)
    update_failures: dict[str, Exception] = field(default_factory=dict)
    searches: list[tuple[str, str]] = field(default_factory=list)
    _tick: int = 0

    def add(self, table: str, **values: Any) -> Row:
        """Seed a row synchronously."""
        self._tick += 1
        row = {
            "id": str(uuid4()),
            "created_at": f"2025-01-01T00:00:00.{self._tick:06d}+00:00",
            **values,
        }
        self.tables[table].append(row)
        return dict(row)

    @staticmethod
    def _matches(row: Row, filters: dict[str, Any] | None) -> bool:
        return all(row.get(column) == value for column, value in (filters or {}).items())

    @staticmethod
    def _window(
        rows: list[Row], order_by: str | None, descending: bool, limit: int | None
    ) -> list[Row]:
        if order_by:
            rows = sorted(rows, key=_sort_key(order_by), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return [dict(row) for row in rows]

    async def select(
        self,
        table: str,
        *,
        filters: dict[str, Any] | None = None,
        columns: str = "*",
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Row]:
        rows = [row for row in self.tables[table] if self._matches(row, filters)]
        return self._window(rows, order_by, descending, limit)

    async def search(
        self,
        table: str,
        *,
        column: str,
        term: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> list[Row]:
        self.searches.append((table, term))
        needle = term.lower()
        rows = [
            row
            for row in self.tables[table]
            if self._matches(row, filters) and needle in str(row.get(column) or "").lower()
        ]
        return self._window(rows, order_by, False, limit)

    async def insert(self, table: str, rows: Row | list[Row]) -> list[Row]:
        if table in self.failures:
            raise self.failures[table]
        batch = rows if isinstance(rows, list) else [rows]
        keys = self.unique.get(table)
        created = []
        for values in batch:
            if keys and any(
                all(values.get(k) is not None and existing.get(k) == values.get(k) for k in keys)
                for existing in self.tables[table]
            ):
                raise StoreError(
                    "Store error: 409",
                    status_code=409,
                    details={"code": "23505", "message": "duplicate key value"},
                )
            created.append(self.add(table, **values))
        return created

    async def update(self, table: str, values: Row, *, filters: dict[str, Any]) -> list[Row]:
        if table in self.update_failures:
            raise self.update_failures[table]
        updated = []
        for row in self.tables[table]:
            if self._matches(row, filters):
                row.update(values)
                updated.append(dict(row))
        return updated

    async def delete(self, table: str, *, filters: dict[str, Any]) -> list[Row]:
        removed = [row for row in self.tables[table] if self._matches(row, filters)]
        self.tables[table] = [row for row in self.tables[table] if row not in removed]
        return removed

    async def next_sequence(self, owner_id: str, doc_type: str, period_key: str) -> int:
        # Yield first so concurrent callers interleave, then increment without awaiting.
        await asyncio.sleep(0)
        key = (owner_id, doc_type, period_key)
        self.sequences[key] = self.sequences.get(key, 0) + 1
        return self.sequences[key]

    async def current_sequence(self, owner_id: str, doc_type: str, period_key: str) -> int:
        return self.sequences.get((owner_id, doc_type, period_key), 0)


@dataclass
class RecordingAuditLogger:
    entries: list[ActivityEntry] = field(default_factory=list)

    async def log(self, entry: ActivityEntry) -> None:
        self.entries.append(entry)


@pytest.fixture
def store():
    """Create an empty in-memory store."""
    return FakeStore()


@pytest.fixture
def audit():
    """Create an audit logger that records entries."""
    return RecordingAuditLogger()


@pytest.fixture
def seed(store):
    """Seed one client with a deal and its mission for the test owner."""
    client = store.add("clients", user_id=OWNER_ID, type="entreprise", nom="Acme Studio")
    deal = store.add(
        "deals",
        user_id=OWNER_ID,
        client_id=client["id"],
        title="Refonte site vitrine",
        status="won",
        estimated_amount="5000.00",
    )
    mission = store.add(
        "missions",
        user_id=OWNER_ID,
        deal_id=deal["id"],
        client_id=client["id"],
        title="Développement site",
        status="in_progress",
        estimated_amount="5000.00",
        total_facture="0.00",
        reste_a_facturer="5000.00",
    )
    return {"client": client, "deal": deal, "mission": mission}


@pytest.fixture
def executor(store, audit):
    """Create a ToolExecutor bound to the test owner with a fixed clock."""
    return ToolExecutor(store, OWNER_ID, audit_logger=audit, clock=lambda: FIXED_NOW)


@pytest.fixture
def ctx(executor):
    """Create a handler context for direct handler calls."""
    return executor.context()


@pytest.fixture
def owner_id():
    return OWNER_ID
