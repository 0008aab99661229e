"""Pytest configuration and fixtures."""

import asyncio
import os
from datetime import date
from typing import Any
from uuid import uuid4

import pytest

# Set test environment variables before importing settings
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "service-role-test")

from recurring_accounts.clients.backing_store import BackingStoreError  # noqa: E402


def _normalize(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    return value


class InMemoryStore:
    """Backing store double keeping rows in plain lists."""

    def __init__(self, tables: dict[str, list[dict[str, Any]]] | None = None):
        self.tables: dict[str, list[dict[str, Any]]] = {
            "accounts_payable": [],
            "accounts_receivable": [],
        }
        for table, rows in (tables or {}).items():
            self.tables[table] = [dict(row) for row in rows]
        self.failing_tables: dict[str, BackingStoreError] = {}
        self.insert_errors: list[BackingStoreError] = []
        self.queries: list[tuple[str, dict[str, Any]]] = []
        self.query_delays: dict[str, float] = {}
        self.closed = False

    async def query(
        self,
        table: str,
        filters: dict[str, Any],
        select: str = "*",
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        self.queries.append((table, dict(filters)))
        if table in self.query_delays:
            await asyncio.sleep(self.query_delays[table])
        if table in self.failing_tables:
            raise self.failing_tables[table]
        rows = [
            dict(row)
            for row in self.tables.get(table, [])
            if all(_normalize(row.get(k)) == _normalize(v) for k, v in filters.items())
        ]
        return rows[:limit] if limit is not None else rows

    async def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        if self.insert_errors:
            raise self.insert_errors.pop(0)
        row = {"id": str(uuid4()), **record}
        self.tables.setdefault(table, []).append(row)
        return dict(row)

    def instances(self, table: str) -> list[dict[str, Any]]:
        return [row for row in self.tables[table] if row.get("is_recurring") is False]

    async def close(self) -> None:
        self.closed = True

    async def __aenter__(self) -> "InMemoryStore":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


@pytest.fixture
def payable_record():
    """Factory for raw accounts_payable template rows."""

    def _make(**overrides: Any) -> dict[str, Any]:
        record = {
            "id": "10000000-0000-0000-0000-000000000001",
            "company_id": "20000000-0000-0000-0000-000000000001",
            "supplier_id": "30000000-0000-0000-0000-000000000001",
            "description": "Aluguel",
            "amount": "1500.00",
            "due_date": "2025-01-15",
            "recurrence_frequency": "monthly",
            "recurrence_interval": 1,
            "recurrence_end_date": None,
            "status": "pending",
            "is_recurring": True,
            "payment_method": "pix",
            "notes": None,
            "category_id": "40000000-0000-0000-0000-000000000001",
            "cost_center_id": "50000000-0000-0000-0000-000000000001",
        }
        record.update(overrides)
        return record

    return _make


@pytest.fixture
def receivable_record():
    """Factory for raw accounts_receivable template rows."""

    def _make(**overrides: Any) -> dict[str, Any]:
        record = {
            "id": "60000000-0000-0000-0000-000000000001",
            "company_id": "20000000-0000-0000-0000-000000000001",
            "customer_id": "70000000-0000-0000-0000-000000000001",
            "description": "Mensalidade consultoria",
            "amount": "899.90",
            "due_date": "2025-01-20",
            "recurrence_frequency": "monthly",
            "recurrence_interval": 1,
            "recurrence_end_date": None,
            "status": "pending",
            "is_recurring": True,
            "payment_method": "boleto",
            "notes": "Contrato anual",
            "cost_center_id": "50000000-0000-0000-0000-000000000001",
        }
        record.update(overrides)
        return record

    return _make


@pytest.fixture
def store():
    """Empty in-memory backing store."""
    return InMemoryStore()


@pytest.fixture
def make_store():
    """Factory for in-memory stores seeded with rows."""
    return InMemoryStore
