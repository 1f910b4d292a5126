"""Shared fixtures for integration tests.

Integration tests drive real HTTP requests through the full application
(validation, rate limiting, feature services, orchestrator, ledgers) with
an in-memory PostgREST store, in-memory Redis and a scripted model provider.
"""

from __future__ import annotations

import copy
import re
from datetime import datetime
from typing import Any

import pytest

from tests.unit.services.ai.conftest import FakeProvider, MockRedisClient

# Re-export for convenience in sub-conftest files
__all__ = [
    "FakeProvider",
    "InMemorySupabase",
    "MockRedisClient",
]

_OR_CLAUSE_RE = re.compile(r"^(\w+)\.ilike\.(.*)$")


def _comparable(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return value
    return value


def _ilike(value: Any, pattern: str) -> bool:
    if value is None:
        return False
    needle = pattern.strip("%").lower()
    return needle in str(value).lower()


# ---------------------------------------------------------------------------
# In-memory PostgREST store
# ---------------------------------------------------------------------------


class _Result:
    def __init__(self, data: Any) -> None:
        self.data = data
        self.count = None


class _Query:
    """Subset of postgrest's AsyncRequestBuilder used by the repositories."""

    def __init__(self, store: InMemorySupabase, table: str) -> None:
        self._store = store
        self._table = table
        self._op = "select"
        self._payload: dict[str, Any] | None = None
        self._on_conflict = "id"
        self._filters: list[Any] = []
        self._order: tuple[str, bool] | None = None
        self._limit: int | None = None
        self._single = False

    def select(self, *_columns: str, **_kwargs: Any) -> _Query:
        self._op = "select"
        return self

    def insert(self, row: dict[str, Any]) -> _Query:
        self._op, self._payload = "insert", row
        return self

    def upsert(self, row: dict[str, Any], on_conflict: str = "id") -> _Query:
        self._op, self._payload, self._on_conflict = "upsert", row, on_conflict
        return self

    def update(self, row: dict[str, Any]) -> _Query:
        self._op, self._payload = "update", row
        return self

    def eq(self, column: str, value: Any) -> _Query:
        self._filters.append(lambda r: r.get(column) == value)
        return self

    def gt(self, column: str, value: Any) -> _Query:
        self._filters.append(lambda r: r.get(column) is not None and _comparable(r[column]) > _comparable(value))
        return self

    def gte(self, column: str, value: Any) -> _Query:
        self._filters.append(lambda r: r.get(column) is not None and float(r[column]) >= float(value))
        return self

    def lte(self, column: str, value: Any) -> _Query:
        self._filters.append(lambda r: r.get(column) is not None and float(r[column]) <= float(value))
        return self

    def ilike(self, column: str, pattern: str) -> _Query:
        self._filters.append(lambda r: _ilike(r.get(column), pattern))
        return self

    def or_(self, expression: str) -> _Query:
        clauses = [m.groups() for m in (_OR_CLAUSE_RE.match(part) for part in expression.split(",")) if m]
        self._filters.append(lambda r: any(_ilike(r.get(col), pat) for col, pat in clauses))
        return self

    def order(self, column: str, desc: bool = False) -> _Query:
        self._order = (column, desc)
        return self

    def limit(self, count: int) -> _Query:
        self._limit = count
        return self

    def maybe_single(self) -> _Query:
        self._single = True
        return self

    def _matches(self) -> list[dict[str, Any]]:
        return [r for r in self._store.rows(self._table) if all(f(r) for f in self._filters)]

    async def execute(self) -> _Result:
        if self._table in self._store.failing:
            msg = f"relation {self._table} unavailable"
            raise ConnectionError(msg)

        rows = self._store.rows(self._table)
        if self._op == "insert":
            assert self._payload is not None
            row = copy.deepcopy(self._payload)
            rows.append(row)
            return _Result([row])
        if self._op == "upsert":
            assert self._payload is not None
            key = self._on_conflict
            rows[:] = [r for r in rows if r.get(key) != self._payload.get(key)]
            row = copy.deepcopy(self._payload)
            rows.append(row)
            return _Result([row])
        if self._op == "update":
            assert self._payload is not None
            matched = self._matches()
            for r in matched:
                r.update(copy.deepcopy(self._payload))
            return _Result(matched)

        found = self._matches()
        if self._order is not None:
            column, desc = self._order
            found.sort(key=lambda r: str(r.get(column) or ""), reverse=desc)
        if self._limit is not None:
            found = found[: self._limit]
        found = copy.deepcopy(found)
        if self._single:
            return _Result(found[0] if found else None)
        return _Result(found)


class InMemorySupabase:
    """Stateful stand-in for db.client.SupabaseClient.

    Tables are lists of row dicts; ``failing`` holds table names whose
    queries raise, to exercise best-effort persistence.
    """

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.failing: set[str] = set()
        self.rpc_calls: list[tuple[str, dict[str, Any]]] = []

    def rows(self, table: str) -> list[dict[str, Any]]:
        return self.tables.setdefault(table, [])

    def table(self, name: str) -> _Query:
        return _Query(self, name)

    async def rpc(self, fn_name: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        params = params or {}
        self.rpc_calls.append((fn_name, params))
        if fn_name != "increment_cache_hit":
            msg = f"RPC function {fn_name} not found"
            raise RuntimeError(msg)
        for row in self.rows("ai_cache"):
            if row.get("cache_key") == params["cache_key_param"]:
                row["hit_count"] = row.get("hit_count", 0) + 1
                row["tokens_saved"] = row.get("tokens_saved", 0) + params["tokens_saved_param"]
        return []

    async def ping(self) -> None:
        await self.table("ai_usage_logs").select("id").limit(1).execute()

    async def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> InMemorySupabase:
    return InMemorySupabase()


@pytest.fixture
def mock_redis() -> MockRedisClient:
    return MockRedisClient()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()
