"""Recording PostgREST mock shared by repository and service tests.

``MockSupabaseClient.table(name)`` returns a fresh chain that records every
builder call and resolves ``execute()`` to the response configured for that
table. Response shaping follows postgrest:
- maybe_single(): a dict row, the first element of a list, or None
- otherwise: always a list (a configured dict is wrapped)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest


@dataclass
class MockResponse:
    """Configured result for a table. ``error`` is raised from execute() instead."""

    data: Any = None
    error: Exception | None = None


@dataclass
class RecordedCall:
    table: str
    method: str
    args: tuple[Any, ...]
    kwargs: dict[str, Any]


_BUILDER_METHODS = (
    "select", "insert", "update", "upsert", "eq", "gt", "gte", "lte", "ilike", "or_", "order", "limit",
)


class MockRequestBuilder:
    """Chainable stand-in for postgrest's AsyncRequestBuilder."""

    def __init__(self, table: str, response: MockResponse, log: list[RecordedCall]) -> None:
        self._table = table
        self._response = response
        self._log = log
        self._single = False

    def __getattr__(self, method: str) -> Any:
        if method not in _BUILDER_METHODS:
            raise AttributeError(method)

        def _record(*args: Any, **kwargs: Any) -> MockRequestBuilder:
            self._log.append(RecordedCall(self._table, method, args, kwargs))
            return self

        return _record

    def maybe_single(self) -> MockRequestBuilder:
        self._single = True
        self._log.append(RecordedCall(self._table, "maybe_single", (), {}))
        return self

    async def execute(self) -> MockResponse:
        if self._response.error is not None:
            raise self._response.error
        data = self._response.data
        if self._single:
            if isinstance(data, list):
                data = data[0] if data else None
            return MockResponse(data=data)
        if data is None:
            data = []
        elif isinstance(data, dict):
            data = [data]
        return MockResponse(data=data)


@dataclass
class MockSupabaseClient:
    """SupabaseClient double with per-table responses and a call log.

    ``set_responses`` queues one-shot responses that are consumed before the
    table's standing ``set_response`` value.
    """

    _responses: dict[str, MockResponse] = field(default_factory=dict)
    _queues: dict[str, list[MockResponse]] = field(default_factory=dict)
    _rpc_results: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    calls: list[RecordedCall] = field(default_factory=list)
    rpc_calls: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    def set_response(self, table: str, response: MockResponse) -> None:
        self._responses[table] = response

    def set_responses(self, table: str, responses: list[MockResponse]) -> None:
        self._queues[table] = list(responses)

    def set_rpc_response(self, fn_name: str, data: list[dict[str, Any]]) -> None:
        self._rpc_results[fn_name] = data

    def table(self, name: str) -> MockRequestBuilder:
        queue = self._queues.get(name)
        response = queue.pop(0) if queue else self._responses.get(name, MockResponse())
        return MockRequestBuilder(name, response, self.calls)

    async def rpc(self, fn_name: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Unconfigured functions raise, like PostgREST's 404 for a missing function."""
        self.rpc_calls.append((fn_name, params or {}))
        if fn_name not in self._rpc_results:
            msg = f"RPC function {fn_name} not found"
            raise RuntimeError(msg)
        return self._rpc_results[fn_name]

    async def ping(self) -> None:
        await self.table("ai_usage_logs").select("id").limit(1).execute()

    def calls_for(self, table: str, method: str | None = None) -> list[RecordedCall]:
        return [c for c in self.calls if c.table == table and (method is None or c.method == method)]

    def written(self, table: str) -> list[dict[str, Any]]:
        """Payloads passed to insert/upsert/update for ``table``."""
        return [c.args[0] for c in self.calls if c.table == table and c.method in ("insert", "upsert", "update")]


@pytest.fixture
def mock_db() -> MockSupabaseClient:
    return MockSupabaseClient()
