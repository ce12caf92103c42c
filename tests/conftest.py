"""
Pytest configuration and shared fixtures for all tests.

This file is automatically loaded by pytest and provides:
  - Test configuration (env vars set before any src module is imported)
  - An in-memory Supabase client that records queries and upserts
  - Fixed clocks for time-dependent scorers
"""

import os
from datetime import datetime, timedelta, timezone

import pytest

# src.config reads the environment when it is first imported, so these have
# to be in place before collection imports any test module.
os.environ["SUPABASE_URL"] = "http://localhost:54321"
os.environ["SUPABASE_SERVICE_KEY"] = "test-service-key"
os.environ["SERVICE_TOKEN"] = ""
os.environ["CRON_SECRET"] = ""
os.environ["LOG_FILE_PATH"] = ""
os.environ["LANGSMITH_ENABLED"] = "False"

FIXED_NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Chainable stand-in for a PostgREST query builder.

    Filters are recorded, not applied: each table returns whatever rows the
    test configured for it.
    """

    def __init__(self, client, table):
        self.client = client
        self.table = table
        self.ops = []
        self._single = False
        self._upsert = None

    def _record(self, name, *args, **kwargs):
        self.ops.append((name, args, kwargs))
        return self

    def select(self, *args, **kwargs):
        return self._record("select", *args, **kwargs)

    def eq(self, *args):
        return self._record("eq", *args)

    def neq(self, *args):
        return self._record("neq", *args)

    def gte(self, *args):
        return self._record("gte", *args)

    def lte(self, *args):
        return self._record("lte", *args)

    def in_(self, *args):
        return self._record("in_", *args)

    def order(self, *args, **kwargs):
        return self._record("order", *args, **kwargs)

    def limit(self, *args):
        return self._record("limit", *args)

    def range(self, *args):
        return self._record("range", *args)

    def maybe_single(self):
        self._single = True
        return self._record("maybe_single")

    def upsert(self, payload, **kwargs):
        self._upsert = payload
        return self._record("upsert", payload, **kwargs)

    def execute(self):
        self.client.calls.append((self.table, self.ops))
        configured = self.client.tables.get(self.table, [])
        if isinstance(configured, Exception):
            raise configured

        if self._upsert is not None:
            self.client.upserts.setdefault(self.table, []).append(self._upsert)
            return FakeResponse([self._upsert])

        if self._single:
            if not configured:
                return None
            return FakeResponse(configured[0])
        return FakeResponse(list(configured))


class FakeSupabaseClient:
    """In-memory Supabase client keyed by table name.

    ``tables`` maps a table to its rows, or to an exception that every query
    on that table raises.
    """

    def __init__(self, tables=None):
        self.tables = dict(tables or {})
        self.calls = []
        self.upserts = {}

    def table(self, name):
        return FakeQuery(self, name)

    def tables_queried(self):
        return [table for table, _ in self.calls]


@pytest.fixture
def fixed_now():
    """A fixed 'now' so window and urgency maths are deterministic."""
    return FIXED_NOW


@pytest.fixture
def iso_from_now():
    """Build an ISO timestamp offset from the fixed clock."""

    def _iso(**delta):
        return (FIXED_NOW + timedelta(**delta)).isoformat()

    return _iso


@pytest.fixture
def fake_supabase(monkeypatch):
    """
    Install an in-memory Supabase client as the service-wide client.

    Example:
        def test_something(fake_supabase):
            fake_supabase.tables["user_traits"] = [...]
    """
    from src.tools import supabase_tools

    client = FakeSupabaseClient()
    monkeypatch.setattr(supabase_tools, "_client", client)
    return client
