# tests/supabase_mocks.py

"""
Supabase stand-ins for tests.

Routers are patched with `patch("routers.<name>.get_supabase_client")`
returning `make_supabase(...)`: every table gets a chainable MagicMock
query whose `execute()` returns the configured rows.
"""

from unittest.mock import MagicMock, Mock

CHAIN_METHODS = (
    "select", "insert", "update", "upsert", "delete",
    "eq", "neq", "in_", "gt", "gte", "lt", "lte", "ilike", "or_", "is_",
    "order", "limit", "range", "single", "maybe_single",
)


def make_query(*results) -> MagicMock:
    """
    Chainable query mock. One result is returned for every execute();
    several are returned in order.
    """
    query = MagicMock()
    for name in CHAIN_METHODS:
        getattr(query, name).return_value = query
    if len(results) <= 1:
        query.execute.return_value = Mock(data=results[0] if results else [], count=None)
    else:
        query.execute.side_effect = [Mock(data=r, count=None) for r in results]
    return query


def make_supabase(tables: dict = None) -> MagicMock:
    """
    tables: {"fees": [rows]} or {"fees": make_query(first, second)}.
    Tables not listed return no rows. Queries are exposed on `client.queries`.
    """
    client = MagicMock()
    queries = {}
    for name, value in (tables or {}).items():
        queries[name] = value if isinstance(value, MagicMock) else make_query(value)

    def table(name):
        if name not in queries:
            queries[name] = make_query([])
        return queries[name]

    client.table.side_effect = table
    client.queries = queries
    return client
