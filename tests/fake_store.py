"""In-memory stand-in for IssueStore used across the test suite.

Evaluates query descriptors against lists of dict rows, records every
select/RPC call, and can be told to fail selected tables, RPCs or calls.
"""

from __future__ import annotations

import threading

from rounds_app.core.errors import StoreError
from rounds_app.core.models import Page
from rounds_app.core.query import DateRange, Eq, InSet, NotNull, OrGroup


def _split_values(body):
    values = []
    for part in body.split(","):
        part = part.strip()
        if len(part) >= 2 and part[0] == part[-1] == '"':
            part = part[1:-1]
        values.append(part)
    return values


def _condition_matches(row, condition):
    if condition.endswith(".not.is.null"):
        return row.get(condition[: -len(".not.is.null")]) is not None
    if ".in.(" in condition:
        column, _, body = condition.partition(".in.(")
        return row.get(column) in _split_values(body.rstrip(")"))
    if ".ilike." in condition:
        column, _, pattern = condition.partition(".ilike.")
        needle = pattern.strip("%").lower()
        return needle in str(row.get(column) or "").lower()
    raise AssertionError(f"unsupported condition {condition}")


def _clause_matches(row, clause):
    if isinstance(clause, Eq):
        return row.get(clause.column) == clause.value
    if isinstance(clause, DateRange):
        value = row.get(clause.column)
        return value is not None and clause.gte <= str(value) < clause.lt
    if isinstance(clause, NotNull):
        return row.get(clause.column) is not None
    if isinstance(clause, InSet):
        return row.get(clause.column) in clause.values
    if isinstance(clause, OrGroup):
        return any(_condition_matches(row, c) for c in clause.conditions)
    raise AssertionError(f"unsupported clause {clause!r}")


class FakeStore:
    def __init__(self, tables=None, rpc=None, fail_tables=(), fail_after=None):
        self.tables = {name: list(rows) for name, rows in (tables or {}).items()}
        self.rpc_results = dict(rpc or {})
        self.fail_tables = set(fail_tables)
        # Fail every select once this many selects have succeeded
        self.fail_after = fail_after
        self.selects = []
        self.rpc_calls = []
        self._lock = threading.Lock()

    def select(self, descriptor):
        with self._lock:
            self.selects.append(descriptor)
            calls = len(self.selects)
        if descriptor.table in self.fail_tables:
            raise StoreError(f"Query on {descriptor.table} failed: boom")
        if self.fail_after is not None and calls > self.fail_after:
            raise StoreError(f"Query on {descriptor.table} failed: connection reset")

        rows = [r for r in self.tables.get(descriptor.table, []) if all(_clause_matches(r, c) for c in descriptor.clauses)]
        if descriptor.order is not None:
            column = descriptor.order.column
            rows.sort(key=lambda r: (r.get(column) is None, r.get(column)), reverse=not descriptor.order.ascending)
        count = len(rows) if descriptor.count else None
        if descriptor.limit is not None:
            start = descriptor.offset or 0
            rows = rows[start : start + descriptor.limit]
        return Page(rows=[dict(r) for r in rows], count=count)

    def rpc(self, name, params=None):
        with self._lock:
            self.rpc_calls.append((name, dict(params or {})))
        result = self.rpc_results.get(name)
        if callable(result):
            result = result(params or {})
        if isinstance(result, Exception):
            raise result
        return result
