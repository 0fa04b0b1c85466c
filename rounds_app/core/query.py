"""Compile a FilterState snapshot into an immutable backend query descriptor.

A descriptor is an ordered tuple of predicate clauses plus optional ordering
and an optional offset/limit window. Each clause knows how to apply itself to
a postgrest request builder, so the store client never inspects filter state.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from typing import Any

from .config import DATE_COLUMN, ISSUE_CORE_COLUMNS, ISSUE_TYPE_COLUMNS, ISSUES_TABLE, SEARCH_FIELDS
from .errors import FilterValidationError
from .filters import FilterState, SubTypeVocabulary

# Characters with meaning inside a PostgREST or=(...) expression
_RESERVED = set(',.:()"\\ ')


def quote_value(value: str) -> str:
    """Quote a value for use inside a PostgREST logic-tree expression when needed."""
    if not value or any(ch in _RESERVED for ch in value):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return value


@dataclass(slots=True, frozen=True)
class Eq:
    column: str
    value: Any

    def apply(self, query):
        return query.eq(self.column, self.value)


@dataclass(slots=True, frozen=True)
class DateRange:
    """Half-open range ``[gte, lt)`` on a date column (ISO ``YYYY-MM-DD`` bounds)."""

    column: str
    gte: str
    lt: str

    def apply(self, query):
        return query.gte(self.column, self.gte).lt(self.column, self.lt)


@dataclass(slots=True, frozen=True)
class NotNull:
    column: str

    def apply(self, query):
        return query.not_.is_(self.column, "null")


@dataclass(slots=True, frozen=True)
class InSet:
    column: str
    values: tuple[str, ...]

    def apply(self, query):
        return query.in_(self.column, list(self.values))


@dataclass(slots=True, frozen=True)
class OrGroup:
    """Alternatives in PostgREST syntax, e.g. ``("rounds_issue.not.is.null", ...)``."""

    conditions: tuple[str, ...]

    @property
    def expression(self) -> str:
        return ",".join(self.conditions)

    def apply(self, query):
        return query.or_(self.expression)


Clause = Eq | DateRange | NotNull | InSet | OrGroup


@dataclass(slots=True, frozen=True)
class Ordering:
    column: str
    ascending: bool = False


@dataclass(slots=True, frozen=True)
class QueryDescriptor:
    table: str
    columns: str
    clauses: tuple[Clause, ...] = ()
    order: Ordering | None = None
    offset: int | None = None
    limit: int | None = None
    count: bool = False
    # Set when a month range must be applied to fetched rows (no year given)
    client_month_range: tuple[int, int] | None = None

    @property
    def bounded(self) -> bool:
        return self.limit is not None

    def with_window(self, offset: int, limit: int) -> QueryDescriptor:
        return replace(self, offset=offset, limit=limit)

    def with_count(self, count: bool = True) -> QueryDescriptor:
        return replace(self, count=count)


def select_columns(columns: Iterable[str] | str) -> str:
    if isinstance(columns, str):
        return columns
    return ", ".join(columns)


def describe_query(
    table: str,
    columns: Iterable[str] | str = "*",
    clauses: Iterable[Clause] = (),
    order: Ordering | None = None,
) -> QueryDescriptor:
    """Descriptor for a fixed (non filter-driven) read such as a view or lookup."""
    return QueryDescriptor(table=table, columns=select_columns(columns), clauses=tuple(clauses), order=order)


# ------------------ Date range ------------------
def _month_start(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}-01"


def _month_after(year: int, month: int) -> str:
    if month == 12:
        return _month_start(year + 1, 1)
    return _month_start(year, month + 1)


def date_range(year: int | None, month_from: int | None, month_to: int | None) -> tuple[str, str] | None:
    """Half-open ``[start, end)`` bounds for the year/month selection, or None without a year."""
    if year is None:
        return None
    start = _month_start(year, month_from) if month_from is not None else _month_start(year, 1)
    end = _month_after(year, month_to) if month_to is not None else _month_start(year + 1, 1)
    return start, end


def client_month_range(state: FilterState) -> tuple[int, int] | None:
    if state.year is not None:
        return None
    if state.month_from is None and state.month_to is None:
        return None
    return (state.month_from or 1, state.month_to or 12)


# ------------------ Predicates ------------------
def issue_type_clause(issue_types: Iterable[str]) -> OrGroup | None:
    selected = set(issue_types)
    conditions = tuple(f"{column}.not.is.null" for t, column in ISSUE_TYPE_COLUMNS.items() if t in selected)
    return OrGroup(conditions) if conditions else None


def group_sub_types(sub_types: Iterable[str], vocabulary: SubTypeVocabulary) -> dict[str, list[str]]:
    """Group selected sub-types by the type column whose vocabulary contains them."""
    grouped: dict[str, list[str]] = {}
    for label in sorted(set(sub_types)):
        for issue_type in vocabulary.types_for(label):
            grouped.setdefault(ISSUE_TYPE_COLUMNS[issue_type], []).append(label)
    # Stable column order follows the issue type display order
    return {c: grouped[c] for c in ISSUE_TYPE_COLUMNS.values() if c in grouped}


def sub_type_clause(sub_types: Iterable[str], vocabulary: SubTypeVocabulary) -> OrGroup | None:
    grouped = group_sub_types(sub_types, vocabulary)
    conditions = tuple(
        f"{column}.in.({','.join(quote_value(label) for label in labels)})" for column, labels in grouped.items()
    )
    return OrGroup(conditions) if conditions else None


def _required_sub_type_clause(
    sub_types: frozenset[str], vocabulary: SubTypeVocabulary | None
) -> OrGroup | None:
    if not sub_types:
        return None
    if vocabulary is None:
        raise FilterValidationError("Sub-type filters need the sub-type vocabulary to resolve their columns")
    unresolved = sorted(label for label in sub_types if not vocabulary.types_for(label))
    if unresolved:
        raise FilterValidationError(f"Unknown sub-types: {', '.join(unresolved)}")
    return sub_type_clause(sub_types, vocabulary)


def _search_term(search: str) -> str:
    # Separators of the or=(...) tree cannot be escaped inside an ilike pattern
    return "".join(ch for ch in search if ch not in ",()").strip()


def search_clause(search: str | None, fields: Iterable[str] = SEARCH_FIELDS) -> OrGroup | None:
    term = _search_term(search or "")
    if not term:
        return None
    return OrGroup(tuple(f"{field}.ilike.%{term}%" for field in fields))


# ------------------ Compiler ------------------
def compile_filters(
    state: FilterState,
    vocabulary: SubTypeVocabulary | None = None,
    *,
    table: str = ISSUES_TABLE,
    columns: Iterable[str] | str = ISSUE_CORE_COLUMNS,
    count: bool = False,
) -> QueryDescriptor:
    """Map a filter snapshot to a query descriptor.

    Callers validate first. Selected sub-types must all resolve to a type
    column through ``vocabulary``, otherwise ``FilterValidationError`` is
    raised instead of compiling a query without the sub-type predicate.
    Without an explicit page/pageSize the descriptor is unbounded and the
    paginated fetcher walks the backend row cap.
    """
    clauses: list[Clause] = []
    if state.facility is not None:
        clauses.append(Eq("facility", state.facility))
    if state.shift is not None:
        clauses.append(Eq("shift", state.shift))
    if state.statuses:
        clauses.append(InSet("issue_status", tuple(sorted(state.statuses))))

    bounds = date_range(state.year, state.month_from, state.month_to)
    if bounds is not None:
        clauses.append(DateRange(DATE_COLUMN, *bounds))

    for clause in (
        issue_type_clause(state.issue_types),
        _required_sub_type_clause(state.issue_sub_types, vocabulary),
        search_clause(state.search),
    ):
        if clause is not None:
            clauses.append(clause)

    order = Ordering(state.sort.column, state.sort.ascending) if state.sort else None
    offset = limit = None
    if state.paginated:
        offset = state.page * state.page_size
        limit = state.page_size

    return QueryDescriptor(
        table=table,
        columns=select_columns(columns),
        clauses=tuple(clauses),
        order=order,
        offset=offset,
        limit=limit,
        count=count,
        client_month_range=client_month_range(state),
    )


def filter_rows_by_month(
    rows: Iterable[Mapping[str, Any]],
    month_range: tuple[int, int] | None,
    date_column: str = DATE_COLUMN,
) -> list[Mapping[str, Any]]:
    """Keep rows whose date month falls in the inclusive ``[from, to]`` range.

    The range does not wrap across the year end; rows without a parsable date
    are dropped.
    """
    rows = list(rows)
    if month_range is None:
        return rows
    month_from, month_to = month_range
    out = []
    for row in rows:
        value = row.get(date_column)
        if not value:
            continue
        digits = str(value)[5:7]
        if not digits.isdigit():
            continue
        if month_from <= int(digits) <= month_to:
            out.append(row)
    return out
