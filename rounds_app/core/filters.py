"""Filter state, sub-type vocabulary, and the transitions that keep them consistent.

Every transition is a pure function taking the current ``FilterState`` and
returning a new one. Cross-field reconciliation (issue types vs. selected
sub-types) happens inside the transition that changes the issue types, never
as a separate follow-up update.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from .config import ISSUE_TYPE_COLUMNS, ISSUE_TYPES, SHORT_MONTH_NAMES, SUB_TYPE_OPTION_KEYS
from .errors import FilterValidationError


@dataclass(slots=True, frozen=True)
class SortSpec:
    column: str
    ascending: bool = False


@dataclass(slots=True, frozen=True)
class FilterState:
    facility: str | None = None
    shift: str | None = None
    year: int | None = None
    month_from: int | None = None
    month_to: int | None = None
    issue_types: frozenset[str] = frozenset()  # empty = all types
    issue_sub_types: frozenset[str] = frozenset()  # empty = all sub-types
    statuses: frozenset[str] = frozenset()  # empty = all statuses
    search: str | None = None
    sort: SortSpec | None = None
    page: int | None = None
    page_size: int | None = None

    @property
    def active_issue_types(self) -> tuple[str, ...]:
        """Selected types in display order, or every type when none is selected."""
        if not self.issue_types:
            return tuple(ISSUE_TYPES)
        return tuple(t for t in ISSUE_TYPES if t in self.issue_types)

    @property
    def sub_type_mode(self) -> bool:
        return bool(self.issue_sub_types)

    @property
    def paginated(self) -> bool:
        return self.page is not None and bool(self.page_size)


@dataclass(slots=True, frozen=True)
class SubTypeVocabulary:
    """Closed set of known sub-type labels per issue type."""

    labels: Mapping[str, frozenset[str]] = field(default_factory=dict)

    @classmethod
    def from_lists(cls, **by_type: Iterable[str] | None) -> SubTypeVocabulary:
        labels = {}
        for issue_type in ISSUE_TYPES:
            values = by_type.get(issue_type) or ()
            labels[issue_type] = frozenset(str(v).strip() for v in values if v and str(v).strip())
        return cls(labels)

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> SubTypeVocabulary:
        """Build from a filter-options payload (``rounds_issues``, ``safety_issues``, ``it_issues``)."""
        return cls.from_lists(**{t: options.get(key) for t, key in SUB_TYPE_OPTION_KEYS.items()})

    @classmethod
    def from_rows(cls, rows: Iterable[Mapping[str, Any]]) -> SubTypeVocabulary:
        collected: dict[str, set[str]] = {t: set() for t in ISSUE_TYPES}
        for row in rows:
            for issue_type, column in ISSUE_TYPE_COLUMNS.items():
                value = row.get(column)
                if value is not None and str(value).strip():
                    collected[issue_type].add(str(value).strip())
        return cls.from_lists(**collected)

    def labels_for(self, issue_type: str) -> frozenset[str]:
        return self.labels.get(issue_type, frozenset())

    def types_for(self, label: str) -> list[str]:
        """Issue types whose vocabulary contains ``label`` (usually one)."""
        return [t for t in ISSUE_TYPES if label in self.labels_for(t)]

    def all_labels(self) -> frozenset[str]:
        out: set[str] = set()
        for issue_type in ISSUE_TYPES:
            out |= self.labels_for(issue_type)
        return frozenset(out)

    def valid_sub_types(self, issue_types: Iterable[str]) -> frozenset[str]:
        selected = list(issue_types) or list(ISSUE_TYPES)
        out: set[str] = set()
        for issue_type in selected:
            out |= self.labels_for(issue_type)
        return frozenset(out)

    def to_dict(self) -> dict[str, list[str]]:
        return {key: sorted(self.labels_for(t)) for t, key in SUB_TYPE_OPTION_KEYS.items()}


DEFAULT_FILTERS = FilterState()


# ------------------ Validation ------------------
def _check_month(value: int | None, name: str) -> None:
    if value is not None and not 1 <= value <= 12:
        raise FilterValidationError(f"{name} must be between 1 and 12, got {value}")


def validate_filters(state: FilterState, vocabulary: SubTypeVocabulary | None = None) -> FilterState:
    _check_month(state.month_from, "monthFrom")
    _check_month(state.month_to, "monthTo")
    if state.month_from is not None and state.month_to is not None and state.month_from > state.month_to:
        raise FilterValidationError(
            f"monthFrom ({state.month_from}) must not be after monthTo ({state.month_to})"
        )
    unknown_types = set(state.issue_types) - set(ISSUE_TYPES)
    if unknown_types:
        raise FilterValidationError(f"Unknown issue types: {', '.join(sorted(unknown_types))}")
    if state.page is not None and state.page < 0:
        raise FilterValidationError("page must be >= 0")
    if state.page_size is not None and state.page_size <= 0:
        raise FilterValidationError("pageSize must be > 0")
    if vocabulary is not None and state.issue_sub_types:
        invalid = state.issue_sub_types - vocabulary.valid_sub_types(state.issue_types)
        if invalid:
            raise FilterValidationError(
                f"Sub-types not valid for the selected issue types: {', '.join(sorted(invalid))}"
            )
    return state


# ------------------ Transitions ------------------
def set_facility(state: FilterState, facility: str | None) -> FilterState:
    return replace(state, facility=facility or None, page=_reset_page(state))


def set_shift(state: FilterState, shift: str | None) -> FilterState:
    return replace(state, shift=shift or None, page=_reset_page(state))


def set_year(state: FilterState, year: int | None) -> FilterState:
    return replace(state, year=year, page=_reset_page(state))


def set_month_range(state: FilterState, month_from: int | None, month_to: int | None) -> FilterState:
    candidate = replace(state, month_from=month_from, month_to=month_to, page=_reset_page(state))
    return validate_filters(candidate)


def toggle_issue_type(state: FilterState, issue_type: str, vocabulary: SubTypeVocabulary) -> FilterState:
    """Flip one issue type and prune sub-types that no longer belong to any selected type."""
    if issue_type not in ISSUE_TYPES:
        raise FilterValidationError(f"Unknown issue type: {issue_type}")
    types = set(state.issue_types)
    types.symmetric_difference_update({issue_type})
    valid = vocabulary.valid_sub_types(types)
    return replace(
        state,
        issue_types=frozenset(types),
        issue_sub_types=frozenset(s for s in state.issue_sub_types if s in valid),
        page=_reset_page(state),
    )


def toggle_issue_sub_type(state: FilterState, sub_type: str, vocabulary: SubTypeVocabulary) -> FilterState:
    selected = set(state.issue_sub_types)
    if sub_type in selected:
        selected.discard(sub_type)
    else:
        if sub_type not in vocabulary.valid_sub_types(state.issue_types):
            raise FilterValidationError(f"Sub-type {sub_type!r} does not belong to a selected issue type")
        selected.add(sub_type)
    return replace(state, issue_sub_types=frozenset(selected), page=_reset_page(state))


def toggle_status(state: FilterState, status: str) -> FilterState:
    statuses = set(state.statuses)
    statuses.symmetric_difference_update({status})
    return replace(state, statuses=frozenset(statuses), page=_reset_page(state))


def set_search(state: FilterState, search: str | None) -> FilterState:
    text = (search or "").strip()
    return replace(state, search=text or None, page=_reset_page(state))


def set_sort(state: FilterState, column: str | None, ascending: bool = False) -> FilterState:
    return replace(state, sort=SortSpec(column, ascending) if column else None)


def set_page(state: FilterState, page: int | None, page_size: int | None = None) -> FilterState:
    candidate = replace(state, page=page, page_size=page_size if page_size is not None else state.page_size)
    return validate_filters(candidate)


def reset_filters(_state: FilterState | None = None) -> FilterState:
    return DEFAULT_FILTERS


def _reset_page(state: FilterState) -> int | None:
    # Any dimension change sends a paginated table back to its first page
    return 0 if state.page is not None else None


def has_active_filters(state: FilterState) -> bool:
    return any(
        (
            state.facility is not None,
            state.shift is not None,
            state.year is not None,
            state.month_from is not None,
            state.month_to is not None,
            bool(state.issue_types),
            bool(state.issue_sub_types),
            bool(state.statuses),
            bool(state.search),
        )
    )


def describe_filters(state: FilterState) -> list[str]:
    """Human-readable summary lines of the active filters (used for export captions)."""
    parts: list[str] = []
    if state.facility:
        parts.append(f"Facility: {state.facility}")
    if state.shift:
        parts.append(f"Shift: {state.shift}")
    if state.year:
        parts.append(f"Year: {state.year}")
    if state.month_from is not None or state.month_to is not None:
        start = SHORT_MONTH_NAMES[state.month_from - 1] if state.month_from is not None else "Jan"
        end = SHORT_MONTH_NAMES[state.month_to - 1] if state.month_to is not None else "Dec"
        parts.append(f"Months: {start} – {end}")
    if state.issue_types:
        parts.append(f"Types: {', '.join(state.active_issue_types)}")
    if state.issue_sub_types:
        parts.append(f"Sub-types: {', '.join(sorted(state.issue_sub_types))}")
    if state.statuses:
        parts.append(f"Statuses: {', '.join(sorted(state.statuses))}")
    return parts


# ------------------ Payload parsing ------------------
def _as_int(value: Any, name: str) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise FilterValidationError(f"{name} must be an integer, got {value!r}") from exc


def _as_str_set(values: Any) -> frozenset[str]:
    if not values:
        return frozenset()
    if isinstance(values, str):
        values = [values]
    return frozenset(str(v).strip() for v in values if v is not None and str(v).strip())


def filters_from_payload(
    body: Mapping[str, Any],
    vocabulary: SubTypeVocabulary | None = None,
) -> FilterState:
    """Build a validated FilterState from an HTTP JSON body with camelCase keys."""
    order_by = body.get("orderBy")
    page = _as_int(body.get("page"), "page")
    page_size = _as_int(body.get("pageSize"), "pageSize")
    state = FilterState(
        facility=(body.get("facility") or None),
        shift=(body.get("shift") or None),
        year=_as_int(body.get("year"), "year"),
        month_from=_as_int(body.get("monthFrom"), "monthFrom"),
        month_to=_as_int(body.get("monthTo"), "monthTo"),
        issue_types=_as_str_set(body.get("issueTypes")),
        issue_sub_types=_as_str_set(body.get("issueSubTypes")),
        statuses=_as_str_set(body.get("statuses")),
        search=(str(body.get("search")).strip() or None) if body.get("search") else None,
        sort=SortSpec(str(order_by), bool(body.get("orderAsc") or False)) if order_by else None,
        page=page,
        page_size=page_size,
    )
    return validate_filters(state, vocabulary)
