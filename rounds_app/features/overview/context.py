"""Pure helpers to build the overview view model from fetched issue rows."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from rounds_app.analytics.aggregations.facility import (
    facility_breakdown,
    issue_type_distribution,
    shift_distribution,
    sub_type_buckets,
    sub_type_label,
    summary_stats,
)
from rounds_app.analytics.aggregations.trend import monthly_series
from rounds_app.core.filters import FilterState, SubTypeVocabulary, describe_filters, has_active_filters


@dataclass(slots=True)
class OverviewContext:
    """Everything the overview page renders for one filter snapshot."""

    filters: FilterState
    summary: dict[str, int]
    facilities: list[dict[str, Any]]
    issue_types: dict[str, int]
    trend: list[dict[str, Any]]
    shifts: list[dict[str, Any]] = field(default_factory=list)
    # Sub-type series keys (selected labels plus the fallback bucket)
    sub_type_keys: list[str] = field(default_factory=list)
    filter_lines: list[str] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return self.summary.get("total_issues", 0) == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "facilities": self.facilities,
            "issueTypes": self.issue_types,
            "trend": self.trend,
            "shifts": self.shifts,
            "subTypeKeys": self.sub_type_keys,
            "subTypeLabels": {key: sub_type_label(key) for key in self.sub_type_keys},
            "filtersActive": has_active_filters(self.filters),
            "filterLines": self.filter_lines,
        }


def build_overview_context(
    rows: Iterable[Mapping[str, Any]],
    filters: FilterState | None = None,
    vocabulary: SubTypeVocabulary | None = None,
    facilities: Sequence[str] = (),
) -> OverviewContext:
    """Build the overview view model.

    Parameters
    ----------
    rows : iterable of mappings
        Complete filtered row set (never a partially paginated one).
    filters : FilterState, optional
        Snapshot the rows were fetched with; drives type and sub-type columns.
    vocabulary : SubTypeVocabulary, optional
        Known sub-types per type; derived from ``rows`` when omitted.
    facilities : sequence of str
        Facilities in scope; each appears in the breakdown even with no rows.

    Returns
    -------
    OverviewContext
        Zero-valued but well-formed when ``rows`` is empty.
    """
    rows = list(rows)
    filters = filters or FilterState()
    if filters.facility and not facilities:
        facilities = [filters.facility]
    if vocabulary is None and filters.sub_type_mode:
        vocabulary = SubTypeVocabulary.from_rows(rows)

    breakdown = facility_breakdown(rows, filters, vocabulary, facilities)
    trend = monthly_series(rows, filters, vocabulary)
    return OverviewContext(
        filters=filters,
        summary=summary_stats(rows),
        facilities=[entry.to_dict() for entry in breakdown],
        issue_types=issue_type_distribution(rows, filters),
        trend=[bucket.to_dict() for bucket in trend],
        shifts=shift_distribution(rows),
        sub_type_keys=list(sub_type_buckets(filters)) if filters.sub_type_mode else [],
        filter_lines=describe_filters(filters),
    )
