"""Facility, issue-type and shift aggregations over fetched issue rows."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import Any

import pandas as pd

from rounds_app.analytics.metrics.derived import add_type_flags, round_half_up
from rounds_app.core.config import (
    ISSUE_TYPE_COLUMNS,
    ISSUE_TYPE_KEYS,
    UNRECOGNIZED_SUB_TYPE,
    UNRECOGNIZED_SUB_TYPE_LABEL,
)
from rounds_app.core.filters import FilterState, SubTypeVocabulary
from rounds_app.core.mappers import issues_to_dataframe
from rounds_app.core.models import FacilityCounts

UNKNOWN_FACILITY = "Unknown"


def issue_frame(rows: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    df = add_type_flags(issues_to_dataframe(rows))
    df["facility"] = df["facility"].fillna(UNKNOWN_FACILITY)
    return df


def sub_type_buckets(filters: FilterState) -> dict[str, int]:
    """Zeroed counters for the selected sub-types plus the unrecognized bucket."""
    return dict.fromkeys([*sorted(filters.issue_sub_types), UNRECOGNIZED_SUB_TYPE], 0)


def sub_type_label(key: str) -> str:
    return UNRECOGNIZED_SUB_TYPE_LABEL if key == UNRECOGNIZED_SUB_TYPE else key


def sub_type_hits(
    df: pd.DataFrame,
    key: str,
    filters: FilterState,
    vocabulary: SubTypeVocabulary,
) -> Iterator[tuple[Any, str]]:
    """Yield ``(key value, sub-type bucket)`` once per row and active type column.

    Selected labels count under their own name; labels outside the type's
    known vocabulary count under ``UNRECOGNIZED_SUB_TYPE``; other known labels
    are ignored. A dual-type row yields one hit per type it carries.
    """
    if df.empty:
        return
    for issue_type in filters.active_issue_types:
        column = ISSUE_TYPE_COLUMNS[issue_type]
        values = df[column]
        known = vocabulary.labels_for(issue_type)
        selected = [label for label in filters.issue_sub_types if label in known]
        bucket = values.where(values.isin(selected))
        bucket = bucket.mask(values.notna() & ~values.isin(list(known)), UNRECOGNIZED_SUB_TYPE)
        hits = pd.DataFrame({"key": df[key], "bucket": bucket}).dropna()
        yield from hits.itertuples(index=False, name=None)


def facility_breakdown(
    rows: Iterable[Mapping[str, Any]],
    filters: FilterState | None = None,
    vocabulary: SubTypeVocabulary | None = None,
    facilities: Sequence[str] = (),
) -> list[FacilityCounts]:
    """Per-facility totals, per-type counts and (in sub-type mode) sub-type counts.

    Every facility in ``facilities`` gets an entry even with zero matching
    rows. Totals are row counts; per-type counts may exceed the total because
    a row can belong to several types.
    """
    rows = list(rows)
    filters = filters or FilterState()
    df = issue_frame(rows)
    order = list(dict.fromkeys([*facilities, *df["facility"].tolist()]))
    counts = {facility: FacilityCounts(facility) for facility in order}

    if not df.empty:
        grouped = df.groupby("facility", sort=False).agg(
            total=("rounds", "size"),
            rounds=("rounds", "sum"),
            safety=("safety", "sum"),
            it=("it", "sum"),
            group_count=("group_name", "nunique"),
        )
        for facility, rec in grouped.iterrows():
            entry = counts[facility]
            entry.total = int(rec["total"])
            entry.rounds = int(rec["rounds"])
            entry.safety = int(rec["safety"])
            entry.it = int(rec["it"])
            entry.group_count = int(rec["group_count"])

    if filters.sub_type_mode:
        vocabulary = vocabulary or SubTypeVocabulary.from_rows(rows)
        for entry in counts.values():
            entry.sub_types = sub_type_buckets(filters)
        for facility, bucket in sub_type_hits(df, "facility", filters, vocabulary):
            counts[facility].sub_types[bucket] += 1

    return list(counts.values())


def issue_type_distribution(
    rows: Iterable[Mapping[str, Any]],
    filters: FilterState | None = None,
) -> dict[str, int]:
    """Row counts per issue type, restricted to the selected types (all when none)."""
    filters = filters or FilterState()
    df = issue_frame(rows)
    return {t: int(df[ISSUE_TYPE_KEYS[t]].sum()) for t in filters.active_issue_types}


def summary_stats(rows: Iterable[Mapping[str, Any]]) -> dict[str, int]:
    df = issue_frame(rows)
    typed = df["rounds"] | df["safety"] | df["it"]
    return {
        "total_issues": int(len(df)),
        "facilities_count": int(df["facility"].nunique()),
        "rounds_count": int(df["rounds"].sum()),
        "safety_count": int(df["safety"].sum()),
        "it_count": int(df["it"].sum()),
        "typed_count": int(typed.sum()),
    }


def shift_distribution(rows: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Issue count per (facility, shift) with the shift's share of the facility total."""
    df = issue_frame(rows)
    df = df[df["shift"].notna()]
    if df.empty:
        return []
    counts = df.groupby(["facility", "shift"], sort=False).size().rename("issue_count").reset_index()
    totals = counts.groupby("facility")["issue_count"].transform("sum")
    out = []
    for rec, total in zip(counts.to_dict("records"), totals, strict=True):
        out.append(
            {
                "facility": rec["facility"],
                "shift": rec["shift"],
                "issue_count": int(rec["issue_count"]),
                "percentage": round_half_up(rec["issue_count"] / total * 100, 1),
            }
        )
    return out
