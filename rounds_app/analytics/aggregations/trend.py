"""Monthly trend aggregations (raw issue rows and pre-aggregated view rows)."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

import pandas as pd

from rounds_app.analytics.aggregations.facility import issue_frame, sub_type_buckets, sub_type_hits
from rounds_app.analytics.metrics.derived import year_month_label
from rounds_app.core.filters import FilterState, SubTypeVocabulary
from rounds_app.core.models import MonthlyBucket

TREND_VIEW_COUNTS: dict[str, str] = {
    "total": "total_issues",
    "rounds": "rounds_count",
    "safety": "safety_count",
    "it": "it_count",
}


def monthly_series(
    rows: Iterable[Mapping[str, Any]],
    filters: FilterState | None = None,
    vocabulary: SubTypeVocabulary | None = None,
) -> list[MonthlyBucket]:
    """Group rows by ``YYYY-MM`` of ``round_date`` (undated rows skipped), oldest first."""
    rows = list(rows)
    filters = filters or FilterState()
    df = issue_frame(rows)
    df = df[df["year_month"].notna()]
    if df.empty:
        return []

    grouped = (
        df.groupby("year_month")
        .agg(
            total=("rounds", "size"),
            rounds=("rounds", "sum"),
            safety=("safety", "sum"),
            it=("it", "sum"),
        )
        .sort_index()
    )
    buckets = {
        ym: MonthlyBucket(
            year_month=ym,
            label=year_month_label(ym),
            total=int(rec["total"]),
            rounds=int(rec["rounds"]),
            safety=int(rec["safety"]),
            it=int(rec["it"]),
        )
        for ym, rec in grouped.iterrows()
    }

    if filters.sub_type_mode:
        vocabulary = vocabulary or SubTypeVocabulary.from_rows(rows)
        for bucket in buckets.values():
            bucket.sub_types = sub_type_buckets(filters)
        for ym, label in sub_type_hits(df, "year_month", filters, vocabulary):
            buckets[ym].sub_types[label] += 1

    return list(buckets.values())


def aggregate_trend_rows(trend_rows: Iterable[Mapping[str, Any]]) -> list[MonthlyBucket]:
    """Sum pre-aggregated ``v_monthly_trend`` rows by ``year_month`` (e.g. across groups)."""
    df = pd.DataFrame(list(trend_rows))
    if df.empty or "year_month" not in df.columns:
        return []
    df = df[df["year_month"].notna()].copy()
    df["year_month"] = df["year_month"].astype(str).str[:7]
    for column in TREND_VIEW_COUNTS.values():
        if column in df.columns:
            df[column] = pd.to_numeric(df[column], errors="coerce").fillna(0)
        else:
            df[column] = 0
    grouped = df.groupby("year_month")[list(TREND_VIEW_COUNTS.values())].sum().sort_index()
    return [
        MonthlyBucket(
            year_month=ym,
            label=year_month_label(ym),
            **{key: int(rec[column]) for key, column in TREND_VIEW_COUNTS.items()},
        )
        for ym, rec in grouped.iterrows()
    ]
