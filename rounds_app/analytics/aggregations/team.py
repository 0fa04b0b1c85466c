"""Monitoring-team aggregations: heatmap, daily activity and monthly timeline."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

import pandas as pd

from rounds_app.core.config import TEAM_ACTIVITY_MONTHS, TEAM_COLUMN
from rounds_app.core.mappers import records_to_dataframe
from rounds_app.core.models import ActivityMatrix


def activity_matrix(rows: Iterable[Mapping[str, Any]], row_key: str, column_key: str) -> ActivityMatrix:
    """Count occurrences of each (row_key, column_key) pair.

    Row and column labels are the sorted distinct values actually observed;
    ``max_count`` is taken over realized cells only.
    """
    df = records_to_dataframe(rows, [row_key, column_key]).dropna()
    if df.empty:
        return ActivityMatrix(row_key, column_key, [], [], {}, 0)
    sizes = df.groupby([row_key, column_key]).size()
    cells = {(str(r), str(c)): int(n) for (r, c), n in sizes.items()}
    return ActivityMatrix(
        row_key=row_key,
        column_key=column_key,
        rows=sorted({r for r, _ in cells}),
        columns=sorted({c for _, c in cells}),
        cells=cells,
        max_count=max(cells.values()),
    )


def team_facility_matrix(rows: Iterable[Mapping[str, Any]]) -> ActivityMatrix:
    return activity_matrix(rows, TEAM_COLUMN, "facility")


def team_date_matrix(rows: Iterable[Mapping[str, Any]]) -> ActivityMatrix:
    return activity_matrix(rows, TEAM_COLUMN, "round_date")


def monthly_team_activity(
    rows: Iterable[Mapping[str, Any]],
    months: int = TEAM_ACTIVITY_MONTHS,
) -> ActivityMatrix:
    """Per-team issue counts by ``YYYY-MM``, limited to the trailing ``months`` observed months."""
    df = records_to_dataframe(rows, [TEAM_COLUMN, "round_date"]).dropna()
    if df.empty:
        return ActivityMatrix(TEAM_COLUMN, "year_month", [], [], {}, 0)
    df["year_month"] = df["round_date"].astype(str).str[:7]
    recent = sorted(df["year_month"].unique())[-months:]
    teams = sorted(df[TEAM_COLUMN].astype(str).unique())
    window = df[df["year_month"].isin(recent)]
    sizes = window.groupby([TEAM_COLUMN, "year_month"]).size()
    cells = {(str(team), str(ym)): int(n) for (team, ym), n in sizes.items()}
    return ActivityMatrix(
        row_key=TEAM_COLUMN,
        column_key="year_month",
        rows=teams,
        columns=list(recent),
        cells=cells,
        max_count=max(cells.values(), default=0),
    )


def leaderboard_summary(team_rows: Iterable[Mapping[str, Any]]) -> dict[str, int]:
    df = pd.DataFrame(list(team_rows))
    if df.empty:
        return {"members": 0, "total_issues": 0}
    reported = pd.to_numeric(df.get("issues_reported", pd.Series(dtype=float)), errors="coerce").fillna(0)
    return {"members": int(len(df)), "total_issues": int(reported.sum())}
