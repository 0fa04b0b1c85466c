"""Two-period comparison: payload normalization, row-derived comparisons, table helpers.

The comparison RPC answers in one of two shapes:

* nested: ``{"month_a": {...}, "month_b": {...}, "change": {...}}``
* flat: ``{"month_a_total": 40, "month_b_total": 50, "diff_total": 10, ...}``

Payloads are tagged on receipt and normalized into ``PeriodComparison`` so
nothing downstream branches on the shape again. Percentage changes are None
exactly when the baseline (month A) count is zero; "no prior issues" is not
"0% change".
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import pytz

from rounds_app.analytics.aggregations.facility import issue_frame
from rounds_app.core.config import TIMEZONE
from rounds_app.core.models import (
    COMPARISON_METRICS,
    Period,
    PeriodChange,
    PeriodComparison,
    PeriodSnapshot,
)


@dataclass(slots=True, frozen=True)
class NestedPayload:
    raw: Mapping[str, Any]


@dataclass(slots=True, frozen=True)
class FlatPayload:
    raw: Mapping[str, Any]


ComparisonPayload = NestedPayload | FlatPayload


def _as_int(value: Any, default: int = 0) -> int:
    if value is None:
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def _as_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def tag_payload(raw: Any) -> ComparisonPayload:
    """Classify an RPC result; lists (set-returning functions) use their first row."""
    if isinstance(raw, list):
        raw = raw[0] if raw else {}
    if not isinstance(raw, Mapping):
        raw = {}
    if isinstance(raw.get("month_a"), Mapping) and isinstance(raw.get("month_b"), Mapping):
        return NestedPayload(raw)
    return FlatPayload(raw)


def percent_change(diff: int, baseline: int) -> float | None:
    if baseline > 0:
        return diff / baseline * 100
    return None


def compute_change(
    month_a: PeriodSnapshot,
    month_b: PeriodSnapshot,
    diffs: Mapping[str, Any] | None = None,
) -> PeriodChange:
    """Diffs default to ``b - a``; percentages are relative to month A."""
    diffs = diffs or {}
    values: dict[str, Any] = {}
    for metric in COMPARISON_METRICS:
        baseline = month_a.value(metric)
        diff = _as_int(diffs.get(metric), month_b.value(metric) - baseline)
        values[f"diff_{metric}"] = diff
        values[f"{metric}_pct"] = percent_change(diff, baseline)
    return PeriodChange(**values)


def _snapshot(values: Mapping[str, Any], period: Period) -> PeriodSnapshot:
    return PeriodSnapshot(
        year=_as_int(values.get("year"), period.year),
        month=_as_int(values.get("month"), period.month),
        **{metric: _as_int(values.get(metric)) for metric in COMPARISON_METRICS},
    )


def _from_nested(raw: Mapping[str, Any], period_a: Period, period_b: Period) -> tuple[PeriodSnapshot, ...]:
    return _snapshot(raw["month_a"], period_a), _snapshot(raw["month_b"], period_b)


def _nested_change(raw: Mapping[str, Any], month_a: PeriodSnapshot, month_b: PeriodSnapshot) -> PeriodChange:
    change = raw.get("change")
    if not isinstance(change, Mapping):
        return compute_change(month_a, month_b)
    values: dict[str, Any] = {}
    for metric in COMPARISON_METRICS:
        baseline = month_a.value(metric)
        diff = _as_int(change.get(f"diff_{metric}"), month_b.value(metric) - baseline)
        pct = _as_float(change.get(f"{metric}_pct"))
        if baseline <= 0:
            pct = None
        elif pct is None:
            pct = percent_change(diff, baseline)
        values[f"diff_{metric}"] = diff
        values[f"{metric}_pct"] = pct
    return PeriodChange(**values)


def _from_flat(raw: Mapping[str, Any], period_a: Period, period_b: Period) -> tuple[PeriodSnapshot, ...]:
    snapshots = []
    for prefix, period in (("month_a", period_a), ("month_b", period_b)):
        snapshots.append(
            PeriodSnapshot(
                year=_as_int(raw.get(f"{prefix}_year"), period.year),
                month=_as_int(raw.get(f"{prefix}_month"), period.month),
                **{metric: _as_int(raw.get(f"{prefix}_{metric}")) for metric in COMPARISON_METRICS},
            )
        )
    return tuple(snapshots)


def normalize_comparison(
    raw: Any,
    period_a: Period,
    period_b: Period,
    facility: str | None = None,
) -> PeriodComparison:
    """Normalize either comparison shape into a ``PeriodComparison``.

    A canonical nested payload passes through unchanged. A flat payload has
    missing counts read as zero, missing diffs computed as ``b - a`` and every
    percentage derived from the diff and the month A baseline. An empty or
    missing payload yields an all-zero comparison.
    """
    payload = tag_payload(raw)
    facility = payload.raw.get("facility", facility)
    if isinstance(payload, NestedPayload):
        month_a, month_b = _from_nested(payload.raw, period_a, period_b)
        change = _nested_change(payload.raw, month_a, month_b)
    else:
        month_a, month_b = _from_flat(payload.raw, period_a, period_b)
        diffs = {metric: payload.raw.get(f"diff_{metric}") for metric in COMPARISON_METRICS}
        change = compute_change(month_a, month_b, diffs)
    return PeriodComparison(month_a=month_a, month_b=month_b, change=change, facility=facility)


def comparison_from_rows(
    rows: Iterable[Mapping[str, Any]],
    period_a: Period,
    period_b: Period,
    facility: str | None = None,
) -> PeriodComparison:
    """Derive a comparison from raw issue rows instead of the RPC."""
    df = issue_frame(rows)
    if facility is not None:
        df = df[df["facility"] == facility]
    snapshots = []
    for period in (period_a, period_b):
        month = df[df["year_month"] == period.year_month]
        snapshots.append(
            PeriodSnapshot(
                year=period.year,
                month=period.month,
                total=int(len(month)),
                rounds=int(month["rounds"].sum()),
                safety=int(month["safety"].sum()),
                it=int(month["it"].sum()),
            )
        )
    month_a, month_b = snapshots
    return PeriodComparison(month_a, month_b, compute_change(month_a, month_b), facility=facility)


# ------------------ Periods & presentation ------------------
def default_comparison_periods(now: datetime | None = None, tz: str = TIMEZONE) -> tuple[Period, Period]:
    """Previous calendar month vs. the current month in the dashboard timezone."""
    zone = pytz.timezone(tz)
    if now is None:
        local = datetime.now(zone)
    elif now.tzinfo is None:
        local = zone.localize(now)
    else:
        local = now.astimezone(zone)
    current = Period(local.year, local.month)
    previous = Period(local.year - 1, 12) if local.month == 1 else Period(local.year, local.month - 1)
    return previous, current


def format_percent(value: float | None) -> str:
    if value is None:
        return "—"
    sign = "+" if value > 0 else ""
    return f"{sign}{value:.1f}%"


def change_arrow(value: float | None) -> str:
    if not value:
        return "—"
    return "↓" if value < 0 else "↑"


def is_improvement(value: float | None) -> bool | None:
    """Fewer issues is an improvement; None when there is no comparable change."""
    if not value:
        return None
    return value < 0


def comparison_table(comparisons: Mapping[str, PeriodComparison]) -> list[dict[str, Any]]:
    """One row per facility, sorted by facility name."""
    out = []
    for facility in sorted(comparisons):
        comparison = comparisons[facility]
        row: dict[str, Any] = {"facility": facility}
        for metric in COMPARISON_METRICS:
            pct = comparison.change.pct(metric)
            row[f"month_a_{metric}"] = comparison.month_a.value(metric)
            row[f"month_b_{metric}"] = comparison.month_b.value(metric)
            row[f"diff_{metric}"] = comparison.change.diff(metric)
            row[f"{metric}_pct"] = pct
            row[f"{metric}_direction"] = comparison.change.direction(metric)
        row["total_pct_label"] = format_percent(comparison.change.total_pct)
        out.append(row)
    return out
