import math
from datetime import datetime

import pytest
import pytz

from rounds_app.analytics.comparison import (
    FlatPayload,
    NestedPayload,
    change_arrow,
    comparison_from_rows,
    comparison_table,
    default_comparison_periods,
    format_percent,
    is_improvement,
    normalize_comparison,
    tag_payload,
)
from rounds_app.core.models import Period

JULY = Period(2025, 7)
AUGUST = Period(2025, 8)


def _canonical():
    return {
        "facility": "MHC",
        "month_a": {"year": 2025, "month": 7, "total": 40, "rounds": 20, "safety": 0, "it": 5},
        "month_b": {"year": 2025, "month": 8, "total": 50, "rounds": 15, "safety": 3, "it": 5},
        "change": {
            "total_pct": 25.0,
            "rounds_pct": -25.0,
            "safety_pct": None,
            "it_pct": 0.0,
            "diff_total": 10,
            "diff_rounds": -5,
            "diff_safety": 3,
            "diff_it": 0,
        },
    }


def test_flat_payload_july_vs_august():
    raw = {"month_a_total": 40, "month_b_total": 50}
    result = normalize_comparison(raw, JULY, AUGUST)
    assert result.change.diff_total == 10
    assert result.change.total_pct == pytest.approx(25.0)
    assert result.month_a.year == 2025 and result.month_a.month == 7
    # Missing type counts default to zero, so their percentages are null
    assert result.change.rounds_pct is None
    assert result.change.diff_rounds == 0


def test_zero_baseline_is_null_not_infinite():
    result = normalize_comparison({"month_a_total": 0, "month_b_total": 5}, JULY, AUGUST)
    assert result.change.diff_total == 5
    assert result.change.total_pct is None

    nested = _canonical()
    nested["change"]["safety_pct"] = float("inf")
    result = normalize_comparison(nested, JULY, AUGUST)
    assert result.change.safety_pct is None
    for metric in ("total", "rounds", "it"):
        pct = result.change.pct(metric)
        assert pct is not None and not math.isinf(pct) and not math.isnan(pct)


def test_non_finite_values_fall_back_to_defaults():
    raw = {"month_a_total": float("inf"), "month_b_total": 50, "diff_total": "-inf"}
    result = normalize_comparison(raw, JULY, AUGUST)
    assert result.month_a.total == 0
    assert result.change.diff_total == 50
    assert result.change.total_pct is None

    nested = _canonical()
    nested["change"]["total_pct"] = float("nan")
    assert normalize_comparison(nested, JULY, AUGUST).change.total_pct == pytest.approx(25.0)


def test_canonical_nested_payload_round_trips_unchanged():
    raw = _canonical()
    assert normalize_comparison(raw, JULY, AUGUST).to_dict() == raw
    # A second pass is still a no-op
    again = normalize_comparison(normalize_comparison(raw, JULY, AUGUST).to_dict(), JULY, AUGUST)
    assert again.to_dict() == raw


def test_nested_payload_without_change_block_is_computed():
    raw = _canonical()
    del raw["change"]
    result = normalize_comparison(raw, JULY, AUGUST)
    assert result.change.diff_total == 10
    assert result.change.total_pct == pytest.approx(25.0)
    assert result.change.safety_pct is None


def test_flat_with_and_without_diffs_agree():
    totals = {
        "month_a_total": 40,
        "month_a_rounds": 10,
        "month_a_safety": 0,
        "month_a_it": 8,
        "month_b_total": 30,
        "month_b_rounds": 12,
        "month_b_safety": 2,
        "month_b_it": 8,
    }
    with_diffs = dict(totals, diff_total=-10, diff_rounds=2, diff_safety=2, diff_it=0)
    bare = normalize_comparison(totals, JULY, AUGUST)
    explicit = normalize_comparison(with_diffs, JULY, AUGUST)
    assert bare.change == explicit.change
    assert bare.change.total_pct == pytest.approx(-25.0)
    assert bare.change.rounds_pct == pytest.approx(20.0)
    assert bare.change.safety_pct is None


def test_empty_and_list_payloads():
    empty = normalize_comparison(None, JULY, AUGUST)
    assert empty.month_a.total == 0 and empty.month_b.total == 0
    assert empty.change.total_pct is None
    assert empty.month_b.month == 8

    listed = normalize_comparison([{"month_a_total": 4, "month_b_total": 2}], JULY, AUGUST)
    assert listed.change.total_pct == pytest.approx(-50.0)


def test_tag_payload_variants():
    assert isinstance(tag_payload(_canonical()), NestedPayload)
    assert isinstance(tag_payload({"month_a_total": 1}), FlatPayload)
    assert isinstance(tag_payload([]), FlatPayload)
    assert isinstance(tag_payload("garbage"), FlatPayload)


def test_comparison_from_rows():
    rows = [
        {"facility": "MHC", "round_date": "2025-07-01", "rounds_issue": "Missed Check"},
        {"facility": "MHC", "round_date": "2025-07-02", "safety_issue": "Fall Risk"},
        {"facility": "MHC", "round_date": "2025-08-01", "rounds_issue": "Missed Check"},
        {"facility": "SVR", "round_date": "2025-08-03", "it_issue": "Network Down"},
    ]
    result = comparison_from_rows(rows, JULY, AUGUST, facility="MHC")
    assert (result.month_a.total, result.month_b.total) == (2, 1)
    assert result.change.total_pct == pytest.approx(-50.0)
    assert result.change.safety_pct == pytest.approx(-100.0)
    assert result.change.it_pct is None
    assert result.facility == "MHC"


def test_default_periods_cross_year_boundary():
    tz = pytz.timezone("America/Los_Angeles")
    previous, current = default_comparison_periods(tz.localize(datetime(2026, 1, 15, 9)))
    assert previous == Period(2025, 12)
    assert current == Period(2026, 1)
    # 2026-03-01 06:00 UTC is still February in Los Angeles
    previous, current = default_comparison_periods(datetime(2026, 3, 1, 6, tzinfo=pytz.UTC))
    assert current == Period(2026, 2)
    assert previous == Period(2026, 1)


def test_presentation_helpers():
    assert format_percent(25.0) == "+25.0%"
    assert format_percent(-3.333) == "-3.3%"
    assert format_percent(None) == "—"
    assert change_arrow(-1.0) == "↓"
    assert change_arrow(2.0) == "↑"
    assert change_arrow(None) == "—"
    assert is_improvement(-10.0) is True
    assert is_improvement(5.0) is False
    assert is_improvement(None) is None


def test_comparison_table_sorted_by_facility():
    results = {
        "SVR": normalize_comparison({"month_a_total": 0, "month_b_total": 3}, JULY, AUGUST, facility="SVR"),
        "MHC": normalize_comparison(_canonical(), JULY, AUGUST),
    }
    table = comparison_table(results)
    assert [r["facility"] for r in table] == ["MHC", "SVR"]
    assert table[0]["total_direction"] == 1
    assert table[0]["rounds_direction"] == -1
    assert table[0]["total_pct_label"] == "+25.0%"
    assert table[1]["total_pct"] is None
    assert table[1]["total_pct_label"] == "—"
