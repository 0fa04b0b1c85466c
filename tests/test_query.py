import pytest

from rounds_app.core.errors import FilterValidationError
from rounds_app.core.filters import FilterState, SortSpec, SubTypeVocabulary
from rounds_app.core.query import (
    DateRange,
    Eq,
    InSet,
    OrGroup,
    compile_filters,
    date_range,
    filter_rows_by_month,
    quote_value,
    search_clause,
    sub_type_clause,
)


def _vocabulary():
    return SubTypeVocabulary.from_lists(
        Rounds=["Missed Check", "Late Round"],
        Safety=["Fall Risk", "Ligature"],
        IT=["Network Down", "Camera Offline"],
    )


def test_example_facility_year_months_and_type():
    state = FilterState(facility="MHC", year=2025, month_from=3, month_to=5, issue_types=frozenset({"Safety"}))
    descriptor = compile_filters(state)
    assert Eq("facility", "MHC") in descriptor.clauses
    assert DateRange("round_date", "2025-03-01", "2025-06-01") in descriptor.clauses
    assert OrGroup(("safety_issue.not.is.null",)) in descriptor.clauses
    assert descriptor.client_month_range is None
    assert not descriptor.bounded


def test_december_rolls_into_next_year():
    assert date_range(2024, 11, 12) == ("2024-11-01", "2025-01-01")
    assert date_range(2024, None, 12) == ("2024-01-01", "2025-01-01")


@pytest.mark.parametrize(
    ("month_from", "month_to", "expected"),
    [
        (4, None, ("2025-04-01", "2026-01-01")),
        (None, 2, ("2025-01-01", "2025-03-01")),
        (None, None, ("2025-01-01", "2026-01-01")),
    ],
)
def test_date_range_partial_months(month_from, month_to, expected):
    assert date_range(2025, month_from, month_to) == expected


def test_months_without_year_are_client_side():
    descriptor = compile_filters(FilterState(month_from=6, month_to=8))
    assert not any(isinstance(c, DateRange) for c in descriptor.clauses)
    assert descriptor.client_month_range == (6, 8)
    assert compile_filters(FilterState(month_to=3)).client_month_range == (1, 3)


def test_no_filters_compiles_to_no_clauses():
    descriptor = compile_filters(FilterState())
    assert descriptor.clauses == ()
    assert descriptor.order is None
    assert descriptor.limit is None


def test_multiple_types_form_one_or_group_in_display_order():
    descriptor = compile_filters(FilterState(issue_types=frozenset({"IT", "Rounds"})))
    groups = [c for c in descriptor.clauses if isinstance(c, OrGroup)]
    assert groups == [OrGroup(("rounds_issue.not.is.null", "it_issue.not.is.null"))]


def test_sub_types_grouped_by_their_column():
    clause = sub_type_clause({"Ligature", "Fall Risk", "Network Down"}, _vocabulary())
    assert clause.conditions == (
        'safety_issue.in.("Fall Risk",Ligature)',
        'it_issue.in.("Network Down")',
    )


def test_unknown_sub_type_emits_nothing():
    assert sub_type_clause({"Not A Label"}, _vocabulary()) is None


def test_sub_types_without_vocabulary_are_rejected():
    state = FilterState(issue_sub_types=frozenset({"Fall Risk"}))
    with pytest.raises(FilterValidationError):
        compile_filters(state)
    with pytest.raises(FilterValidationError, match="Not A Label"):
        compile_filters(FilterState(issue_sub_types=frozenset({"Fall Risk", "Not A Label"})), _vocabulary())
    descriptor = compile_filters(state, _vocabulary())
    assert OrGroup(('safety_issue.in.("Fall Risk")',)) in descriptor.clauses


def test_statuses_and_shift_compile_to_predicates():
    descriptor = compile_filters(FilterState(shift="AM PST", statuses=frozenset({"Open", "Closed"})))
    assert Eq("shift", "AM PST") in descriptor.clauses
    assert InSet("issue_status", ("Closed", "Open")) in descriptor.clauses


def test_search_strips_or_separators():
    clause = search_clause("  door (east), wing ")
    assert clause.expression == "item_name.ilike.%door east wing%,issue_note.ilike.%door east wing%"
    assert search_clause("  ") is None
    assert search_clause("(),") is None


def test_explicit_pagination_passes_through():
    state = FilterState(page=2, page_size=25, sort=SortSpec("round_date"))
    descriptor = compile_filters(state, count=True)
    assert descriptor.offset == 50
    assert descriptor.limit == 25
    assert descriptor.count
    assert descriptor.order.column == "round_date"
    assert descriptor.order.ascending is False


def test_quote_value():
    assert quote_value("Ligature") == "Ligature"
    assert quote_value("Fall Risk") == '"Fall Risk"'
    assert quote_value('a"b') == '"a\\"b"'


def test_filter_rows_by_month_is_inclusive_and_drops_undated():
    rows = [
        {"round_date": "2024-05-31"},
        {"round_date": "2025-06-01"},
        {"round_date": "2023-09-10"},
        {"round_date": None},
    ]
    kept = filter_rows_by_month(rows, (5, 6))
    assert [r["round_date"] for r in kept] == ["2024-05-31", "2025-06-01"]
    assert filter_rows_by_month(rows, None) == rows
