import pytest

from rounds_app.core.errors import FilterValidationError
from rounds_app.core.filters import (
    DEFAULT_FILTERS,
    FilterState,
    SubTypeVocabulary,
    describe_filters,
    filters_from_payload,
    has_active_filters,
    reset_filters,
    set_facility,
    set_month_range,
    set_page,
    set_search,
    set_sort,
    toggle_issue_sub_type,
    toggle_issue_type,
    toggle_status,
    validate_filters,
)


def _vocabulary():
    return SubTypeVocabulary.from_lists(
        Rounds=["Missed Check"],
        Safety=["Fall Risk", "Ligature"],
        IT=["Network Down"],
    )


def test_toggle_type_prunes_sub_types_of_deselected_type():
    vocab = _vocabulary()
    state = toggle_issue_type(DEFAULT_FILTERS, "Safety", vocab)
    state = toggle_issue_type(state, "IT", vocab)
    state = toggle_issue_sub_type(state, "Fall Risk", vocab)
    state = toggle_issue_sub_type(state, "Network Down", vocab)
    assert state.issue_sub_types == {"Fall Risk", "Network Down"}

    state = toggle_issue_type(state, "Safety", vocab)
    assert state.issue_types == {"IT"}
    assert state.issue_sub_types == {"Network Down"}


def test_no_type_selected_keeps_every_known_sub_type():
    vocab = _vocabulary()
    state = toggle_issue_sub_type(DEFAULT_FILTERS, "Missed Check", vocab)
    state = toggle_issue_sub_type(state, "Ligature", vocab)
    state = toggle_issue_type(state, "Rounds", vocab)
    assert state.issue_sub_types == {"Missed Check"}
    # Deselecting the last type returns to "all types"; nothing left to prune
    state = toggle_issue_type(state, "Rounds", vocab)
    assert state.issue_types == frozenset()
    assert state.issue_sub_types == {"Missed Check"}


def test_sub_type_of_inactive_type_is_rejected():
    vocab = _vocabulary()
    state = toggle_issue_type(DEFAULT_FILTERS, "IT", vocab)
    with pytest.raises(FilterValidationError):
        toggle_issue_sub_type(state, "Fall Risk", vocab)
    with pytest.raises(FilterValidationError):
        toggle_issue_sub_type(DEFAULT_FILTERS, "Unknown Label", vocab)


def test_unknown_issue_type_is_rejected():
    with pytest.raises(FilterValidationError):
        toggle_issue_type(DEFAULT_FILTERS, "Maintenance", _vocabulary())


def test_month_range_validation():
    state = set_month_range(DEFAULT_FILTERS, 3, 5)
    assert (state.month_from, state.month_to) == (3, 5)
    with pytest.raises(FilterValidationError):
        set_month_range(DEFAULT_FILTERS, 11, 2)
    with pytest.raises(FilterValidationError):
        set_month_range(DEFAULT_FILTERS, 0, 5)
    with pytest.raises(FilterValidationError):
        set_month_range(DEFAULT_FILTERS, None, 13)


def test_dimension_change_resets_page_only_when_paginated():
    paged = set_page(DEFAULT_FILTERS, 3, 25)
    assert set_facility(paged, "MHC").page == 0
    assert toggle_status(paged, "Open").page == 0
    assert set_facility(DEFAULT_FILTERS, "MHC").page is None
    # Sorting keeps the current page
    assert set_sort(paged, "round_date").page == 3


def test_transitions_return_new_states():
    state = set_search(DEFAULT_FILTERS, "  door  ")
    assert state.search == "door"
    assert DEFAULT_FILTERS.search is None
    assert set_search(state, "   ").search is None
    assert set_facility(state, "").facility is None


def test_reset_and_active_flags():
    state = toggle_status(set_facility(DEFAULT_FILTERS, "MHC"), "Open")
    assert has_active_filters(state)
    assert reset_filters(state) == FilterState()
    assert not has_active_filters(reset_filters(state))
    assert not has_active_filters(set_sort(DEFAULT_FILTERS, "round_date"))


def test_describe_filters():
    state = FilterState(facility="MHC", year=2025, month_to=6, issue_types=frozenset({"IT", "Rounds"}))
    assert describe_filters(state) == [
        "Facility: MHC",
        "Year: 2025",
        "Months: Jan – Jun",
        "Types: Rounds, IT",
    ]


def test_filters_from_payload_reads_camel_case():
    body = {
        "facility": "MHC",
        "year": "2025",
        "monthFrom": 3,
        "monthTo": 5,
        "issueTypes": ["Safety"],
        "issueSubTypes": ["Fall Risk"],
        "search": "  hall ",
        "orderBy": "round_date",
        "orderAsc": True,
        "page": 0,
        "pageSize": 50,
    }
    state = filters_from_payload(body, _vocabulary())
    assert state.year == 2025
    assert state.issue_types == {"Safety"}
    assert state.issue_sub_types == {"Fall Risk"}
    assert state.search == "hall"
    assert state.sort.ascending is True
    assert state.paginated


@pytest.mark.parametrize(
    "body",
    [
        {"monthFrom": 9, "monthTo": 2},
        {"monthTo": 13},
        {"year": "twenty"},
        {"issueTypes": ["Maintenance"]},
        {"pageSize": 0},
    ],
)
def test_filters_from_payload_rejects_invalid(body):
    with pytest.raises(FilterValidationError):
        filters_from_payload(body)


def test_validate_sub_types_against_vocabulary():
    state = FilterState(issue_types=frozenset({"IT"}), issue_sub_types=frozenset({"Ligature"}))
    assert validate_filters(state) is state
    with pytest.raises(FilterValidationError):
        validate_filters(state, _vocabulary())


def test_vocabulary_from_options_and_rows():
    vocab = SubTypeVocabulary.from_options({"rounds_issues": ["A", " ", None], "it_issues": ["B"]})
    assert vocab.labels_for("Rounds") == {"A"}
    assert vocab.labels_for("Safety") == frozenset()
    assert vocab.types_for("B") == ["IT"]

    derived = SubTypeVocabulary.from_rows([{"rounds_issue": "X", "safety_issue": "Y"}, {"it_issue": " "}])
    assert derived.all_labels() == {"X", "Y"}
    assert derived.to_dict() == {"rounds_issues": ["X"], "safety_issues": ["Y"], "it_issues": []}
