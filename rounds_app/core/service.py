"""IssueService: orchestrates query compilation, paginated fetching, and RPC calls."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any

from rounds_app.analytics.aggregations.trend import aggregate_trend_rows
from rounds_app.analytics.comparison import normalize_comparison

from .config import (
    COMPARISON_MAX_WORKERS,
    DATE_COLUMN,
    FILTER_OPTION_STATUS_LIMIT,
    GROUP_BREAKDOWN_VIEW,
    ISSUE_CORE_COLUMNS,
    ISSUE_DETAIL_COLUMNS,
    ISSUES_TABLE,
    MONITORING_TEAM_VIEW,
    MONTHLY_TREND_VIEW,
    RPC_DASHBOARD_STATS,
    RPC_FILTER_OPTIONS,
    RPC_MONTH_COMPARISON,
    STAFF_SUMMARY_VIEW,
    SYNC_LOG_LIMIT,
    SYNC_LOG_TABLE,
    TEAM_COLUMN,
)
from .filters import FilterState, SubTypeVocabulary
from .models import FilterOptions, Page, Period, PeriodComparison
from .pagination import SupportsSelect, fetch_all, fetch_page
from .query import Eq, NotNull, Ordering, compile_filters, describe_query, filter_rows_by_month

logger = logging.getLogger(__name__)

Row = dict[str, Any]
ProgressCallback = Callable[[str, int | None, int | None], None]


class IssueService:
    def __init__(self, store: SupportsSelect):
        self.store = store

    # ------------------ Issue Rows ------------------
    def fetch_issues(
        self,
        filters: FilterState,
        vocabulary: SubTypeVocabulary | None = None,
        *,
        columns: Sequence[str] | str = ISSUE_CORE_COLUMNS,
    ) -> list[Row]:
        """Every row matching ``filters`` (internally paginated past the row cap).

        A month range without a year cannot be expressed server-side, so it is
        applied to the fetched rows.
        """
        descriptor = compile_filters(filters, self._vocabulary_for(filters, vocabulary), columns=columns)
        rows = fetch_all(self.store, descriptor)
        if descriptor.client_month_range is not None:
            before = len(rows)
            rows = filter_rows_by_month(rows, descriptor.client_month_range)
            logger.debug("Month-of-year filter %s kept %s of %s rows", descriptor.client_month_range, len(rows), before)
        return rows

    def fetch_issue_page(
        self,
        filters: FilterState,
        vocabulary: SubTypeVocabulary | None = None,
        *,
        columns: Sequence[str] | str = ISSUE_DETAIL_COLUMNS,
        with_count: bool = False,
    ) -> Page:
        """One explicit page (``filters.page`` / ``filters.page_size``) for UI pagination."""
        if not filters.paginated:
            raise ValueError("fetch_issue_page requires page and page_size")
        descriptor = compile_filters(filters, self._vocabulary_for(filters, vocabulary), columns=columns)
        if descriptor.client_month_range is None:
            return fetch_page(self.store, descriptor, filters.page, filters.page_size, with_count=with_count)
        # The month filter runs on fetched rows, so the window and count are taken after it
        rows = filter_rows_by_month(fetch_all(self.store, descriptor), descriptor.client_month_range)
        start = filters.page * filters.page_size
        return Page(rows=rows[start : start + filters.page_size], count=len(rows) if with_count else None)

    def count_issues(self, filters: FilterState, vocabulary: SubTypeVocabulary | None = None) -> int:
        """Exact match count without transferring the rows."""
        vocabulary = self._vocabulary_for(filters, vocabulary)
        descriptor = compile_filters(filters, vocabulary, columns="id")
        if descriptor.client_month_range is not None:
            return len(self.fetch_issues(filters, vocabulary, columns=[DATE_COLUMN]))
        page = fetch_page(self.store, descriptor, 0, 1, with_count=True)
        return int(page.count or 0)

    # ------------------ Lookups ------------------
    def fetch_filter_options(self, *, include_statuses: bool = True) -> FilterOptions:
        """Dropdown values from the options RPC, plus distinct statuses read from one page of issues."""
        data = self.store.rpc(RPC_FILTER_OPTIONS) or {}
        if isinstance(data, list):
            data = data[0] if data else {}
        statuses: list[str] = []
        if include_statuses:
            status_query = describe_query(ISSUES_TABLE, ["issue_status"], [NotNull("issue_status")])
            status_rows = fetch_page(self.store, status_query, 0, FILTER_OPTION_STATUS_LIMIT).rows
            statuses = sorted({str(r["issue_status"]) for r in status_rows if r.get("issue_status")})
        return FilterOptions(
            facilities=list(data.get("facilities") or []),
            shifts=list(data.get("shifts") or []),
            years=[int(y) for y in data.get("years") or []],
            groups=list(data.get("groups") or []),
            monitoring_team=list(data.get("monitoring_team") or []),
            statuses=statuses,
            rounds_issues=list(data.get("rounds_issues") or []),
            safety_issues=list(data.get("safety_issues") or []),
            it_issues=list(data.get("it_issues") or []),
        )

    def fetch_vocabulary(self) -> SubTypeVocabulary:
        return SubTypeVocabulary.from_options(self.fetch_filter_options(include_statuses=False).to_dict())

    def _vocabulary_for(
        self, filters: FilterState, vocabulary: SubTypeVocabulary | None
    ) -> SubTypeVocabulary | None:
        # Sub-type labels resolve to their type column only through the vocabulary
        if vocabulary is None and filters.sub_type_mode:
            return self.fetch_vocabulary()
        return vocabulary

    def fetch_sync_log(self, limit: int = SYNC_LOG_LIMIT) -> list[Row]:
        query = describe_query(SYNC_LOG_TABLE, "*", order=Ordering("created_at", ascending=False))
        return fetch_page(self.store, query, 0, limit).rows

    # ------------------ Facility Page ------------------
    def fetch_facility_overview(self, facility: str, year: int | None = None) -> dict[str, Any]:
        """Stats, group breakdown, trend and staff summary for one facility, fetched in parallel."""
        tasks: dict[str, Callable[[], Any]] = {
            "stats": lambda: self.store.rpc(
                RPC_DASHBOARD_STATS,
                {"p_facility": facility, "p_group_name": None, "p_year": year, "p_month": None},
            ),
            "groups": lambda: self._view(GROUP_BREAKDOWN_VIEW, facility, Ordering("issue_count")),
            "trend": lambda: self._view(
                MONTHLY_TREND_VIEW,
                facility,
                columns="facility, year_month, total_issues, rounds_count, safety_count, it_count",
            ),
            "staff": lambda: self._view(STAFF_SUMMARY_VIEW, facility, Ordering("total_issues")),
        }
        with ThreadPoolExecutor(max_workers=len(tasks)) as pool:
            futures = {name: pool.submit(task) for name, task in tasks.items()}
            # .result() re-raises the first failure; the whole overview fails with it
            results = {name: fut.result() for name, fut in futures.items()}

        trend = [dict(bucket.to_dict(), facility=facility) for bucket in aggregate_trend_rows(results["trend"])]
        return {
            "stats": results["stats"],
            "groups": results["groups"] or [],
            "trend": trend,
            "staff": results["staff"] or [],
        }

    def _view(self, view: str, facility: str, order: Ordering | None = None, columns: str = "*") -> list[Row]:
        return fetch_all(self.store, describe_query(view, columns, [Eq("facility", facility)], order))

    # ------------------ Team Page ------------------
    def fetch_team_data(self) -> dict[str, list[Row]]:
        leaderboard = fetch_all(
            self.store,
            describe_query(MONITORING_TEAM_VIEW, "*", order=Ordering("issues_reported")),
        )
        heatmap_rows = fetch_all(
            self.store,
            describe_query(ISSUES_TABLE, [TEAM_COLUMN, "facility"], [NotNull(TEAM_COLUMN)]),
        )
        activity_rows = fetch_all(
            self.store,
            describe_query(
                ISSUES_TABLE,
                [TEAM_COLUMN, "round_date"],
                [NotNull(TEAM_COLUMN), NotNull("round_date")],
                Ordering("round_date", ascending=True),
            ),
        )
        return {"team": leaderboard, "heatmapRows": heatmap_rows, "activityRows": activity_rows}

    # ------------------ Comparisons ------------------
    def fetch_comparison(self, facility: str | None, period_a: Period, period_b: Period) -> PeriodComparison:
        raw = self.store.rpc(
            RPC_MONTH_COMPARISON,
            {
                "p_facility": facility,
                "p_group_name": None,
                "p_year_a": period_a.year,
                "p_month_a": period_a.month,
                "p_year_b": period_b.year,
                "p_month_b": period_b.month,
            },
        )
        return normalize_comparison(raw, period_a, period_b, facility=facility)

    def compare_facilities(
        self,
        facilities: Iterable[str],
        period_a: Period,
        period_b: Period,
        *,
        progress: ProgressCallback | None = None,
    ) -> dict[str, PeriodComparison]:
        """Independent per-facility comparisons; a failing facility is dropped, not fatal."""
        facilities = list(dict.fromkeys(facilities))
        if not facilities:
            return {}
        out: dict[str, PeriodComparison] = {}
        completed = 0
        if progress:
            progress("Comparing facilities", 0, len(facilities))
        with ThreadPoolExecutor(max_workers=min(COMPARISON_MAX_WORKERS, len(facilities))) as pool:
            futures = {pool.submit(self.fetch_comparison, f, period_a, period_b): f for f in facilities}
            for fut in as_completed(futures):
                facility = futures[fut]
                try:
                    out[facility] = fut.result()
                except Exception as exc:
                    logger.warning("Comparison for %s failed; excluding it: %s", facility, exc)
                finally:
                    completed += 1
                    if progress:
                        progress("Comparing facilities", completed, len(facilities))
        return {f: out[f] for f in facilities if f in out}
