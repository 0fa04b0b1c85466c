"""FastAPI application exposing the dashboard data core to the UI."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rounds_app.analytics.comparison import comparison_table, default_comparison_periods
from rounds_app.api.schemas import ErrorResponse, FacilityComparisonModel, IssueQueryModel
from rounds_app.core.config import DEFAULT_ISSUE_PAGE_SIZE, ISSUE_DETAIL_COLUMNS, AppSettings, configure_logging
from rounds_app.core.errors import FilterValidationError
from rounds_app.core.filters import FilterState, SortSpec, SubTypeVocabulary, filters_from_payload, validate_filters
from rounds_app.core.models import Period
from rounds_app.core.service import IssueService
from rounds_app.core.store_client import IssueStore
from rounds_app.core.sync_status import sync_summary
from rounds_app.features.facility import build_facility_context
from rounds_app.features.overview import build_overview_context
from rounds_app.features.team import build_team_context

logger = logging.getLogger(__name__)

ALL_FACILITIES = "all"


def _json(data: object) -> JSONResponse:
    return JSONResponse(content=jsonable_encoder(data))


def _failure(route: str, exc: Exception) -> JSONResponse:
    """Map an exception to an error response: bad filters are 400, everything else 500."""
    body = ErrorResponse(error=str(exc), type=type(exc).__name__).model_dump()
    if isinstance(exc, FilterValidationError):
        logger.warning("%s rejected: %s", route, exc)
        return JSONResponse(status_code=400, content=body)
    logger.exception("%s failed", route)
    return JSONResponse(status_code=500, content=body)


def _service(request: Request) -> IssueService:
    state = request.app.state
    if state.service is None:
        state.service = IssueService(IssueStore.from_settings(state.settings))
    return state.service


def _vocabulary(service: IssueService, query: IssueQueryModel) -> SubTypeVocabulary | None:
    # Sub-type predicates need to know which column each label belongs to
    if not query.issue_sub_types:
        return None
    return service.fetch_vocabulary()


def _periods(
    year_a: int | None,
    month_a: int | None,
    year_b: int | None,
    month_b: int | None,
) -> tuple[Period, Period]:
    default_a, default_b = default_comparison_periods()
    period_a = Period(year_a or default_a.year, month_a or default_a.month)
    period_b = Period(year_b or default_b.year, month_b or default_b.month)
    return period_a, period_b


def create_app(service: IssueService | None = None, settings: AppSettings | None = None) -> FastAPI:
    settings = settings or AppSettings.from_env()
    configure_logging(settings.log_level)

    app = FastAPI(title="Rounds Issues Dashboard API", version="0.1.0")
    app.state.settings = settings
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    @app.post("/api/issues")
    def issues(query: IssueQueryModel, request: Request):
        try:
            svc = _service(request)
            vocabulary = _vocabulary(svc, query)
            filters = filters_from_payload(query.to_payload(), vocabulary)
            if query.count_only:
                return _json({"count": svc.count_issues(filters, vocabulary)})
            if filters.paginated:
                page = svc.fetch_issue_page(filters, vocabulary, columns="*", with_count=True)
                return _json({"data": page.rows, "count": page.count})
            return _json({"data": svc.fetch_issues(filters, vocabulary, columns="*")})
        except Exception as exc:
            return _failure("issues", exc)

    @app.post("/api/overview")
    def overview(query: IssueQueryModel, request: Request):
        try:
            svc = _service(request)
            options = svc.fetch_filter_options(include_statuses=False)
            vocabulary = SubTypeVocabulary.from_options(options.to_dict())
            filters = filters_from_payload(query.to_payload(), vocabulary)
            rows = svc.fetch_issues(filters, vocabulary)
            facilities = [filters.facility] if filters.facility else options.facilities
            ctx = build_overview_context(rows, filters, vocabulary, facilities)
            return _json(ctx.to_dict())
        except Exception as exc:
            return _failure("overview", exc)

    @app.get("/api/facility")
    def facility_page(
        request: Request,
        facility: str | None = Query(default=None),
        year: int | None = Query(default=None),
        page: int | None = Query(default=None, ge=0),
        page_size: int = Query(default=DEFAULT_ISSUE_PAGE_SIZE, alias="pageSize", gt=0),
        search: str | None = Query(default=None),
        issue_type: str | None = Query(default=None, alias="issueType"),
    ):
        try:
            if not facility:
                raise FilterValidationError("facility is required")
            svc = _service(request)
            overview_data = svc.fetch_facility_overview(facility, year)
            issues = None
            if page is not None:
                filters = validate_filters(
                    FilterState(
                        facility=facility,
                        year=year,
                        issue_types=frozenset([issue_type]) if issue_type else frozenset(),
                        search=(search or "").strip() or None,
                        sort=SortSpec("round_date", ascending=False),
                        page=page,
                        page_size=page_size,
                    )
                )
                issues = svc.fetch_issue_page(filters, columns=ISSUE_DETAIL_COLUMNS, with_count=True)
            ctx = build_facility_context(facility, overview_data, issues, page or 0, page_size)
            return _json(ctx.to_dict())
        except Exception as exc:
            return _failure("facility", exc)

    @app.get("/api/team")
    def team(request: Request):
        try:
            return _json(_service(request).fetch_team_data())
        except Exception as exc:
            return _failure("team", exc)

    @app.get("/api/team/summary")
    def team_summary(request: Request):
        try:
            ctx = build_team_context(_service(request).fetch_team_data())
            return _json(ctx.to_dict())
        except Exception as exc:
            return _failure("team_summary", exc)

    @app.get("/api/comparison")
    def comparison(
        request: Request,
        facility: str | None = Query(default=None),
        year_a: int | None = Query(default=None, alias="yearA"),
        month_a: int | None = Query(default=None, alias="monthA", ge=1, le=12),
        year_b: int | None = Query(default=None, alias="yearB"),
        month_b: int | None = Query(default=None, alias="monthB", ge=1, le=12),
    ):
        try:
            period_a, period_b = _periods(year_a, month_a, year_b, month_b)
            scope = None if not facility or facility == ALL_FACILITIES else facility
            result = _service(request).fetch_comparison(scope, period_a, period_b)
            return _json(result.to_dict())
        except Exception as exc:
            return _failure("comparison", exc)

    @app.post("/api/comparison/facilities")
    def comparison_facilities(body: FacilityComparisonModel, request: Request):
        try:
            svc = _service(request)
            period_a, period_b = _periods(body.year_a, body.month_a, body.year_b, body.month_b)
            facilities = body.facilities or svc.fetch_filter_options(include_statuses=False).facilities
            results = svc.compare_facilities(facilities, period_a, period_b)
            payload: dict[str, Any] = {
                "monthA": period_a._asdict(),
                "monthB": period_b._asdict(),
                "rows": comparison_table(results),
                "excluded": [f for f in dict.fromkeys(facilities) if f not in results],
            }
            return _json(payload)
        except Exception as exc:
            return _failure("comparison_facilities", exc)

    @app.get("/api/filter-options")
    def filter_options(request: Request):
        try:
            return _json(_service(request).fetch_filter_options().to_dict())
        except Exception as exc:
            return _failure("filter_options", exc)

    @app.get("/api/sync-log")
    def sync_log(request: Request):
        try:
            return _json(sync_summary(_service(request).fetch_sync_log()))
        except Exception as exc:
            return _failure("sync_log", exc)

    return app


app = create_app()
