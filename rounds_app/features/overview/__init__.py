"""Overview feature module: filtered issue rows to breakdowns, trend and summary."""

from rounds_app.features.overview.context import OverviewContext, build_overview_context

__all__ = ["OverviewContext", "build_overview_context"]
