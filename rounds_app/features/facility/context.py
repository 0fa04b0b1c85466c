"""Pure helpers to build the single-facility page view model."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from rounds_app.core.config import FACILITY_STATES
from rounds_app.core.mappers import issue_type_label
from rounds_app.core.models import Page


@dataclass(slots=True)
class FacilityContext:
    facility: str
    stats: dict[str, Any]
    groups: list[dict[str, Any]]
    trend: list[dict[str, Any]]
    staff: list[dict[str, Any]]
    issues: list[dict[str, Any]] = field(default_factory=list)
    issue_count: int = 0
    page: int = 0
    page_size: int = 0

    @property
    def state(self) -> str | None:
        return FACILITY_STATES.get(self.facility)

    @property
    def page_count(self) -> int:
        if self.page_size <= 0:
            return 0
        return math.ceil(self.issue_count / self.page_size)

    def to_dict(self) -> dict[str, Any]:
        return {
            "facility": self.facility,
            "state": self.state,
            "stats": self.stats,
            "groups": self.groups,
            "trend": self.trend,
            "staff": self.staff,
            "issues": self.issues,
            "issueCount": self.issue_count,
            "page": self.page,
            "pageSize": self.page_size,
            "pageCount": self.page_count,
        }


def _stats(raw: Any) -> dict[str, Any]:
    if isinstance(raw, list):
        raw = raw[0] if raw else {}
    return dict(raw) if isinstance(raw, Mapping) else {}


def build_facility_context(
    facility: str,
    overview: Mapping[str, Any],
    issues: Page | None = None,
    page: int = 0,
    page_size: int = 0,
) -> FacilityContext:
    """Combine the parallel facility aggregates with one page of the issue table.

    Each issue row gains an ``issue_type`` label (``"Rounds, Safety"``, or a
    dash when the row carries no type).
    """
    rows = issues.rows if issues is not None else []
    labeled = [dict(row, issue_type=issue_type_label(row)) for row in rows]
    count = issues.count if issues is not None and issues.count is not None else len(labeled)
    return FacilityContext(
        facility=facility,
        stats=_stats(overview.get("stats")),
        groups=list(overview.get("groups") or []),
        trend=list(overview.get("trend") or []),
        staff=list(overview.get("staff") or []),
        issues=labeled,
        issue_count=int(count),
        page=page,
        page_size=page_size,
    )
