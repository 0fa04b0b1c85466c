"""Pure helpers to build the monitoring-team page view model."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from rounds_app.analytics.aggregations.team import (
    leaderboard_summary,
    monthly_team_activity,
    team_date_matrix,
    team_facility_matrix,
)
from rounds_app.core.config import TEAM_ACTIVITY_MONTHS
from rounds_app.core.models import ActivityMatrix


def _matrix_dict(matrix: ActivityMatrix) -> dict[str, Any]:
    return {
        "rows": matrix.rows,
        "columns": matrix.columns,
        "cells": matrix.to_records(),
        "maxCount": matrix.max_count,
    }


@dataclass(slots=True)
class TeamContext:
    leaderboard: list[dict[str, Any]]
    summary: dict[str, int]
    heatmap: ActivityMatrix
    daily: ActivityMatrix
    monthly: ActivityMatrix
    top_member: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "leaderboard": self.leaderboard,
            "summary": self.summary,
            "topMember": self.top_member,
            "heatmap": _matrix_dict(self.heatmap),
            "daily": _matrix_dict(self.daily),
            "monthly": _matrix_dict(self.monthly),
        }


def build_team_context(team_data: Mapping[str, Any], months: int = TEAM_ACTIVITY_MONTHS) -> TeamContext:
    """Aggregate the raw team payload (leaderboard, heatmapRows, activityRows)."""
    leaderboard = list(team_data.get("team") or [])
    heatmap_rows = team_data.get("heatmapRows") or []
    activity_rows = team_data.get("activityRows") or []
    return TeamContext(
        leaderboard=leaderboard,
        summary=leaderboard_summary(leaderboard),
        heatmap=team_facility_matrix(heatmap_rows),
        daily=team_date_matrix(activity_rows),
        monthly=monthly_team_activity(activity_rows, months),
        # Leaderboard arrives ordered by issues_reported descending
        top_member=dict(leaderboard[0]) if leaderboard else {},
    )
