"""Monitoring-team feature module."""

from rounds_app.features.team.context import TeamContext, build_team_context

__all__ = ["TeamContext", "build_team_context"]
