"""Exception hierarchy shared by the store client, filters and HTTP layer."""

from __future__ import annotations


class DashboardError(Exception):
    """Base class for all dashboard errors."""


class ConfigurationError(DashboardError):
    """Required settings (e.g. backend credentials) are missing."""


class FilterValidationError(DashboardError, ValueError):
    """A filter combination violates the filter state invariants."""


class StoreError(DashboardError):
    """A backend query or RPC failed; the underlying error is chained as ``__cause__``."""
