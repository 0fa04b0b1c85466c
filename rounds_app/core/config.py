"""Central configuration, constants, and shared column definitions."""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from .errors import ConfigurationError

ROOT_DIR = Path(__file__).resolve().parents[2]

# =============================================================================
# Backend Connection Settings
# =============================================================================
TIMEZONE = "America/Los_Angeles"

# PostgREST answers at most this many rows per request; larger reads paginate.
PAGE_SIZE: int = 1000

ISSUES_TABLE = "issues"
SYNC_LOG_TABLE = "sync_log"
GROUP_BREAKDOWN_VIEW = "v_group_breakdown"
MONTHLY_TREND_VIEW = "v_monthly_trend"
STAFF_SUMMARY_VIEW = "v_staff_summary"
MONITORING_TEAM_VIEW = "v_monitoring_team"

RPC_DASHBOARD_STATS = "get_dashboard_stats"
RPC_FILTER_OPTIONS = "get_filter_options"
RPC_MONTH_COMPARISON = "get_month_comparison"

# =============================================================================
# Issue Type Configuration
# =============================================================================
# Display order for type tallies, cards and charts
ISSUE_TYPES: Sequence[str] = ("Rounds", "Safety", "IT")

# A non-null value in the column marks the row as belonging to the type;
# the value itself is the sub-type label.
ISSUE_TYPE_COLUMNS: dict[str, str] = {
    "Rounds": "rounds_issue",
    "Safety": "safety_issue",
    "IT": "it_issue",
}

# Short counter names used in breakdowns, trends and comparisons
ISSUE_TYPE_KEYS: dict[str, str] = {
    "Rounds": "rounds",
    "Safety": "safety",
    "IT": "it",
}

# Keys of the sub-type vocabulary in the filter-options payload
SUB_TYPE_OPTION_KEYS: dict[str, str] = {
    "Rounds": "rounds_issues",
    "Safety": "safety_issues",
    "IT": "it_issues",
}

# Bucket for sub-type labels outside the known vocabulary. The key is reserved
# so it cannot merge with a real sub-type that happens to be called "Other".
UNRECOGNIZED_SUB_TYPE = "_unrecognized"
UNRECOGNIZED_SUB_TYPE_LABEL = "Other"

# =============================================================================
# Facility Configuration
# =============================================================================
# State each facility operates in; facilities not listed have no state
FACILITY_STATES: dict[str, str] = {
    "OPUS": "California",
    "MHC": "California",
    "SVR": "California",
    "CAMH": "California",
    "Revival": "California",
    "Hillside": "California",
    "PCMH": "California",
    "LAMH": "California",
    "TNBH": "Tennessee",
    "NASH": "Tennessee",
    "Lonestar": "Texas",
    "Dallas": "Texas",
    "Kentucky": "Kentucky",
}

# =============================================================================
# Column Definitions
# =============================================================================
ISSUE_CORE_COLUMNS: Sequence[str] = (
    "facility",
    "round_date",
    "shift",
    "issue_status",
    "rounds_issue",
    "safety_issue",
    "it_issue",
    "group_name",
    "staff_name",
)

ISSUE_DETAIL_COLUMNS: Sequence[str] = (
    "id",
    "round_date",
    "group_name",
    "shift",
    "issue_status",
    "rounds_issue",
    "safety_issue",
    "it_issue",
    "staff_name",
    "result_status",
    "item_name",
    "issue_note",
)

# Free-text search matches either field, case-insensitively
SEARCH_FIELDS: Sequence[str] = ("item_name", "issue_note")

DATE_COLUMN = "round_date"
TEAM_COLUMN = "live_monitoring_team"

# =============================================================================
# Calendar
# =============================================================================
MONTH_NAMES: Sequence[str] = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

SHORT_MONTH_NAMES: Sequence[str] = tuple(name[:3] for name in MONTH_NAMES)

# =============================================================================
# UI Default Values
# =============================================================================
DEFAULT_ISSUE_PAGE_SIZE: int = 25  # Facility page issue table
SYNC_LOG_LIMIT: int = 5
TEAM_ACTIVITY_MONTHS: int = 12  # Trailing months in the team activity timeline
FILTER_OPTION_STATUS_LIMIT: int = PAGE_SIZE

# Sync freshness thresholds (minutes since last completed sync)
SYNC_FRESH_MINUTES: int = 35
SYNC_STALE_MINUTES: int = 60

# Parallel comparison tuning
# Use threads because the supabase client is synchronous and each facility's
# comparison is an independent HTTP round trip.
COMPARISON_MAX_WORKERS = 8


def _env_flag_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass(slots=True)
class AppSettings:
    supabase_url: str | None = None
    supabase_key: str | None = None
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env_file: Path | None = None) -> AppSettings:
        """Build settings from process environment (optionally seeded from ``.env``)."""
        load_dotenv(env_file or ROOT_DIR / ".env", override=False)
        origins = os.getenv("CORS_ORIGINS", "http://localhost:3000")
        return cls(
            supabase_url=os.getenv("SUPABASE_URL") or None,
            supabase_key=os.getenv("SUPABASE_SERVICE_KEY") or None,
            cors_origins=_env_flag_list(origins),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    def require_credentials(self) -> tuple[str, str]:
        if not self.supabase_url:
            raise ConfigurationError("Missing required environment variable: SUPABASE_URL")
        if not self.supabase_key:
            raise ConfigurationError("Missing required environment variable: SUPABASE_SERVICE_KEY")
        return self.supabase_url, self.supabase_key


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
