"""Sync log freshness helpers."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

import pandas as pd
import pytz

from .config import SYNC_FRESH_MINUTES, SYNC_STALE_MINUTES


def sync_freshness(minutes: float | None) -> str:
    if minutes is None:
        return "outdated"
    if minutes < SYNC_FRESH_MINUTES:
        return "fresh"
    if minutes < SYNC_STALE_MINUTES:
        return "stale"
    return "outdated"


def minutes_since_sync(entries: Sequence[Mapping[str, Any]], now: datetime | None = None) -> float | None:
    """Minutes since the newest entry's ``completed_at`` (falling back to ``created_at``)."""
    if not entries:
        return None
    latest = entries[0]
    stamp = pd.to_datetime(latest.get("completed_at") or latest.get("created_at"), errors="coerce", utc=True)
    if pd.isna(stamp):
        return None
    now = now or datetime.now(pytz.UTC)
    if now.tzinfo is None:
        now = pytz.UTC.localize(now)
    return max((pd.Timestamp(now) - stamp).total_seconds() / 60.0, 0.0)


def sync_summary(entries: Sequence[Mapping[str, Any]], now: datetime | None = None) -> dict[str, Any]:
    minutes = minutes_since_sync(entries, now)
    return {
        "entries": list(entries),
        "minutes_since_sync": None if minutes is None else round(minutes, 1),
        "freshness": sync_freshness(minutes),
    }
