"""Mapping raw backend issue rows into IssueRow instances and DataFrames."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import asdict, fields
from datetime import date, datetime
from typing import Any

import pandas as pd

from .config import ISSUE_TYPE_COLUMNS, ISSUE_TYPES
from .models import IssueRow

ISSUE_ROW_FIELDS: tuple[str, ...] = tuple(f.name for f in fields(IssueRow))


def clean_label(value: Any) -> str | None:
    """Collapse null-like values (None, NaN, blank strings) to ``None``."""
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    text = str(value).strip()
    if not text:
        return None
    return text


def clean_date(value: Any) -> str | None:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return clean_label(value)


def map_issue_row(raw: Mapping[str, Any] | IssueRow) -> IssueRow:
    if isinstance(raw, IssueRow):
        return raw
    return IssueRow(
        facility=clean_label(raw.get("facility")),
        round_date=clean_date(raw.get("round_date")),
        shift=clean_label(raw.get("shift")),
        issue_status=clean_label(raw.get("issue_status")),
        rounds_issue=clean_label(raw.get("rounds_issue")),
        safety_issue=clean_label(raw.get("safety_issue")),
        it_issue=clean_label(raw.get("it_issue")),
        group_name=clean_label(raw.get("group_name")),
        staff_name=clean_label(raw.get("staff_name")),
    )


def issue_types_of(row: Mapping[str, Any] | IssueRow) -> list[str]:
    """Issue types the row belongs to, in display order."""
    issue = map_issue_row(row)
    return [t for t in ISSUE_TYPES if getattr(issue, ISSUE_TYPE_COLUMNS[t]) is not None]


def issue_type_label(row: Mapping[str, Any] | IssueRow) -> str:
    return ", ".join(issue_types_of(row)) or "—"


def issues_to_dataframe(issues: Iterable[Mapping[str, Any] | IssueRow]) -> pd.DataFrame:
    """Build a DataFrame with the core issue columns; null-likes become ``None``."""
    rows = [asdict(map_issue_row(i)) for i in issues]
    df = pd.DataFrame(rows, columns=list(ISSUE_ROW_FIELDS))
    # Keep None (not NaN) so .notna() reads as "value present"
    return df.astype(object).where(df.notna(), None)


def records_to_dataframe(records: Iterable[Mapping[str, Any]], columns: Iterable[str]) -> pd.DataFrame:
    """Frame arbitrary backend records restricted to ``columns`` (missing -> None)."""
    cols = list(columns)
    df = pd.DataFrame([{c: clean_label(r.get(c)) for c in cols} for r in records], columns=cols)
    return df.astype(object).where(df.notna(), None)

