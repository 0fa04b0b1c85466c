"""Shared derived column computations for analytics."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

import pandas as pd

from rounds_app.core.config import ISSUE_TYPE_COLUMNS, ISSUE_TYPE_KEYS, SHORT_MONTH_NAMES


def add_type_flags(df: pd.DataFrame) -> pd.DataFrame:
    """Add one boolean column per issue type and a ``year_month`` column.

    Adds the following columns:
        - rounds / safety / it: True when the type's sub-type column is non-null.
          A row can carry several types at once.
        - year_month: first seven characters (``YYYY-MM``) of ``round_date``,
          None when the date is missing.

    Parameters
    ----------
    df : pd.DataFrame
        Frame built by ``issues_to_dataframe``.

    Returns
    -------
    pd.DataFrame
        Copy of input with derived columns added.
    """
    out = df.copy()
    for issue_type, column in ISSUE_TYPE_COLUMNS.items():
        flag = ISSUE_TYPE_KEYS[issue_type]
        out[flag] = out[column].notna() if column in out.columns else False

    if "round_date" in out.columns:
        dates = out["round_date"]
        out["year_month"] = dates.where(dates.isna(), dates.astype(str).str[:7])
    else:
        out["year_month"] = None
    return out


def year_month_label(year_month: str) -> str:
    """``"2025-07"`` -> ``"Jul 2025"``."""
    year, _, month = year_month.partition("-")
    try:
        return f"{SHORT_MONTH_NAMES[int(month) - 1]} {year}"
    except (ValueError, IndexError):
        return year_month


def round_half_up(value: float, digits: int = 1) -> float:
    quant = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quant, rounding=ROUND_HALF_UP))
