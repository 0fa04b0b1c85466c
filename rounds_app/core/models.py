"""Domain data models for issue rows, aggregates and period comparisons."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, NamedTuple

COMPARISON_METRICS: tuple[str, ...] = ("total", "rounds", "safety", "it")


class Period(NamedTuple):
    year: int
    month: int

    @property
    def year_month(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(slots=True, frozen=True)
class IssueRow:
    facility: str | None
    round_date: str | None
    shift: str | None
    issue_status: str | None
    rounds_issue: str | None
    safety_issue: str | None
    it_issue: str | None
    group_name: str | None
    staff_name: str | None


@dataclass(slots=True)
class FacilityCounts:
    facility: str
    total: int = 0
    rounds: int = 0
    safety: int = 0
    it: int = 0
    group_count: int = 0
    # Only populated when at least one sub-type is selected
    sub_types: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out = {
            "facility": self.facility,
            "total_issues": self.total,
            "rounds_count": self.rounds,
            "safety_count": self.safety,
            "it_count": self.it,
            "group_count": self.group_count,
        }
        out.update(self.sub_types)
        return out


@dataclass(slots=True)
class MonthlyBucket:
    year_month: str
    label: str
    total: int = 0
    rounds: int = 0
    safety: int = 0
    it: int = 0
    sub_types: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out = {
            "year_month": self.year_month,
            "label": self.label,
            "total_issues": self.total,
            "rounds_count": self.rounds,
            "safety_count": self.safety,
            "it_count": self.it,
        }
        out.update(self.sub_types)
        return out


@dataclass(slots=True)
class ActivityMatrix:
    """Sparse count matrix keyed by (row label, column label)."""

    row_key: str
    column_key: str
    rows: list[str]
    columns: list[str]
    cells: dict[tuple[str, str], int]
    max_count: int = 0

    def cell(self, row: str, column: str) -> int:
        return self.cells.get((row, column), 0)

    def intensity(self, row: str, column: str) -> float:
        if self.max_count <= 0:
            return 0.0
        return min(self.cell(row, column) / self.max_count, 1.0)

    def to_records(self) -> list[dict[str, Any]]:
        return [
            {self.row_key: row, self.column_key: column, "count": count}
            for (row, column), count in self.cells.items()
        ]


@dataclass(slots=True, frozen=True)
class PeriodSnapshot:
    year: int
    month: int
    total: int = 0
    rounds: int = 0
    safety: int = 0
    it: int = 0

    def value(self, metric: str) -> int:
        return getattr(self, metric)

    def to_dict(self) -> dict[str, Any]:
        return {
            "year": self.year,
            "month": self.month,
            "total": self.total,
            "rounds": self.rounds,
            "safety": self.safety,
            "it": self.it,
        }


@dataclass(slots=True, frozen=True)
class PeriodChange:
    # Percentages are None when the baseline (month A) count is zero
    total_pct: float | None
    rounds_pct: float | None
    safety_pct: float | None
    it_pct: float | None
    diff_total: int
    diff_rounds: int
    diff_safety: int
    diff_it: int

    def pct(self, metric: str) -> float | None:
        return getattr(self, f"{metric}_pct")

    def diff(self, metric: str) -> int:
        return getattr(self, f"diff_{metric}")

    def direction(self, metric: str) -> int:
        """Sign of the change: 1 more issues, -1 fewer issues, 0 unchanged."""
        delta = self.diff(metric)
        return (delta > 0) - (delta < 0)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for metric in COMPARISON_METRICS:
            out[f"{metric}_pct"] = self.pct(metric)
        for metric in COMPARISON_METRICS:
            out[f"diff_{metric}"] = self.diff(metric)
        return out


@dataclass(slots=True, frozen=True)
class PeriodComparison:
    month_a: PeriodSnapshot
    month_b: PeriodSnapshot
    change: PeriodChange
    facility: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.facility is not None:
            out["facility"] = self.facility
        out["month_a"] = self.month_a.to_dict()
        out["month_b"] = self.month_b.to_dict()
        out["change"] = self.change.to_dict()
        return out


@dataclass(slots=True)
class Page:
    rows: list[dict[str, Any]]
    count: int | None = None


@dataclass(slots=True)
class FilterOptions:
    facilities: list[str] = field(default_factory=list)
    shifts: list[str] = field(default_factory=list)
    years: list[int] = field(default_factory=list)
    groups: list[str] = field(default_factory=list)
    monitoring_team: list[str] = field(default_factory=list)
    statuses: list[str] = field(default_factory=list)
    rounds_issues: list[str] = field(default_factory=list)
    safety_issues: list[str] = field(default_factory=list)
    it_issues: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
