"""Domain models for nutrition summaries."""

from dataclasses import dataclass
from datetime import date

from nutritrack.domain.nutrients import NutrientVector


@dataclass(frozen=True)
class DailyTotals:
    """Resolved nutrition totals for a single local day."""

    day: date
    nutrients: NutrientVector
    log_count: int
    incomplete_count: int = 0


@dataclass(frozen=True)
class PeriodSummary:
    """Daily totals and per-day averages for a window."""

    daily: list[DailyTotals]
    averages: NutrientVector
    variety_score: float
