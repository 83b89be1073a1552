from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, List, NamedTuple, Optional, Tuple

import pandas as pd
from dateutil.relativedelta import relativedelta

from .fields import to_dates
from .filters import Between
from .metrics import percent_change
from .query import Aggregate, QuerySpec, run_query


class DateSpan(NamedTuple):
    start: date
    end: date

    def describe(self) -> str:
        return f"{self.start.isoformat()} to {self.end.isoformat()}"


@dataclass(frozen=True)
class ComparisonPeriod:
    """A span ending on the reference date, compared with the span before it.

    ``days=None`` is year to date, compared with the same stretch of the
    previous year.
    """

    key: str
    label: str
    days: Optional[int] = None

    def spans(self, reference_date: date) -> Tuple[DateSpan, DateSpan]:
        if self.days is None:
            year_ago = reference_date - relativedelta(years=1)
            return (
                DateSpan(reference_date.replace(month=1, day=1), reference_date),
                DateSpan(year_ago.replace(month=1, day=1), year_ago),
            )
        length = timedelta(days=self.days)
        current = DateSpan(reference_date - length + timedelta(days=1), reference_date)
        return current, DateSpan(current.start - length, current.start - timedelta(days=1))


PERIODS: Tuple[ComparisonPeriod, ...] = (
    ComparisonPeriod("seven_day", "7-Day", days=7),
    ComparisonPeriod("four_week", "28-Day", days=28),
    ComparisonPeriod("ytd", "YTD"),
)


def latest_arrest_date(df: pd.DataFrame) -> date | None:
    if df.empty or "arrest_date" not in df.columns:
        return None
    max_date = to_dates(df["arrest_date"]).max()
    if pd.isna(max_date):
        return None
    return max_date.date()


def period_bounds(reference_date: date, period: ComparisonPeriod) -> Tuple[DateSpan, DateSpan]:
    """Return the (current, previous) spans of ``period``."""
    return period.spans(reference_date)


def _area_counts(df: pd.DataFrame, span: DateSpan) -> pd.Series:
    result = run_query(
        df,
        QuerySpec(
            filter=Between("arrest_date", span.start, span.end),
            group_by=("area_name",),
            aggregate=Aggregate("COUNT", "*", alias="arrest_count"),
        ),
    )
    if result.empty:
        return pd.Series(dtype=float)
    return result.dropna(subset=["area_name"]).set_index("area_name")["arrest_count"]


def compute_area_summary(
    df: pd.DataFrame,
    reference_date: date | None = None,
) -> pd.DataFrame:
    """
    Compare arrest counts per area across the standard periods.

    Returns a dataframe with one row per area; each period contributes
    ``<key>_current``, ``_previous``, ``_change``, ``_pct_change`` and
    ``_window`` columns.
    """
    ref_date = reference_date or latest_arrest_date(df)
    if df.empty or ref_date is None:
        return pd.DataFrame(columns=["area_name", "reference_date"])

    areas = sorted(df["area_name"].dropna().unique())
    rows: List[Dict[str, object]] = [{"area_name": area} for area in areas]

    for period in PERIODS:
        current_span, previous_span = period.spans(ref_date)
        current_counts = _area_counts(df, current_span)
        previous_counts = _area_counts(df, previous_span)

        for row in rows:
            area = row["area_name"]
            current_value = float(current_counts.get(area, 0.0))
            previous_value = float(previous_counts.get(area, 0.0))
            row[f"{period.key}_current"] = current_value
            row[f"{period.key}_previous"] = previous_value
            row[f"{period.key}_change"] = current_value - previous_value
            row[f"{period.key}_pct_change"] = percent_change(current_value, previous_value)
            row[f"{period.key}_window"] = current_span.describe()

    summary = pd.DataFrame(rows)
    summary["reference_date"] = ref_date
    return summary


def aggregate_period(summary: pd.DataFrame, period_key: str) -> Dict[str, float | None]:
    """Citywide totals for one period of an area summary."""
    if summary.empty:
        return {"current": 0.0, "previous": 0.0, "change": 0.0, "pct_change": None}

    current = float(summary[f"{period_key}_current"].sum())
    previous = float(summary[f"{period_key}_previous"].sum())
    return {
        "current": current,
        "previous": previous,
        "change": current - previous,
        "pct_change": percent_change(current, previous),
    }
