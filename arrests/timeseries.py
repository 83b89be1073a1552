from __future__ import annotations

from typing import Dict, Optional, Tuple

import pandas as pd

from .catalogue import run_named_query
from .fields import to_dates

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def arrest_year_range(arrests_df: pd.DataFrame) -> Optional[Tuple[int, int]]:
    """First and last arrest year, or None when no row has a usable date."""
    if "arrest_date" not in arrests_df.columns:
        return None
    years = to_dates(arrests_df["arrest_date"]).dt.year.dropna()
    if years.empty:
        return None
    return int(years.min()), int(years.max())


def hourly_matrix(weekday_hour: pd.DataFrame) -> pd.DataFrame:
    """Pivot weekday/hour counts into a 7x24 grid, zero filled."""
    valid = weekday_hour.dropna(subset=["arrest_weekday", "arrest_hour"])
    if valid.empty:
        return pd.DataFrame(0, index=list(WEEKDAYS), columns=range(24))
    pivot = valid.pivot_table(
        index="arrest_weekday",
        columns="arrest_hour",
        values="arrest_count",
        aggfunc="sum",
        fill_value=0,
    )
    pivot.columns = [int(hour) for hour in pivot.columns]
    return pivot.reindex(index=list(WEEKDAYS), columns=range(24), fill_value=0)


def build_time_series_views(arrests_df: pd.DataFrame) -> Dict[str, pd.DataFrame]:
    """Return commonly used time-series slices for downstream visualizations."""
    weekday_hour = run_named_query(arrests_df, "arrests_by_weekday_hour")
    return {
        "monthly_counts": run_named_query(arrests_df, "rolling_three_month_arrests"),
        "yearly_totals": run_named_query(arrests_df, "year_over_year_totals"),
        "hourly_pattern": weekday_hour,
        "hourly_matrix": hourly_matrix(weekday_hour),
        "age_buckets": run_named_query(arrests_df, "arrests_by_age_bucket"),
        "charge_groups": run_named_query(arrests_df, "top_charge_groups"),
    }
