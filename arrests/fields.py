from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import time
from typing import Callable, Dict, Iterable, Tuple

import numpy as np
import pandas as pd


ARREST_FIELDS: Tuple[str, ...] = (
    "report_id",
    "report_type",
    "arrest_date",
    "arrest_time",
    "area_id",
    "area_name",
    "age",
    "sex_code",
    "charge_group_description",
    "arrest_type_code",
    "charge_description",
    "address",
    "booking_date",
    "booking_time",
    "booking_location",
)

DATE_FIELDS: Tuple[str, ...] = ("arrest_date", "booking_date")
TIME_FIELDS: Tuple[str, ...] = ("arrest_time", "booking_time")

AGE_BUCKET_LABELS: Tuple[str, ...] = ("0-17", "18-25", "26-35", "36-45", "46-60", "60+")
# Inclusive upper bound of each bucket; the last bucket is open ended.
AGE_BUCKET_EDGES: Tuple[float, ...] = (-np.inf, 17, 25, 35, 45, 60, np.inf)


@dataclass(frozen=True)
class DerivedField:
    name: str
    sources: Tuple[str, ...]
    compute: Callable[[pd.DataFrame], pd.Series]
    description: str = ""


def parse_time_of_day(value: object) -> pd.Timedelta:
    """Parse a time-of-day value into an offset from midnight.

    Accepts ``HH:MM`` / ``HH:MM:SS`` strings, ``datetime.time`` objects,
    timedeltas, and the 24-hour integers used by the LAPD portal
    (``1730``, ``45`` for 00:45).
    """
    if value is None or value is pd.NaT or value is pd.NA:
        return pd.NaT
    if isinstance(value, pd.Timedelta):
        return value
    if isinstance(value, time):
        return pd.Timedelta(hours=value.hour, minutes=value.minute, seconds=value.second)
    if isinstance(value, float) and math.isnan(value):
        return pd.NaT

    text = str(value).strip()
    if not text:
        return pd.NaT

    parts = text.split(":")
    if len(parts) == 1:
        digits = parts[0].split(".")[0]
        if not digits.isdigit():
            return pd.NaT
        hours, minutes = divmod(int(digits), 100)
        seconds = 0
    elif len(parts) in (2, 3):
        try:
            hours = int(parts[0])
            minutes = int(parts[1])
            seconds = int(parts[2]) if len(parts) == 3 else 0
        except ValueError:
            return pd.NaT
    else:
        return pd.NaT

    if not (0 <= hours < 24 and 0 <= minutes < 60 and 0 <= seconds < 60):
        return pd.NaT
    return pd.Timedelta(hours=hours, minutes=minutes, seconds=seconds)


def to_time_offsets(series: pd.Series) -> pd.Series:
    if pd.api.types.is_timedelta64_dtype(series):
        return series
    # An all-NaT result would otherwise be inferred as datetime64.
    offsets = [None if pd.isna(value) else value for value in map(parse_time_of_day, series)]
    return pd.Series(offsets, index=series.index, dtype="timedelta64[ns]")


def to_dates(series: pd.Series) -> pd.Series:
    if pd.api.types.is_datetime64_any_dtype(series):
        return series
    return pd.to_datetime(series, errors="coerce")


def age_bucket(age: object) -> str | None:
    if age is None or pd.isna(age):
        return None
    for label, upper in zip(AGE_BUCKET_LABELS, AGE_BUCKET_EDGES[1:]):
        if age <= upper:
            return label
    return None


def _arrest_year(df: pd.DataFrame) -> pd.Series:
    return to_dates(df["arrest_date"]).dt.year.astype("Int64")


def _arrest_month(df: pd.DataFrame) -> pd.Series:
    return to_dates(df["arrest_date"]).dt.strftime("%Y-%m")


def _arrest_weekday(df: pd.DataFrame) -> pd.Series:
    return to_dates(df["arrest_date"]).dt.day_name()


def _arrest_hour(df: pd.DataFrame) -> pd.Series:
    offsets = to_time_offsets(df["arrest_time"])
    return (offsets // pd.Timedelta(hours=1)).astype("Int64")


def _age_bucket(df: pd.DataFrame) -> pd.Series:
    ages = pd.to_numeric(df["age"], errors="coerce").astype(float)
    buckets = pd.cut(ages, bins=list(AGE_BUCKET_EDGES), labels=list(AGE_BUCKET_LABELS), right=True)
    return buckets.astype(object).where(ages.notna(), None)


def _booking_delay_hours(df: pd.DataFrame) -> pd.Series:
    arrested = to_dates(df["arrest_date"]).dt.normalize() + to_time_offsets(df["arrest_time"])
    booked = to_dates(df["booking_date"]).dt.normalize() + to_time_offsets(df["booking_time"])
    return (booked - arrested) / pd.Timedelta(hours=1)


DERIVED_FIELDS: Dict[str, DerivedField] = {
    field.name: field
    for field in (
        DerivedField("arrest_year", ("arrest_date",), _arrest_year, "Calendar year of the arrest"),
        DerivedField("arrest_month", ("arrest_date",), _arrest_month, "Arrest month as YYYY-MM"),
        DerivedField("arrest_weekday", ("arrest_date",), _arrest_weekday, "Weekday name of the arrest"),
        DerivedField("arrest_hour", ("arrest_time",), _arrest_hour, "Hour of day (0-23) of the arrest"),
        DerivedField("age_bucket", ("age",), _age_bucket, "Age band of the arrestee"),
        DerivedField(
            "booking_delay_hours",
            ("arrest_date", "arrest_time", "booking_date", "booking_time"),
            _booking_delay_hours,
            "Hours between arrest and booking",
        ),
    )
}


def derive_columns(df: pd.DataFrame, names: Iterable[str]) -> pd.DataFrame:
    """Return a copy of ``df`` with the requested derived fields attached.

    Columns already present in ``df`` win over the derived definition.
    """
    wanted = [name for name in dict.fromkeys(names) if name in DERIVED_FIELDS and name not in df.columns]
    if not wanted:
        return df

    missing = sorted(
        {source for name in wanted for source in DERIVED_FIELDS[name].sources} - set(df.columns)
    )
    if missing:
        raise KeyError(", ".join(missing))

    return df.assign(**{name: DERIVED_FIELDS[name].compute(df) for name in wanted})
