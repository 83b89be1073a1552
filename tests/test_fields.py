from datetime import time

import pandas as pd
import pytest

from arrests.fields import DERIVED_FIELDS, age_bucket, derive_columns, parse_time_of_day, to_time_offsets
from arrests.filters import NotNull
from arrests.query import QuerySpec, run_query, to_records


@pytest.mark.parametrize(
    "age, expected",
    [
        (0, "0-17"),
        (17, "0-17"),
        (18, "18-25"),
        (25, "18-25"),
        (26, "26-35"),
        (35, "26-35"),
        (36, "36-45"),
        (46, "46-60"),
        (60, "46-60"),
        (61, "60+"),
        (95, "60+"),
        (None, None),
    ],
)
def test_age_bucket_boundaries(age, expected):
    assert age_bucket(age) == expected


def test_age_bucket_column_matches_scalar(make_arrests):
    ages = [17, 18, 25, 26, 60, 61, None]
    df = make_arrests([dict(age=age) for age in ages])
    buckets = DERIVED_FIELDS["age_bucket"].compute(df)
    assert [None if pd.isna(b) else b for b in buckets] == [age_bucket(age) for age in ages]


def test_null_ages_excluded_from_filtered_buckets(make_arrests):
    df = make_arrests([dict(age=17), dict(age=18), dict(age=None), dict(age=61)])
    spec = QuerySpec(filter=NotNull("age"), group_by=("age_bucket",), order_by=("age_bucket",))
    assert to_records(run_query(df, spec)) == [
        {"age_bucket": "0-17", "count": 1},
        {"age_bucket": "18-25", "count": 1},
        {"age_bucket": "60+", "count": 1},
    ]


@pytest.mark.parametrize(
    "value, expected",
    [
        ("14:30", pd.Timedelta(hours=14, minutes=30)),
        ("07:05:09", pd.Timedelta(hours=7, minutes=5, seconds=9)),
        ("1730", pd.Timedelta(hours=17, minutes=30)),
        (45, pd.Timedelta(minutes=45)),
        (1730.0, pd.Timedelta(hours=17, minutes=30)),
        (time(6, 15), pd.Timedelta(hours=6, minutes=15)),
    ],
)
def test_parse_time_of_day(value, expected):
    assert parse_time_of_day(value) == expected


@pytest.mark.parametrize("value", [None, "", "noon", "25:00", "2460", float("nan")])
def test_parse_time_of_day_rejects_garbage(value):
    assert pd.isna(parse_time_of_day(value))


def test_calendar_fields(sample_arrests):
    df = derive_columns(sample_arrests, ["arrest_year", "arrest_month", "arrest_weekday", "arrest_hour"])
    first = df.iloc[0]
    assert first["arrest_year"] == 2019
    assert first["arrest_month"] == "2019-03"
    assert first["arrest_weekday"] == "Friday"
    assert first["arrest_hour"] == 14


def test_booking_delay_hours(sample_arrests):
    delay = derive_columns(sample_arrests, ["booking_delay_hours"])["booking_delay_hours"]
    assert delay.iloc[0] == pytest.approx(1.5)
    assert pd.isna(delay.iloc[1])
    assert delay.iloc[2] == pytest.approx(2.0)
    # booked before the recorded arrest time; passed through unchanged
    assert delay.iloc[5] == pytest.approx(-0.5)


def test_all_missing_times_stay_timedeltas():
    offsets = to_time_offsets(pd.Series([None, None], index=[4, 7]))
    assert pd.api.types.is_timedelta64_dtype(offsets)
    assert offsets.isna().all()
    assert list(offsets.index) == [4, 7]
    assert pd.api.types.is_timedelta64_dtype(to_time_offsets(pd.Series([], dtype=object)))


def test_booking_delay_without_booking_times(make_arrests):
    df = make_arrests([dict(arrest_date="2019-01-01", arrest_time="10:00")])
    assert derive_columns(df, ["booking_delay_hours"])["booking_delay_hours"].isna().all()


def test_existing_column_wins_over_derivation(sample_arrests):
    df = sample_arrests.assign(arrest_year=1999)
    assert (derive_columns(df, ["arrest_year"])["arrest_year"] == 1999).all()


def test_missing_source_column_raises():
    with pytest.raises(KeyError):
        derive_columns(pd.DataFrame({"age": [1]}), ["arrest_year"])
