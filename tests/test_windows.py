import pytest

from arrests.query import Aggregate, Lag, QuerySpec, Rank, Rolling, run_query, to_records


def _areas(counts):
    return [{"area_name": area} for area, n in counts.items() for _ in range(n)]


def _months(counts):
    return [{"arrest_date": f"{month}-05"} for month, n in counts.items() for _ in range(n)]


def _years(counts, area="Central"):
    return [
        {"arrest_date": f"{year}-06-01", "area_name": area}
        for year, n in counts.items()
        for _ in range(n)
    ]


def test_standard_rank_leaves_gaps_after_ties():
    records = _areas({"A": 3, "B": 3, "C": 1, "D": 2})
    spec = QuerySpec(
        group_by=("area_name",),
        window=Rank(order_by="count"),
        order_by=("rank", "area_name"),
    )
    result = to_records(run_query(records, spec))
    assert [(row["area_name"], row["rank"]) for row in result] == [
        ("A", 1),
        ("B", 1),
        ("D", 3),
        ("C", 4),
    ]


def test_dense_rank_has_no_gaps():
    records = _areas({"A": 3, "B": 3, "C": 1, "D": 2})
    spec = QuerySpec(
        group_by=("area_name",),
        window=Rank(order_by="count", dense=True),
        order_by=("rank", "area_name"),
    )
    assert [row["rank"] for row in to_records(run_query(records, spec))] == [1, 1, 2, 3]


def test_rank_restarts_in_each_partition():
    records = _years({2019: 5, 2020: 1}, area="Central") + _years({2019: 2, 2020: 4}, area="Harbor")
    spec = QuerySpec(
        group_by=("arrest_year", "area_name"),
        window=Rank(order_by="count", partition_by=("arrest_year",), alias="area_rank"),
        order_by=("arrest_year", "area_rank"),
    )
    result = to_records(run_query(records, spec))
    assert [(row["arrest_year"], row["area_name"], row["area_rank"]) for row in result] == [
        (2019, "Central", 1),
        (2019, "Harbor", 2),
        (2020, "Harbor", 1),
        (2020, "Central", 2),
    ]


def test_null_average_group_ranks_last():
    records = [
        {"area_name": "A", "age": None},
        {"area_name": "A", "age": None},
        {"area_name": "B", "age": 30},
        {"area_name": "C", "age": 20},
    ]
    spec = QuerySpec(
        group_by=("area_name",),
        aggregate=Aggregate("AVG", "age", alias="avg_age"),
        window=Rank(order_by="avg_age"),
        order_by=("rank",),
    )
    result = to_records(run_query(records, spec))
    assert [(row["area_name"], row["avg_age"], row["rank"]) for row in result] == [
        ("B", 30.0, 1),
        ("C", 20.0, 2),
        ("A", None, 3),
    ]


def test_rolling_sum_shrinks_at_series_start():
    records = _months({"2019-01": 1, "2019-02": 2, "2019-03": 3, "2019-04": 4})
    spec = QuerySpec(
        group_by=("arrest_month",),
        window=Rolling(order_by="arrest_month", size=3),
        order_by=("arrest_month",),
    )
    result = run_query(records, spec)
    assert result["rolling_sum"].tolist() == [1.0, 3.0, 6.0, 9.0]


def test_rolling_average():
    records = _months({"2019-01": 1, "2019-02": 2, "2019-03": 3, "2019-04": 4})
    spec = QuerySpec(
        group_by=("arrest_month",),
        window=Rolling(order_by="arrest_month", size=2, func="AVG", alias="avg_2"),
        order_by=("arrest_month",),
    )
    result = run_query(records, spec)
    assert result["avg_2"].tolist() == pytest.approx([1.0, 1.5, 2.5, 3.5])


def test_rolling_is_computed_before_ordering():
    records = _months({"2019-01": 1, "2019-02": 2, "2019-03": 3})
    spec = QuerySpec(
        group_by=("arrest_month",),
        window=Rolling(order_by="arrest_month", size=2),
        order_by=(("arrest_month", "DESC"),),
    )
    result = run_query(records, spec)
    assert result["rolling_sum"].tolist() == [5.0, 3.0, 1.0]


def test_lag_with_percent_change():
    records = _years({2018: 2, 2019: 3, 2020: 3})
    spec = QuerySpec(
        group_by=("arrest_year",),
        window=Lag(order_by="arrest_year", pct_change="pct_change"),
        order_by=("arrest_year",),
    )
    result = to_records(run_query(records, spec))
    assert [row["previous"] for row in result] == [None, 2, 3]
    assert [row["pct_change"] for row in result] == [None, 50.0, 0.0]


def test_lag_within_partitions():
    records = _years({2019: 4, 2020: 2}, area="Central") + _years({2020: 1}, area="Harbor")
    spec = QuerySpec(
        group_by=("area_name", "arrest_year"),
        window=Lag(order_by="arrest_year", partition_by=("area_name",), alias="prior"),
        order_by=("area_name", "arrest_year"),
    )
    result = to_records(run_query(records, spec))
    assert [(row["area_name"], row["arrest_year"], row["prior"]) for row in result] == [
        ("Central", 2019, None),
        ("Central", 2020, 4),
        ("Harbor", 2020, None),
    ]


def test_lag_offset():
    records = _years({2018: 1, 2019: 2, 2020: 3})
    spec = QuerySpec(
        group_by=("arrest_year",),
        window=Lag(order_by="arrest_year", offset=2),
        order_by=("arrest_year",),
    )
    assert [row["previous"] for row in to_records(run_query(records, spec))] == [None, None, 1]


def test_percent_change_undefined_for_zero_previous():
    records = [
        {"arrest_date": "2019-01-01", "age": 0},
        {"arrest_date": "2020-01-01", "age": 10},
    ]
    spec = QuerySpec(
        group_by=("arrest_year",),
        aggregate=Aggregate("SUM", "age", alias="total_age"),
        window=Lag(order_by="arrest_year", pct_change="pct_change"),
        order_by=("arrest_year",),
    )
    result = to_records(run_query(records, spec))
    assert len(result) == 2
    assert result[1]["previous"] == 0
    assert result[1]["pct_change"] is None


def test_windows_apply_in_sequence_before_top_n():
    records = _areas({"A": 5, "B": 4, "C": 3})
    spec = QuerySpec(
        group_by=("area_name",),
        window=(Rank(order_by="count"), Lag(order_by="area_name")),
        order_by=("area_name",),
        top_n=2,
    )
    result = to_records(run_query(records, spec))
    assert result == [
        {"area_name": "A", "count": 5, "rank": 1, "previous": None},
        {"area_name": "B", "count": 4, "rank": 2, "previous": 5},
    ]
