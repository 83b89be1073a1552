import pytest

from arrests.quality import find_anomalies, null_rates


def test_null_rates(sample_arrests):
    report = null_rates(sample_arrests).set_index("Column")["Null Rate"]
    assert report["report_id"] == 0.0
    assert report["arrest_type_code"] == 100.0
    assert report["age"] == pytest.approx(100.0 / 6)


def test_find_anomalies(make_arrests, sample_arrests):
    df = make_arrests(
        [
            dict(report_id="a", report_type="BOOKING", age=-3, sex_code="M"),
            dict(report_id="b", report_type="Booking", age=30, sex_code="X"),
            dict(report_id="c", report_type="CITATION", age=30, sex_code="f"),
        ]
    )
    issues = set(map(tuple, find_anomalies(df)[["report_id", "issue"]].to_numpy()))
    assert issues == {("a", "negative_age"), ("b", "unknown_sex_code"), ("c", "unknown_report_type")}

    booked_early = find_anomalies(sample_arrests)
    assert booked_early.to_dict(orient="records") == [{"report_id": "6", "issue": "booked_before_arrest"}]


def test_clean_frame_has_no_anomalies(make_arrests):
    df = make_arrests([dict(report_id="1", report_type="RFC", age=20, sex_code="F")])
    assert find_anomalies(df).empty
