from typing import Dict, List

import pandas as pd
import pytest

from arrests.fields import ARREST_FIELDS


def _row(**values) -> Dict[str, object]:
    row: Dict[str, object] = {field: None for field in ARREST_FIELDS}
    row.update(values)
    return row


@pytest.fixture
def make_arrests():
    """Build an arrest frame with every schema column from partial rows."""

    def _make(rows: List[Dict[str, object]]) -> pd.DataFrame:
        return pd.DataFrame([_row(**values) for values in rows], columns=list(ARREST_FIELDS))

    return _make


@pytest.fixture
def sample_arrests(make_arrests) -> pd.DataFrame:
    return make_arrests(
        [
            dict(
                report_id="1",
                report_type="BOOKING",
                address="HOLLYWOOD BL",
                arrest_date="2019-03-01",
                arrest_time="14:30",
                area_id=6,
                area_name="Hollywood",
                age=17,
                sex_code="M",
                charge_group_description="Larceny",
                charge_description="PETTY THEFT",
                booking_date="2019-03-01",
                booking_time="16:00",
                booking_location="77TH ST",
            ),
            dict(
                report_id="2",
                report_type="RFC",
                arrest_date="2019-03-15",
                arrest_time="0900",
                area_id=6,
                area_name="Hollywood",
                age=25,
                sex_code="F",
                charge_group_description="Larceny",
                charge_description="PETTY THEFT",
            ),
            dict(
                report_id="3",
                report_type="BOOKING",
                address="5TH ST",
                arrest_date="2019-07-04",
                arrest_time="23:15",
                area_id=1,
                area_name="Central",
                age=40,
                sex_code="M",
                charge_group_description="Narcotic Drug Laws",
                charge_description="POSSESSION",
                booking_date="2019-07-05",
                booking_time="01:15",
                booking_location="METRO",
            ),
            dict(
                report_id="4",
                report_type="BOOKING",
                arrest_date="2020-01-10",
                arrest_time="08:00",
                area_id=1,
                area_name="Central",
                age=None,
                sex_code="M",
                charge_group_description="Narcotic Drug Laws",
                charge_description="POSSESSION",
            ),
            dict(
                report_id="5",
                report_type="RFC",
                arrest_date="2020-05-20",
                arrest_time="12:00",
                area_id=6,
                area_name="Hollywood",
                age=61,
                sex_code="F",
            ),
            dict(
                report_id="6",
                report_type="BOOKING",
                arrest_date="2020-06-01",
                arrest_time="1730",
                area_id=1,
                area_name="Central",
                age=30,
                sex_code="M",
                charge_group_description="Larceny",
                charge_description="SHOPLIFTING",
                booking_date="2020-06-01",
                booking_time="17:00",
                booking_location="METRO",
            ),
        ]
    )
