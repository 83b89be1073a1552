from __future__ import annotations

import logging
from typing import Iterable, List

import pandas as pd

from .fields import ARREST_FIELDS, DERIVED_FIELDS, derive_columns

logger = logging.getLogger(__name__)

REPORT_TYPES = {"BOOKING", "RFC"}
SEX_CODES = {"M", "F"}


def null_rates(df: pd.DataFrame, columns: Iterable[str] = ARREST_FIELDS) -> pd.DataFrame:
    """Percent of null values per column."""
    present = [column for column in columns if column in df.columns]
    if df.empty:
        return pd.DataFrame({"Column": present, "Null Rate": [0.0] * len(present)})
    return (
        df[present]
        .isna()
        .mean()
        .rename("Null Rate")
        .mul(100)
        .reset_index()
        .rename(columns={"index": "Column"})
    )


def _code_outside(series: pd.Series, allowed: set) -> pd.Series:
    upper = series.astype("string").str.upper()
    return (series.notna() & ~upper.isin(allowed)).fillna(False).astype(bool)


def find_anomalies(df: pd.DataFrame) -> pd.DataFrame:
    """Rows whose values break assumptions the queries rely on.

    Nothing is removed; the engine passes these values through as-is.
    """
    issues: List[pd.DataFrame] = []
    columns = ["report_id", "issue"]
    if df.empty:
        return pd.DataFrame(columns=columns)

    def _collect(mask: pd.Series, issue: str) -> None:
        flagged = df.loc[mask.fillna(False).astype(bool)]
        if flagged.empty:
            return
        if "report_id" in flagged.columns:
            ids = flagged["report_id"].to_numpy()
        else:
            ids = flagged.index.to_numpy()
        issues.append(pd.DataFrame({"report_id": ids, "issue": issue}))

    if "age" in df.columns:
        _collect(pd.to_numeric(df["age"], errors="coerce") < 0, "negative_age")

    sources = DERIVED_FIELDS["booking_delay_hours"].sources
    if all(column in df.columns for column in sources):
        delay = derive_columns(df, ["booking_delay_hours"])["booking_delay_hours"]
        _collect(delay < 0, "booked_before_arrest")

    if "report_type" in df.columns:
        _collect(_code_outside(df["report_type"], REPORT_TYPES), "unknown_report_type")
    if "sex_code" in df.columns:
        _collect(_code_outside(df["sex_code"], SEX_CODES), "unknown_sex_code")

    if not issues:
        return pd.DataFrame(columns=columns)
    result = pd.concat(issues, ignore_index=True)
    logger.info("Found %d arrest record anomalies", len(result))
    return result
