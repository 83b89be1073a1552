from __future__ import annotations

import logging
import re
from os import getenv
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

import pandas as pd

from .fields import ARREST_FIELDS, DATE_FIELDS, TIME_FIELDS, to_dates, to_time_offsets

logger = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).resolve().parents[1]
DATA_DIR = REPO_ROOT / "data"

ARREST_FILE = DATA_DIR / "arrests.parquet"

# Portal CSV headers and Socrata API field names, keyed by their snake-cased form.
COLUMN_ALIASES = {
    "report_id": "report_id",
    "rpt_id": "report_id",
    "report_type": "report_type",
    "arrest_date": "arrest_date",
    "arst_date": "arrest_date",
    "time": "arrest_time",
    "arrest_time": "arrest_time",
    "area_id": "area_id",
    "area": "area_id",
    "area_name": "area_name",
    "area_desc": "area_name",
    "age": "age",
    "sex_code": "sex_code",
    "sex_cd": "sex_code",
    "charge_group_description": "charge_group_description",
    "grp_description": "charge_group_description",
    "arrest_type_code": "arrest_type_code",
    "arst_typ_cd": "arrest_type_code",
    "charge_description": "charge_description",
    "chrg_desc": "charge_description",
    "address": "address",
    "booking_date": "booking_date",
    "bkg_date": "booking_date",
    "booking_time": "booking_time",
    "bkg_time": "booking_time",
    "booking_location": "booking_location",
    "bkg_location": "booking_location",
}

STRING_FIELDS = (
    "report_id",
    "report_type",
    "area_name",
    "sex_code",
    "charge_group_description",
    "arrest_type_code",
    "charge_description",
    "address",
    "booking_location",
)


def default_data_path() -> Path:
    override = getenv("ARRESTS_DATA_PATH")
    return Path(override) if override else ARREST_FILE


def _snake_case(name: str) -> str:
    return re.sub(r"[^0-9a-z]+", "_", str(name).strip().lower()).strip("_")


def normalize_arrest_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Map raw portal columns onto the arrest schema and coerce types."""
    renamed = {}
    for column in df.columns:
        target = COLUMN_ALIASES.get(_snake_case(column))
        if target and target not in renamed.values():
            renamed[column] = target
    df = df.rename(columns=renamed)[list(renamed.values())].copy()

    for field in ARREST_FIELDS:
        if field not in df.columns:
            df[field] = pd.NA

    for field in DATE_FIELDS:
        df[field] = to_dates(df[field]).dt.normalize()
    for field in TIME_FIELDS:
        df[field] = to_time_offsets(df[field])

    df["age"] = pd.to_numeric(df["age"], errors="coerce").astype("Int64")
    df["area_id"] = pd.to_numeric(df["area_id"], errors="coerce").astype("Int64")

    # Keep nulls as nulls; blank strings are treated as missing.
    for field in STRING_FIELDS:
        cleaned = df[field].astype("string").str.strip()
        df[field] = cleaned.mask(cleaned.eq("").fillna(False))

    return df[list(ARREST_FIELDS)].reset_index(drop=True)


def load_arrest_records(records: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    """Build a normalized arrest frame from in-memory records."""
    return normalize_arrest_frame(pd.DataFrame.from_records(list(records)))


def load_arrest_data(path: Optional[Path] = None, strict: bool = False) -> pd.DataFrame:
    """Load pre-pulled arrest data from CSV or parquet."""
    data_path = Path(path) if path else default_data_path()
    if not data_path.exists():
        raise FileNotFoundError(
            f"Arrest data not found at {data_path}. Run scripts/fetch_data.py first."
        )

    suffix = data_path.suffix.lower()
    if suffix == ".csv":
        raw = pd.read_csv(data_path, dtype=str, keep_default_na=True)
    elif suffix in (".parquet", ".pq"):
        raw = pd.read_parquet(data_path)
    else:
        raise ValueError(f"Unsupported arrest data format {suffix!r}; expected .csv or .parquet.")

    df = normalize_arrest_frame(raw)
    logger.info("Loaded %d arrest records from %s", len(df), data_path)

    if strict:
        from .quality import find_anomalies

        anomalies = find_anomalies(df)
        if not anomalies.empty:
            counts = anomalies["issue"].value_counts().to_dict()
            raise ValueError(f"Arrest data failed strict validation: {counts}")

    return df
