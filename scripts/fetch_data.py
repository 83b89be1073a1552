import time
from os import getenv
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from arrests.data_loader import normalize_arrest_frame


REPO_ROOT = Path(__file__).resolve().parents[1]
DATA_DIR = REPO_ROOT / "data"

ARREST_DATASETS = {
    "2010-2019": "https://data.lacity.org/resource/amvf-fr72.json",
    "2020-present": "https://data.lacity.org/resource/yru6-6re4.json",
}

SOC_HEADERS = {
    "User-Agent": "la-arrests-analytics/0.1",
}
SOC_APP_TOKEN = getenv("LACITY_APP_TOKEN") or getenv("SOCRATA_APP_TOKEN")

DEFAULT_START_DATE = getenv("ARRESTS_START_DATE", "2010-01-01")
SOC_PAGINATION_LIMIT = 50000
MAX_RETRY_ATTEMPTS = 6
RETRY_BACKOFF_FACTOR = 1.5
RETRY_STATUSES = (429, 500, 502, 503, 504)


def build_session(app_token: Optional[str] = SOC_APP_TOKEN) -> requests.Session:
    """Session that retries throttled and failed GETs, honouring Retry-After."""
    retries = Retry(
        total=MAX_RETRY_ATTEMPTS - 1,
        backoff_factor=RETRY_BACKOFF_FACTOR,
        status_forcelist=RETRY_STATUSES,
        allowed_methods=frozenset({"GET"}),
        respect_retry_after_header=True,
    )
    session = requests.Session()
    session.mount("https://", HTTPAdapter(max_retries=retries))
    session.headers.update(SOC_HEADERS)
    if app_token:
        session.headers["X-App-Token"] = app_token
    return session


def fetch_arrest_records(
    url: str,
    start_date: str = DEFAULT_START_DATE,
    session: Optional[requests.Session] = None,
) -> List[Dict]:
    """Page through one Socrata arrest dataset."""
    session = session or build_session()
    records: List[Dict] = []
    offset = 0

    while True:
        params = {
            "$where": f"arst_date >= '{start_date}T00:00:00'",
            "$order": "rpt_id",
            "$limit": SOC_PAGINATION_LIMIT,
            "$offset": offset,
        }
        response = session.get(url, params=params, timeout=120)
        response.raise_for_status()
        page = response.json()
        if not page:
            break

        records.extend(page)
        print(f"  fetched {len(records)} records...")
        if len(page) < SOC_PAGINATION_LIMIT:
            break

        offset += SOC_PAGINATION_LIMIT
        time.sleep(0.25)

    return records


def fetch_arrests(start_date: str = DEFAULT_START_DATE) -> pd.DataFrame:
    """Fetch every arrest dataset and return one normalized dataframe."""
    session = build_session()
    frames: List[pd.DataFrame] = []
    for label, url in ARREST_DATASETS.items():
        print(f"Fetching arrests {label}...")
        records = fetch_arrest_records(url, start_date=start_date, session=session)
        if records:
            frames.append(normalize_arrest_frame(pd.DataFrame(records)))

    if not frames:
        raise RuntimeError("No arrests retrieved. Adjust the start date.")

    df = pd.concat(frames, ignore_index=True)
    df = df.drop_duplicates(subset=["report_id"], keep="last")
    df["pull_timestamp_utc"] = pd.Timestamp.now(tz="UTC")
    return df


def main():
    DATA_DIR.mkdir(parents=True, exist_ok=True)

    arrests_df = fetch_arrests()
    arrests_path = DATA_DIR / "arrests.parquet"
    arrests_df.to_parquet(arrests_path, index=False)
    print(f"Wrote {len(arrests_df)} arrests to {arrests_path}")


if __name__ == "__main__":
    main()
